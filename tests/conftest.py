"""Pytest configuration and fixtures."""

import pathlib

import pytest

from gps_telemetry.processing.mp4_source import Payload


class FakeSource:
    """In-memory stand-in for :class:`GPMFSource`."""

    def __init__(self, windows: list[tuple[float, float, bytes]], duration: float | None = None):
        self.payloads = [
            Payload(index=i, start=start, finish=finish, data=data)
            for i, (start, finish, data) in enumerate(windows)
        ]
        if duration is None:
            duration = self.payloads[-1].finish if self.payloads else 0.0
        self.duration = duration
        self.entered = False
        self.closed = False

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True

    def __len__(self):
        return len(self.payloads)

    def __iter__(self):
        return iter(self.payloads)


@pytest.fixture
def fake_sources():
    """Map of file name → FakeSource plus an opener suitable for the extractor."""
    sources: dict[str, FakeSource] = {}

    def opener(path: pathlib.Path) -> FakeSource:
        return sources[pathlib.Path(path).name]

    return sources, opener
