"""Continuous playback timeline across the payloads and files of one recording."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class TimelineAccumulator:
    """Carries the playback offset from one chapter file to the next.

    ``file_start_offset`` is the sum of the final payload ``finish`` times of
    every completed file.  Files are trusted to arrive in chronological order.
    """

    file_start_offset: float = 0.0
    last_payload_finish: float | None = None

    def begin_file(self) -> None:
        self.last_payload_finish = None

    def record_payload(self, finish: float) -> None:
        """Note that a payload ending at *finish* carried usable GPS data."""
        self.last_payload_finish = finish

    def relative_ms(self, relative_time: float) -> float:
        """Milliseconds since the start of the first file."""
        return (self.file_start_offset + relative_time) * 1000.0

    def finish_file(self) -> None:
        # A file without usable payloads leaves the offset untouched
        if self.last_payload_finish is not None:
            self.file_start_offset += self.last_payload_finish
        self.last_payload_finish = None
