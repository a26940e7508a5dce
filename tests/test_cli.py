"""Tests for the command-line front-end."""

import functools

import pytest

from gps_telemetry import cli
from gps_telemetry.processing.extractor import GPSTelemetryExtractor
from tests.conftest import FakeSource
from tests.gpmf_builders import device, klv, legacy_payload

SAMPLES = [(47.5, 8.25, 400.0, 1.5, 2.0), (47.5001, 8.2501, 401.0, 1.75, 2.25)]


@pytest.fixture
def use_fake_sources(monkeypatch, fake_sources):
    sources, opener = fake_sources
    monkeypatch.setattr(
        cli,
        "GPSTelemetryExtractor",
        functools.partial(GPSTelemetryExtractor, open_source=opener),
    )
    return sources


def test_rows_go_to_stdout(use_fake_sources, capsys):
    use_fake_sources["GX010001.MP4"] = FakeSource([(0.0, 1.0, legacy_payload(SAMPLES))])

    status = cli.main(["--print_filename", "--min_fix=3", "GX010001.MP4"])

    lines = capsys.readouterr().out.splitlines()
    assert status == 0
    assert lines[0].startswith('"file","cts","date"')
    assert lines[1] == (
        '"GX010001.MP4", 0.000000, 2022-03-01T10:00:00.000Z, 47.500000, 8.250000, '
        "400.000000, 1.500000, 2.000000, 3, 150"
    )
    assert len(lines) == 3


def test_max_precision_flag(use_fake_sources, capsys):
    use_fake_sources["a.mp4"] = FakeSource([(0.0, 1.0, legacy_payload(SAMPLES, precision=600))])

    status = cli.main(["--max_precision=500", "a.mp4"])

    lines = capsys.readouterr().out.splitlines()
    assert status == 0
    assert len(lines) == 1
    assert lines[0].startswith('"cts","date"')


def test_unknown_type_exit_status(use_fake_sources):
    use_fake_sources["a.mp4"] = FakeSource([(0.0, 1.0, device(klv("ABCD", "X", 4, 1, b"\x00" * 4)))])

    assert cli.main(["a.mp4"]) == 9


def test_corruption_exit_status(use_fake_sources):
    use_fake_sources["a.mp4"] = FakeSource([(0.0, 1.0, b"GPS5l\x14\x00\x09" + b"\x00" * 8)])

    assert cli.main(["a.mp4"]) == 2


def test_unreadable_file_exit_status(tmp_path):
    assert cli.main([str(tmp_path / "missing.mp4")]) == 255


def test_negative_filter_is_a_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--min_fix=-1", "a.mp4"])
    assert excinfo.value.code == 2


def test_files_are_required():
    with pytest.raises(SystemExit):
        cli.main(["--print_filename"])


def test_invalid_duration_exit_status(use_fake_sources):
    use_fake_sources["a.mp4"] = FakeSource([(0.0, 1.0, legacy_payload(SAMPLES))], duration=0.0)

    assert cli.main(["a.mp4"]) == 255
