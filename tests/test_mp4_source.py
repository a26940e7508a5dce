"""Tests for GPMF track access through ffprobe / ffmpeg."""

import json
import subprocess

import pytest

from gps_telemetry.errors import SourceUnreadableError
from gps_telemetry.processing import mp4_source
from gps_telemetry.processing.mp4_source import open_gpmf_source

STREAMS = {
    "streams": [
        {"index": 0, "codec_type": "video", "codec_tag_string": "avc1"},
        {"index": 3, "codec_type": "data", "codec_tag_string": "gpmd", "duration": "2.002000"},
    ]
}


def make_run(streams, packets, raw=b""):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        if "-show_streams" in cmd:
            stdout = json.dumps(streams)
        elif "-show_packets" in cmd:
            stdout = json.dumps({"packets": packets})
        else:
            stdout = raw
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    return fake_run, calls


@pytest.fixture
def mp4_file(tmp_path):
    path = tmp_path / "GX010001.MP4"
    path.write_bytes(b"HEAD" + b"AAAAAAAA" + b"BBBB")
    return path


def test_payloads_are_read_by_position(monkeypatch, mp4_file):
    packets = [
        {"pts_time": "0.000000", "duration_time": "1.001000", "size": "8", "pos": "4"},
        {"pts_time": "1.001000", "duration_time": "1.001000", "size": "4", "pos": "12"},
    ]
    fake_run, calls = make_run(STREAMS, packets)
    monkeypatch.setattr(mp4_source.subprocess, "run", fake_run)

    with open_gpmf_source(mp4_file) as source:
        payloads = list(source)
        assert len(source) == 2
        assert source.duration == pytest.approx(2.002)

    assert [p.data for p in payloads] == [b"AAAAAAAA", b"BBBB"]
    assert payloads[1].start == pytest.approx(1.001)
    assert payloads[1].finish == pytest.approx(2.002)
    assert ["-select_streams", "3"] == calls[1][calls[1].index("-select_streams") :][:2]
    assert source._file is None


def test_raw_track_fallback_without_positions(monkeypatch, mp4_file):
    packets = [
        {"pts_time": "0.0", "duration_time": "1.0", "size": "3"},
        {"pts_time": "1.0", "duration_time": "1.0", "size": "2"},
    ]
    fake_run, calls = make_run(STREAMS, packets, raw=b"xyzuv")
    monkeypatch.setattr(mp4_source.subprocess, "run", fake_run)

    with open_gpmf_source(mp4_file) as source:
        payloads = list(source)

    assert [p.data for p in payloads] == [b"xyz", b"uv"]
    assert "-map" in calls[-1]


def test_duration_falls_back_to_last_packet(monkeypatch, mp4_file):
    streams = {"streams": [{"index": 2, "codec_tag_string": "gpmd"}]}
    packets = [{"pts_time": "0.0", "duration_time": "1.5", "size": "4", "pos": "0"}]
    fake_run, _ = make_run(streams, packets)
    monkeypatch.setattr(mp4_source.subprocess, "run", fake_run)

    with open_gpmf_source(mp4_file) as source:
        assert source.duration == 1.5


def test_truncated_payload_stops_iteration(monkeypatch, mp4_file):
    packets = [
        {"pts_time": "0.0", "duration_time": "1.0", "size": "4", "pos": "0"},
        {"pts_time": "1.0", "duration_time": "1.0", "size": "64", "pos": "12"},
    ]
    fake_run, _ = make_run(STREAMS, packets)
    monkeypatch.setattr(mp4_source.subprocess, "run", fake_run)

    with open_gpmf_source(mp4_file) as source:
        payloads = list(source)

    assert len(payloads) == 1


def test_missing_gpmd_track(monkeypatch, mp4_file):
    fake_run, _ = make_run({"streams": [{"index": 0, "codec_tag_string": "avc1"}]}, [])
    monkeypatch.setattr(mp4_source.subprocess, "run", fake_run)

    with pytest.raises(SourceUnreadableError):
        with open_gpmf_source(mp4_file):
            pass


def test_ffprobe_failure(monkeypatch, mp4_file):
    def failing_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(mp4_source.subprocess, "run", failing_run)

    with pytest.raises(SourceUnreadableError) as excinfo:
        with open_gpmf_source(mp4_file):
            pass
    assert excinfo.value.path == str(mp4_file)


def test_missing_file(tmp_path):
    with pytest.raises(SourceUnreadableError):
        with open_gpmf_source(tmp_path / "nope.mp4"):
            pass


def test_missing_packet_duration_uses_next_packet_and_stream_end(monkeypatch, mp4_file):
    packets = [
        {"pts_time": "0.000000", "duration_time": "N/A", "size": "8", "pos": "4"},
        {"pts_time": "1.001000", "size": "4", "pos": "12"},
    ]
    fake_run, _ = make_run(STREAMS, packets)
    monkeypatch.setattr(mp4_source.subprocess, "run", fake_run)

    with open_gpmf_source(mp4_file) as source:
        payloads = list(source)

    assert [(p.start, p.finish) for p in payloads] == [
        pytest.approx((0.0, 1.001)),
        pytest.approx((1.001, 2.002)),
    ]


def test_packet_without_any_window_is_unreadable(monkeypatch, mp4_file):
    streams = {"streams": [{"index": 2, "codec_tag_string": "gpmd"}]}
    packets = [{"pts_time": "0.0", "size": "4", "pos": "0"}]
    fake_run, _ = make_run(streams, packets)
    monkeypatch.setattr(mp4_source.subprocess, "run", fake_run)

    with pytest.raises(SourceUnreadableError) as excinfo:
        with open_gpmf_source(mp4_file):
            pass
    assert excinfo.value.path == str(mp4_file)
