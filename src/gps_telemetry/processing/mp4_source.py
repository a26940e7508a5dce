"""
GPMF track access for GoPro MP4 files.

The GoPro MP4 contains a ``meta`` track (codec tag ``gpmd``) holding GPMF
payloads, one per MP4 packet, each covering roughly one second of
recording.  ``ffprobe`` reports every packet's presentation time, duration,
size and byte position in the file; the payload bytes are then read
straight from the file.  If ffprobe does not report positions, the whole
track is extracted once with ``ffmpeg`` and split by packet size.
"""

from __future__ import annotations

import json
import logging
import pathlib
import subprocess
import time
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterator

from gps_telemetry.config import config
from gps_telemetry.errors import SourceUnreadableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Payload:
    """One GPMF payload and its playback window ``[start, finish)`` in seconds."""

    index: int
    start: float
    finish: float
    data: bytes


@dataclass(frozen=True)
class _PacketInfo:
    start: float
    finish: float
    size: int
    pos: int | None


# ---------------------------------------------------------------------------
# ffprobe / ffmpeg helpers
# ---------------------------------------------------------------------------


def _run_ffprobe(mp4_path: pathlib.Path, *args: str) -> dict[str, Any]:
    try:
        result = subprocess.run(
            [
                config.FFPROBE,
                "-v",
                "quiet",
                "-print_format",
                "json",
                *args,
                str(mp4_path),
            ],
            capture_output=True,
            text=True,
            check=True,
        )
        return json.loads(result.stdout)
    except (OSError, subprocess.CalledProcessError, json.JSONDecodeError) as exc:
        raise SourceUnreadableError(
            f"ffprobe failed on {mp4_path}: {exc}", path=str(mp4_path)
        ) from exc


def _find_gpmf_stream(mp4_path: pathlib.Path) -> dict[str, Any]:
    """Return the ffprobe description of the ``gpmd`` track (GoPro Metadata)."""
    info = _run_ffprobe(mp4_path, "-show_streams")
    for s in info.get("streams", []):
        if s.get("codec_tag_string") == "gpmd":
            return s
    raise SourceUnreadableError(f"No gpmd stream found in {mp4_path}", path=str(mp4_path))


def _declared_duration(stream: dict[str, Any]) -> float | None:
    duration = stream.get("duration")
    if duration in (None, "N/A"):
        return None
    try:
        return float(duration)
    except ValueError:
        return None


def _read_packet_info(
    mp4_path: pathlib.Path, stream_idx: int, stream_duration: float | None
) -> list[_PacketInfo]:
    """Packet windows of the gpmd track.

    A packet without ``duration_time`` ends where the next one starts; the
    last one ends at *stream_duration*.
    """
    described = _run_ffprobe(mp4_path, "-show_packets", "-select_streams", str(stream_idx))
    raw_packets = described.get("packets", [])
    packets: list[_PacketInfo] = []
    try:
        for index, p in enumerate(raw_packets):
            start = float(p["pts_time"])
            duration = p.get("duration_time")
            if duration not in (None, "N/A"):
                finish = start + float(duration)
            elif index + 1 < len(raw_packets):
                finish = float(raw_packets[index + 1]["pts_time"])
            elif stream_duration is not None:
                finish = stream_duration
            else:
                finish = start
            if finish <= start:
                raise SourceUnreadableError(
                    f"Packet {index} of {mp4_path} has no positive time window "
                    f"({start} to {finish} s)",
                    path=str(mp4_path),
                )
            pos = p.get("pos")
            packets.append(
                _PacketInfo(
                    start=start,
                    finish=finish,
                    size=int(p["size"]),
                    pos=int(pos) if pos not in (None, "N/A") else None,
                )
            )
    except (KeyError, ValueError) as exc:
        raise SourceUnreadableError(
            f"Unexpected ffprobe packet description in {mp4_path}: {exc}",
            path=str(mp4_path),
        ) from exc
    return packets


def _extract_raw_track(mp4_path: pathlib.Path, stream_idx: int) -> bytes:
    logger.debug("Running ffmpeg to extract raw GPMF binary …")
    t0 = time.monotonic()
    try:
        result = subprocess.run(
            [
                config.FFMPEG,
                "-v",
                "quiet",
                "-i",
                str(mp4_path),
                "-map",
                f"0:{stream_idx}",
                "-f",
                "rawvideo",
                "-",
            ],
            capture_output=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise SourceUnreadableError(
            f"ffmpeg failed on {mp4_path}: {exc}", path=str(mp4_path)
        ) from exc
    logger.debug(
        "ffmpeg extracted %.1f KiB of GPMF data (%.2f s)",
        len(result.stdout) / 1024,
        time.monotonic() - t0,
    )
    return result.stdout


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------


class GPMFSource:
    """The GPMF payloads of one MP4 file.

    Use as a context manager; the file handle (or the extracted track) is
    released on exit::

        with GPMFSource(path) as source:
            for payload in source:
                ...
    """

    def __init__(self, mp4_path: str | pathlib.Path):
        self.path = pathlib.Path(mp4_path)
        self.duration = 0.0
        self._packets: list[_PacketInfo] = []
        self._file: BinaryIO | None = None
        self._raw: bytes | None = None

    def __enter__(self) -> GPMFSource:
        if not self.path.is_file():
            raise SourceUnreadableError(f"{self.path} does not exist", path=str(self.path))

        t0 = time.monotonic()
        stream = _find_gpmf_stream(self.path)
        stream_idx = int(stream["index"])
        logger.debug("Found gpmd metadata on stream index %d", stream_idx)

        declared = _declared_duration(stream)
        self._packets = _read_packet_info(self.path, stream_idx, declared)
        if declared is not None:
            self.duration = declared
        else:
            self.duration = self._packets[-1].finish if self._packets else 0.0
        logger.debug(
            "ffprobe returned %d packet descriptors (%.2f s)",
            len(self._packets),
            time.monotonic() - t0,
        )

        if all(p.pos is not None for p in self._packets):
            try:
                self._file = open(self.path, "rb")
            except OSError as exc:
                raise SourceUnreadableError(str(exc), path=str(self.path)) from exc
        else:
            self._raw = _extract_raw_track(self.path, stream_idx)
            total_expected = sum(p.size for p in self._packets)
            if total_expected != len(self._raw):
                logger.warning(
                    "Raw GPMF size mismatch: expected %d, got %d bytes",
                    total_expected,
                    len(self._raw),
                )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        self._raw = None

    def __len__(self) -> int:
        return len(self._packets)

    def __iter__(self) -> Iterator[Payload]:
        offset = 0
        for index, packet in enumerate(self._packets):
            if self._file is not None and packet.pos is not None:
                self._file.seek(packet.pos)
                data = self._file.read(packet.size)
            elif self._raw is not None:
                data = self._raw[offset : offset + packet.size]
            else:
                raise RuntimeError("GPMFSource used outside of its context")
            offset += packet.size

            if len(data) < packet.size:
                logger.warning(
                    "Payload %d of %s is truncated (%d of %d bytes), stopping",
                    index,
                    self.path.name,
                    len(data),
                    packet.size,
                )
                return
            yield Payload(index=index, start=packet.start, finish=packet.finish, data=data)


def open_gpmf_source(mp4_path: str | pathlib.Path) -> GPMFSource:
    return GPMFSource(mp4_path)
