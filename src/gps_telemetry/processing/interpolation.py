"""
Per-sample timing inside one GPMF payload.

A payload covers the playback window ``[start, finish)`` and holds *N*
samples of a GPS stream.  Samples are spread evenly across the window, so
sample *i* sits at ``start + i * step`` with ``step = (finish - start) / N``.

The absolute (UTC) time of each sample is kept as a :class:`GPSClock`, a
whole-second Unix time plus a millisecond remainder, which is advanced by
``step`` after every sample.  Carrying whole seconds out of the remainder
lets ordinary calendar arithmetic handle minute, hour and day rollovers.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator

from gps_telemetry.errors import RecordDecodeError

SECONDS_PER_DAY = 86400

# GPS9 counts days from 2000-01-01T00:00:00Z
GPS9_EPOCH = int(datetime(2000, 1, 1, tzinfo=timezone.utc).timestamp())

# ``YYMMDDhhmmss.sss``, e.g. ``"250508104822.180"``
_GPSU_RE = re.compile(r"^(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})\.(\d{3})")


@dataclass
class GPSClock:
    """Absolute UTC time as whole Unix seconds plus a millisecond remainder."""

    seconds: int
    milliseconds: float = 0.0

    @classmethod
    def from_gpsu(cls, gpsu: str) -> GPSClock:
        """Parse a ``GPSU`` string (``YYMMDDhhmmss.sss``, years from 2000)."""
        m = _GPSU_RE.match(gpsu)
        if m is None:
            raise RecordDecodeError(f"malformed GPSU timestamp {gpsu!r}")
        yy, mo, dd, hh, mi, ss, frac = (int(g) for g in m.groups())
        try:
            dt = datetime(2000 + yy, mo, dd, hh, mi, ss, tzinfo=timezone.utc)
        except ValueError as exc:
            raise RecordDecodeError(f"invalid GPSU timestamp {gpsu!r}: {exc}") from exc
        return cls(seconds=int(dt.timestamp()), milliseconds=float(frac))

    @classmethod
    def from_gps9(cls, days: float, seconds_of_day: float) -> GPSClock:
        """Build the clock from the GPS9 day count and seconds-of-day fields.

        The camera counts days from 1, hence the extra day on top of
        :data:`GPS9_EPOCH`.
        """
        sub_seconds = math.fmod(seconds_of_day, 1.0)
        seconds = GPS9_EPOCH + (int(days) + 1) * SECONDS_PER_DAY
        seconds += int(seconds_of_day - sub_seconds)
        return cls(seconds=seconds, milliseconds=float(int(1000.0 * sub_seconds)))

    def advance(self, step: float) -> None:
        """Move the clock forward by *step* seconds."""
        self.milliseconds += step * 1000.0
        while self.milliseconds >= 1000.0:
            self.milliseconds -= 1000.0
            self.seconds += 1

    def to_datetime(self) -> datetime:
        """UTC datetime truncated to whole milliseconds."""
        dt = datetime.fromtimestamp(self.seconds, tz=timezone.utc)
        return dt.replace(microsecond=int(self.milliseconds) * 1000)


@dataclass(frozen=True)
class SampleTimeInterpolator:
    """Evenly spaced sample times within a payload window."""

    start: float
    finish: float
    count: int

    @property
    def step(self) -> float:
        return (self.finish - self.start) / self.count

    def relative_time(self, index: int) -> float:
        """Playback time (seconds, relative to the file) of sample *index*."""
        return self.start + index * self.step

    def __iter__(self) -> Iterator[tuple[int, float]]:
        for index in range(self.count):
            yield index, self.relative_time(index)
