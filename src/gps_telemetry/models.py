"""Data models shared by the extraction pipeline."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import StrEnum

import pydantic

from gps_telemetry.config import config

# ---------------------------------------------------------------------------
# Output columns
# ---------------------------------------------------------------------------

LABEL_COLUMN = "file"

COLUMN_NAMES: tuple[str, ...] = (
    "cts",
    "date",
    "GPS (Lat.) [deg]",
    "GPS (Long.) [deg]",
    "GPS (Alt.) [m]",
    "GPS (2D speed) [m/s]",
    "GPS (3D speed) [m/s]",
    "fix",
    "precision",
)


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class LabelMode(StrEnum):
    NONE = "none"
    FILENAME = "filename"
    FILEPATH = "filepath"


class ExtractOptions(pydantic.BaseModel):
    """Options consumed by the extractor (normally built from CLI flags)."""

    model_config = pydantic.ConfigDict(frozen=True)

    print_filename: bool = config.PRINT_FILENAME
    print_filepath: bool = config.PRINT_FILEPATH
    min_fix: pydantic.NonNegativeInt | None = config.MIN_FIX
    max_precision: pydantic.NonNegativeInt | None = config.MAX_PRECISION

    @property
    def label_mode(self) -> LabelMode:
        # Full path takes precedence over the bare file name
        if self.print_filepath:
            return LabelMode.FILEPATH
        if self.print_filename:
            return LabelMode.FILENAME
        return LabelMode.NONE


# ---------------------------------------------------------------------------
# GPS schema selection
# ---------------------------------------------------------------------------


class GPSSchema(StrEnum):
    """Which GPS position layout the camera writes.

    ``LEGACY`` is ``GPS5`` with separate ``GPSU``/``GPSF``/``GPSP`` records,
    ``UNIFIED`` is ``GPS9`` with time, fix and precision inline.  Once
    ``UNIFIED`` is seen it stays selected for the rest of the run.
    """

    UNDETERMINED = "UNDETERMINED"
    LEGACY = "LEGACY"
    UNIFIED = "UNIFIED"


# ---------------------------------------------------------------------------
# Output row
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OutputRow:
    """One accepted GPS sample, ready to be written."""

    label: str | None
    relative_time_ms: float  # milliseconds since the start of the first file
    timestamp: datetime.datetime  # UTC, millisecond resolution
    latitude: float
    longitude: float
    altitude: float
    speed_2d: float
    speed_3d: float
    fix: int | float
    precision: int | float
    schema: GPSSchema

    @property
    def timestamp_text(self) -> str:
        """ISO 8601 UTC timestamp with milliseconds, e.g. ``2022-03-01T10:00:00.250Z``."""
        millis = self.timestamp.microsecond // 1000
        return f"{self.timestamp:%Y-%m-%dT%H:%M:%S}.{millis:03d}Z"
