"""
GPS telemetry extraction from GoPro MP4 files.

Reads the GPMF metadata track, reconciles the GPS5 and GPS9 record layouts,
timestamps every sample and stitches chapter files into one timeline.
"""

from gps_telemetry.errors import (
    EmptyOrInvalidDurationError,
    GPSTelemetryError,
    SourceUnreadableError,
    StreamCorruptionError,
    UnknownRecordTypeError,
)
from gps_telemetry.models import ExtractOptions, GPSSchema, OutputRow
from gps_telemetry.processing.extractor import (
    GPSTelemetryExtractor,
    extract_rows,
    rows_to_dataframe,
)

__version__ = "1.0.0"
__all__ = [
    "EmptyOrInvalidDurationError",
    "ExtractOptions",
    "GPSSchema",
    "GPSTelemetryError",
    "GPSTelemetryExtractor",
    "OutputRow",
    "SourceUnreadableError",
    "StreamCorruptionError",
    "UnknownRecordTypeError",
    "extract_rows",
    "rows_to_dataframe",
]
