"""Error kinds reported while extracting GPS telemetry.

Each fatal error carries the process exit status the command-line tool
returns for it.  ``RecordDecodeError`` is never fatal: a single record that
cannot be decoded is skipped.
"""

from __future__ import annotations


class GPSTelemetryError(Exception):
    """Base class for fatal extraction errors."""

    exit_status: int = 1

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class SourceUnreadableError(GPSTelemetryError):
    """The file cannot be opened or carries no GPMF telemetry track."""

    exit_status = 255


class EmptyOrInvalidDurationError(GPSTelemetryError):
    """The telemetry track reports a non-positive duration."""

    exit_status = 255


class UnknownRecordTypeError(GPSTelemetryError):
    """A GPMF item uses a type character this decoder does not know."""

    exit_status = 9


class StreamCorruptionError(GPSTelemetryError):
    """The GPMF payload is structurally broken."""

    exit_status = 2


class RecordDecodeError(ValueError):
    """A single record's data could not be decoded into typed values."""
