"""
GPS record dispatch.

Routes each record of a GPMF payload by its FourCC:

| FourCC | Layout | Role |
|--------|--------|------|
| GPSU | ASCII ``YYMMDDhhmmss.sss`` | UTC time of the first GPS5 sample (legacy) |
| GPSF | uint32 | fix: 0 = no lock, 2 = 2D, 3 = 3D (legacy) |
| GPSP | uint16 | precision, DOP x 100 (legacy) |
| GPS5 | 5 x int32 / SCAL | lat, lon, alt, 2D speed, 3D speed |
| GPS9 | ``lllllllSS`` / SCAL | GPS5 fields + days since 2000, seconds of day, DOP, fix |

Cameras up to the HERO10 write GPS5 with GPSU/GPSF/GPSP alongside it,
later cameras write GPS9 (and sometimes GPS5 as well).  Once a GPS9 record
has been seen the dispatcher switches to the unified schema for the rest of
the run and ignores GPS5 from then on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

import numpy as np

from gps_telemetry.errors import RecordDecodeError
from gps_telemetry.models import GPSSchema, OutputRow
from gps_telemetry.processing.gpmf import GPMFRecord
from gps_telemetry.processing.interpolation import GPSClock, SampleTimeInterpolator
from gps_telemetry.processing.rows import RowFilter
from gps_telemetry.processing.timeline import TimelineAccumulator

logger = logging.getLogger(__name__)


class RecordKind(StrEnum):
    GPS_TIME = "GPSU"
    GPS_FIX = "GPSF"
    GPS_PRECISION = "GPSP"
    LEGACY_POSITION = "GPS5"
    UNIFIED_POSITION = "GPS9"


_KINDS: dict[str, RecordKind] = {kind.value: kind for kind in RecordKind}

# GPS9 element indexes
GPS9_LAT = 0
GPS9_LON = 1
GPS9_ALT = 2
GPS9_SPEED_2D = 3
GPS9_SPEED_3D = 4
GPS9_DAYS = 5
GPS9_SECONDS = 6
GPS9_PRECISION = 7
GPS9_FIX = 8

_GPS5_ELEMENTS = 5
_GPS9_ELEMENTS = 9


@dataclass
class AuxiliaryState:
    """Values latched from GPSU / GPSF / GPSP within one payload.

    Every field is ``None`` until the matching record has been seen.
    """

    fix: int | None = None
    precision: int | None = None
    gps_time: GPSClock | None = None

    @property
    def complete(self) -> bool:
        return (
            self.fix is not None
            and self.precision is not None
            and self.gps_time is not None
        )


@dataclass
class PayloadContext:
    """Everything the dispatcher needs to know about the current payload."""

    start: float
    finish: float
    label: str | None = None
    aux: AuxiliaryState = field(default_factory=AuxiliaryState)


def decode_record(kind: RecordKind, record: GPMFRecord) -> GPSClock | int | np.ndarray:
    """Turn a raw record into the typed value its FourCC calls for.

    Raises :class:`RecordDecodeError` if the data does not fit.
    """
    if kind is RecordKind.GPS_TIME:
        return GPSClock.from_gpsu(record.text())
    if kind is RecordKind.GPS_FIX or kind is RecordKind.GPS_PRECISION:
        return int(record.values()[0, 0])
    return record.scaled()


class RecordDispatcher:
    """Classifies records and turns GPS position samples into output rows."""

    def __init__(
        self,
        row_filter: RowFilter,
        timeline: TimelineAccumulator,
        schema: GPSSchema = GPSSchema.UNDETERMINED,
    ):
        self.row_filter = row_filter
        self.timeline = timeline
        self.schema = schema
        self.rows_rejected = 0

    def dispatch(self, record: GPMFRecord, context: PayloadContext) -> list[OutputRow]:
        """Process one record; return the rows it produced that pass the filter."""
        kind = _KINDS.get(record.key)
        if kind is None:
            return []

        # Cameras emit empty placeholder records
        if not record.repeat or not record.struct_size:
            logger.debug("Skipping empty %s record", record.key)
            return []

        try:
            value = decode_record(kind, record)
        except RecordDecodeError as exc:
            logger.debug("Skipping undecodable %s record: %s", record.key, exc)
            return []

        self.timeline.record_payload(context.finish)

        if kind is RecordKind.GPS_TIME:
            context.aux.gps_time = value
        elif kind is RecordKind.GPS_FIX:
            context.aux.fix = value
        elif kind is RecordKind.GPS_PRECISION:
            context.aux.precision = value
        elif kind is RecordKind.LEGACY_POSITION:
            return self._legacy_rows(value, context)
        elif kind is RecordKind.UNIFIED_POSITION:
            return self._unified_rows(value, context)
        return []

    # -- GPS5 -----------------------------------------------------------------

    def _legacy_rows(self, samples: np.ndarray, context: PayloadContext) -> list[OutputRow]:
        if self.schema is GPSSchema.UNIFIED:
            return []
        self.schema = GPSSchema.LEGACY

        aux = context.aux
        if not aux.complete:
            logger.warning(
                "GPS5 record before GPSU/GPSF/GPSP in payload at %.3f s, skipping %d samples",
                context.start,
                samples.shape[0],
            )
            return []
        if samples.shape[1] < _GPS5_ELEMENTS:
            logger.debug("Skipping GPS5 record with %d elements", samples.shape[1])
            return []

        rows: list[OutputRow] = []
        interpolator = SampleTimeInterpolator(context.start, context.finish, samples.shape[0])
        for index, now in interpolator:
            if self.row_filter.accepts(aux.fix, aux.precision):
                lat, lon, alt, speed_2d, speed_3d = samples[index, :_GPS5_ELEMENTS]
                rows.append(
                    OutputRow(
                        label=context.label,
                        relative_time_ms=self.timeline.relative_ms(now),
                        timestamp=aux.gps_time.to_datetime(),
                        latitude=float(lat),
                        longitude=float(lon),
                        altitude=float(alt),
                        speed_2d=float(speed_2d),
                        speed_3d=float(speed_3d),
                        fix=aux.fix,
                        precision=aux.precision,
                        schema=GPSSchema.LEGACY,
                    )
                )
            else:
                self.rows_rejected += 1

            aux.gps_time.advance(interpolator.step)
        return rows

    # -- GPS9 -----------------------------------------------------------------

    def _unified_rows(self, samples: np.ndarray, context: PayloadContext) -> list[OutputRow]:
        if self.schema is not GPSSchema.UNIFIED:
            logger.info("GPS9 records found, ignoring GPS5 from now on")
        self.schema = GPSSchema.UNIFIED

        if samples.shape[1] < _GPS9_ELEMENTS:
            logger.debug("Skipping GPS9 record with %d elements", samples.shape[1])
            return []

        rows: list[OutputRow] = []
        interpolator = SampleTimeInterpolator(context.start, context.finish, samples.shape[0])
        clock: GPSClock | None = None
        for index, now in interpolator:
            sample = samples[index]
            if clock is None:
                # Only the first sample's day/second fields are used
                clock = GPSClock.from_gps9(sample[GPS9_DAYS], sample[GPS9_SECONDS])

            if self.row_filter.accepts(int(sample[GPS9_FIX]), int(sample[GPS9_PRECISION])):
                rows.append(
                    OutputRow(
                        label=context.label,
                        relative_time_ms=self.timeline.relative_ms(now),
                        timestamp=clock.to_datetime(),
                        latitude=float(sample[GPS9_LAT]),
                        longitude=float(sample[GPS9_LON]),
                        altitude=float(sample[GPS9_ALT]),
                        speed_2d=float(sample[GPS9_SPEED_2D]),
                        speed_3d=float(sample[GPS9_SPEED_3D]),
                        fix=float(sample[GPS9_FIX]),
                        precision=float(sample[GPS9_PRECISION]),
                        schema=GPSSchema.UNIFIED,
                    )
                )
            else:
                self.rows_rejected += 1

            clock.advance(interpolator.step)
        return rows
