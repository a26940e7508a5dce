"""Row filtering and text output for accepted GPS samples."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TextIO

from gps_telemetry.models import (
    COLUMN_NAMES,
    LABEL_COLUMN,
    ExtractOptions,
    GPSSchema,
    LabelMode,
    OutputRow,
)


@dataclass(frozen=True)
class RowFilter:
    """Accept samples by GPS fix quality and precision (DOP x 100).

    Both bounds are inclusive; ``None`` disables that bound.
    """

    min_fix: int | None = None
    max_precision: int | None = None

    @classmethod
    def from_options(cls, options: ExtractOptions) -> RowFilter:
        return cls(min_fix=options.min_fix, max_precision=options.max_precision)

    def accepts(self, fix: int, precision: int) -> bool:
        if self.min_fix is not None and fix < self.min_fix:
            return False
        if self.max_precision is not None and precision > self.max_precision:
            return False
        return True


def format_header(label_mode: LabelMode) -> str:
    columns = list(COLUMN_NAMES)
    if label_mode is not LabelMode.NONE:
        columns.insert(0, LABEL_COLUMN)
    return ",".join(f'"{c}"' for c in columns)


def format_row(row: OutputRow) -> str:
    """Render one row; only the label is quoted."""
    fields: list[str] = []
    if row.label is not None:
        fields.append(f'"{row.label}"')
    fields.append(f"{row.relative_time_ms:f}")
    fields.append(row.timestamp_text)
    fields.extend(
        f"{v:.6f}"
        for v in (row.latitude, row.longitude, row.altitude, row.speed_2d, row.speed_3d)
    )
    if row.schema is GPSSchema.LEGACY:
        # GPSF / GPSP are raw integers
        fields.append(f"{int(row.fix):d}")
        fields.append(f"{int(row.precision):d}")
    else:
        fields.append(f"{row.fix:.6f}")
        fields.append(f"{row.precision:.6f}")
    return ", ".join(fields)


class RowEmitter:
    """Writes the header once, then one line per accepted row."""

    def __init__(self, stream: TextIO, label_mode: LabelMode = LabelMode.NONE):
        self.stream = stream
        self.label_mode = label_mode
        self.header_written = False
        self.rows_written = 0

    def write_header(self) -> None:
        if self.header_written:
            return
        self.stream.write(format_header(self.label_mode) + "\n")
        self.header_written = True

    def emit(self, row: OutputRow) -> None:
        self.write_header()
        self.stream.write(format_row(row) + "\n")
        self.rows_written += 1


class RowCollector:
    """Emitter stand-in that keeps rows in memory instead of writing text."""

    def __init__(self):
        self.rows: list[OutputRow] = []

    @property
    def rows_written(self) -> int:
        return len(self.rows)

    def write_header(self) -> None:
        pass

    def emit(self, row: OutputRow) -> None:
        self.rows.append(row)
