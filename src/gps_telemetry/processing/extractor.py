"""
GPS telemetry extraction across one or more chapter files.

Files are processed strictly in the order given; a recording split by the
camera into ``GX01xxxx.MP4``, ``GX02xxxx.MP4``, … yields one continuous
table whose ``cts`` column keeps counting across file boundaries.
"""

from __future__ import annotations

import logging
import pathlib
import time
from typing import Callable, ContextManager, Iterable, Iterator, Protocol

import pandas as pd
import pandera.pandas as pa

from gps_telemetry.errors import EmptyOrInvalidDurationError, GPSTelemetryError
from gps_telemetry.models import ExtractOptions, LabelMode, OutputRow
from gps_telemetry.processing.dispatcher import (
    AuxiliaryState,
    PayloadContext,
    RecordDispatcher,
)
from gps_telemetry.processing.gpmf import GPMFStream
from gps_telemetry.processing.mp4_source import Payload, open_gpmf_source
from gps_telemetry.processing.rows import RowCollector, RowFilter
from gps_telemetry.processing.timeline import TimelineAccumulator

logger = logging.getLogger(__name__)


class PayloadSource(Protocol):
    duration: float

    def __len__(self) -> int: ...

    def __iter__(self) -> Iterator[Payload]: ...


class RowSink(Protocol):
    rows_written: int

    def write_header(self) -> None: ...

    def emit(self, row: OutputRow) -> None: ...


SourceOpener = Callable[[pathlib.Path], ContextManager[PayloadSource]]


class GPSTelemetryExtractor:
    """Drives sources, dispatcher, timeline and sink for a list of files.

    State that must survive file boundaries (timeline offset, GPS schema,
    header) lives on the extractor, so call :meth:`process` once per run.
    """

    def __init__(
        self,
        options: ExtractOptions,
        sink: RowSink | None = None,
        open_source: SourceOpener = open_gpmf_source,
    ):
        self.options = options
        self.sink: RowSink = sink if sink is not None else RowCollector()
        self.timeline = TimelineAccumulator()
        self.dispatcher = RecordDispatcher(RowFilter.from_options(options), self.timeline)
        self._open_source = open_source

    def label_for(self, path: pathlib.Path) -> str | None:
        mode = self.options.label_mode
        if mode is LabelMode.FILEPATH:
            return str(path)
        if mode is LabelMode.FILENAME:
            return path.name
        return None

    def process(self, paths: Iterable[str | pathlib.Path]) -> int:
        """Process *paths* in order; return the number of rows emitted.

        The first fatal error stops the run; rows already emitted stay emitted.
        """
        total = 0
        for path in paths:
            total += self.process_file(pathlib.Path(path))
        return total

    def process_file(self, path: pathlib.Path) -> int:
        label = self.label_for(path)
        rows_before = self.sink.rows_written
        rejected_before = self.dispatcher.rows_rejected
        t0 = time.monotonic()

        try:
            with self._open_source(path) as source:
                if source.duration <= 0.0:
                    raise EmptyOrInvalidDurationError(
                        f"{path} reports a telemetry duration of {source.duration} s",
                        path=str(path),
                    )
                self.sink.write_header()
                self.timeline.begin_file()

                payload_count = len(source)
                for payload in source:
                    self._process_payload(payload, label)
        except GPSTelemetryError as exc:
            if exc.path is None:
                exc.path = str(path)
            raise

        self.timeline.finish_file()

        logger.info(
            "%s: %d payloads (%.1f s, %s) → %d rows, %d filtered in %.2f s",
            path.name,
            payload_count,
            source.duration,
            self.dispatcher.schema.value.lower(),
            self.sink.rows_written - rows_before,
            self.dispatcher.rows_rejected - rejected_before,
            time.monotonic() - t0,
        )
        return self.sink.rows_written - rows_before

    def _process_payload(self, payload: Payload, label: str | None) -> None:
        context = PayloadContext(
            start=payload.start,
            finish=payload.finish,
            label=label,
            aux=AuxiliaryState(),
        )
        for record in GPMFStream(payload.data):
            for row in self.dispatcher.dispatch(record, context):
                self.sink.emit(row)


def extract_rows(
    paths: Iterable[str | pathlib.Path],
    options: ExtractOptions | None = None,
    open_source: SourceOpener = open_gpmf_source,
) -> list[OutputRow]:
    """Return the accepted GPS rows of *paths* without writing any text."""
    collector = RowCollector()
    extractor = GPSTelemetryExtractor(
        options or ExtractOptions(), sink=collector, open_source=open_source
    )
    extractor.process(paths)
    return collector.rows


# ---------------------------------------------------------------------------
# DataFrame export
# ---------------------------------------------------------------------------

gps_rows_schema = pa.DataFrameSchema(
    columns={
        "file": pa.Column(str, nullable=False, required=False),
        "relative_time_ms": pa.Column(float, nullable=False),
        "timestamp": pa.Column(nullable=False),
        "latitude": pa.Column(float, nullable=False),
        "longitude": pa.Column(float, nullable=False),
        "altitude": pa.Column(float, nullable=False),
        "speed_2d": pa.Column(float, nullable=False),
        "speed_3d": pa.Column(float, nullable=False),
        "fix": pa.Column(float, checks=pa.Check.ge(0), nullable=False),
        "precision": pa.Column(float, checks=pa.Check.ge(0), nullable=False),
    },
    strict=True,
    coerce=True,
)

_DATA_COLUMNS = [name for name in gps_rows_schema.columns if name != "file"]


def rows_to_dataframe(rows: Iterable[OutputRow]) -> pd.DataFrame:
    """Collect rows into a validated DataFrame.

    The ``file`` column is only present when the rows carry labels.
    """
    rows = list(rows)
    records = [
        {
            "file": row.label,
            "relative_time_ms": row.relative_time_ms,
            "timestamp": row.timestamp,
            "latitude": row.latitude,
            "longitude": row.longitude,
            "altitude": row.altitude,
            "speed_2d": row.speed_2d,
            "speed_3d": row.speed_3d,
            "fix": row.fix,
            "precision": row.precision,
        }
        for row in rows
    ]
    columns = list(_DATA_COLUMNS)
    if rows and all(row.label is not None for row in rows):
        columns.insert(0, "file")
    df = pd.DataFrame(records, columns=columns)
    return gps_rows_schema.validate(df)
