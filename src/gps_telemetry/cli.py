#!/usr/bin/env python3
"""
GPS Telemetry Script

Extracts GPS time and position telemetry from one or more GoPro MP4 files
and prints it to standard output, one row per GPS sample.  Chapter files of
the same recording should be given in recording order; their timelines are
joined into one.

Usage:
    gps-telemetry [--print_filename] [--print_filepath] [--min_fix=N]
                  [--max_precision=N] [--verbose] <mp4file> [mp4file_2] ...

Examples:
    gps-telemetry GX010042.MP4 GX020042.MP4 > flight.csv
    gps-telemetry --print_filename --min_fix=3 --max_precision=500 GX010042.MP4
"""

import argparse
import logging
import sys

import rich.console
import rich.logging

from gps_telemetry.config import config
from gps_telemetry.errors import (
    EmptyOrInvalidDurationError,
    SourceUnreadableError,
    StreamCorruptionError,
    UnknownRecordTypeError,
)
from gps_telemetry.models import ExtractOptions
from gps_telemetry.processing.extractor import GPSTelemetryExtractor
from gps_telemetry.processing.rows import RowEmitter

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    log_format = r"\[[bold]%(name)s[/bold]] %(message)s"
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=log_format,
        datefmt="[%X]",
        handlers=[
            rich.logging.RichHandler(
                # stdout carries the data rows
                console=rich.console.Console(color_system="auto", stderr=True),
                show_level=True,
                show_path=False,
                enable_link_path=False,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                markup=True,
            )
        ],
        force=True,
    )


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
    if number < 0:
        raise argparse.ArgumentTypeError(f"{value!r} must be >= 0")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gps-telemetry",
        description="Extract GPS time and position telemetry from GoPro videos",
    )
    parser.add_argument(
        "--print_filename",
        action="store_true",
        default=config.PRINT_FILENAME,
        help="print the filename in output",
    )
    parser.add_argument(
        "--print_filepath",
        action="store_true",
        default=config.PRINT_FILEPATH,
        help="print the full file path in output",
    )
    parser.add_argument(
        "--min_fix",
        type=non_negative_int,
        default=config.MIN_FIX,
        metavar="N",
        help="only output entries with fix >= N",
    )
    parser.add_argument(
        "--max_precision",
        type=non_negative_int,
        default=config.MAX_PRECISION,
        metavar="N",
        help="only output entries with precision <= N",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    parser.add_argument("files", nargs="+", metavar="mp4file", help="GoPro MP4 files")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    options = ExtractOptions(
        print_filename=args.print_filename,
        print_filepath=args.print_filepath,
        min_fix=args.min_fix,
        max_precision=args.max_precision,
    )

    emitter = RowEmitter(sys.stdout, options.label_mode)
    extractor = GPSTelemetryExtractor(options, sink=emitter)

    try:
        extractor.process(args.files)
    except SourceUnreadableError as e:
        logger.error(f"{e.path} is an invalid MP4/MOV or it has no GPMF data")
        logger.debug(str(e))
        return e.exit_status
    except EmptyOrInvalidDurationError as e:
        logger.error(f"{e.path} has no GPMF telemetry duration")
        return e.exit_status
    except UnknownRecordTypeError as e:
        logger.error(f"Unknown GPMF Type within {e.path}: {e}")
        return e.exit_status
    except StreamCorruptionError as e:
        logger.error(f"GPMF data has corruption in {e.path}: {e}")
        return e.exit_status
    finally:
        sys.stdout.flush()

    logger.debug(f"Wrote {emitter.rows_written} rows")
    return 0


if __name__ == "__main__":
    sys.exit(main())
