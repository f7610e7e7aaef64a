import argparse
import csv
import logging
import sys
from typing import List, Optional

import structlog

from config import Settings, get_settings
from errors import InputFileError, LedgerError, OutputFileError
from ingest import TransactionReader
from models import RunSummary
from report import write_report
from services import get_transaction_processor

logger = structlog.get_logger()


def configure_logging(settings: Settings) -> None:
    """Route structured logs through stdlib logging to stderr.

    stdout carries the account report, so nothing else may be written there.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(stream=sys.stderr, format="%(message)s", level=level)
    logging.getLogger().setLevel(level)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_format == "text":
        # ConsoleRenderer formats exceptions itself
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def run(input_path: str, output_path: Optional[str] = None, settings: Optional[Settings] = None) -> RunSummary:
    """Process one transaction log and write the account report."""
    settings = settings or get_settings()

    try:
        # undecodable bytes decode as U+FFFD and fail row validation
        infile = open(input_path, newline="", encoding="utf-8-sig", errors="replace")
    except OSError as e:
        raise InputFileError(f"cannot open input {input_path!r}: {e}") from e

    processor = get_transaction_processor()
    reader = TransactionReader(infile, delimiter=settings.csv_delimiter)
    applied = 0
    with infile:
        try:
            for transaction in reader:
                processor.apply(transaction)
                applied += 1
        except (OSError, csv.Error) as e:
            raise InputFileError(f"failed reading {input_path!r}: {e}") from e

    snapshots = processor.snapshot(settings.output_precision)
    if output_path is None:
        write_report(snapshots, sys.stdout, delimiter=settings.csv_delimiter)
    else:
        try:
            with open(output_path, "w", newline="", encoding="utf-8") as outfile:
                write_report(snapshots, outfile, delimiter=settings.csv_delimiter)
        except OSError as e:
            raise OutputFileError(f"cannot write output {output_path!r}: {e}") from e

    return RunSummary(
        rows_read=reader.rows_read,
        rows_skipped=reader.rows_skipped,
        transactions_applied=applied,
        accounts_count=len(snapshots),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transaction-ledger",
        description="Apply a transaction log and print the final state of every client account.",
    )
    parser.add_argument("input_path", nargs="?", metavar="INPUT", help="Input transactions CSV")
    parser.add_argument("output_path", nargs="?", metavar="OUTPUT", help="Output accounts CSV (defaults to stdout)")
    parser.add_argument("--input", dest="input_flag", metavar="FILE", help="Input transactions CSV")
    parser.add_argument("--output", dest="output_flag", metavar="FILE", help="Output accounts CSV (defaults to stdout)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    input_path = args.input_flag or args.input_path
    output_path = args.output_flag or args.output_path
    if args.input_flag and args.input_path and not args.output_path and not args.output_flag:
        # "--input a.csv b.csv": the lone positional is the output
        output_path = args.input_path
    if not input_path:
        parser.error("an input file is required")

    settings = get_settings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})
    configure_logging(settings)

    logger.info(
        "Starting ledger run",
        app=settings.app_name,
        version=settings.app_version,
        input=input_path,
        output=output_path or "<stdout>",
    )

    try:
        summary = run(input_path, output_path, settings)
    except LedgerError as e:
        logger.error("Ledger run aborted", error=str(e), error_type=type(e).__name__)
        return 1

    logger.info("Finished ledger run", **summary.model_dump())
    return 0


if __name__ == "__main__":
    sys.exit(main())
