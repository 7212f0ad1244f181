"""Shared command line and record loop for the three batch jobs."""
import argparse
import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from graph_client import GraphSession, close_session, open_session
from input_loader import InputError, load_records
from reporting import FAILED, RunReport, configure_logging
from settings import ConfigError

logger = logging.getLogger(__name__)

Processor = Callable[[GraphSession, Any], Tuple[str, str]]


def build_parser(description: str) -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description=description)
    ap.add_argument("path", help="Input spreadsheet (.xlsx or .csv)")
    ap.add_argument("--log-file", help="Also write console output to this file")
    ap.add_argument("--report", help="Write per-record outcomes to this CSV")
    ap.add_argument("--what-if", action="store_true", help="Dry run: look everything up but create nothing")
    ap.add_argument("--verbose", action="store_true", help="Log every Graph request")
    return ap


def run_batch(
    session: GraphSession,
    records: List[Dict[str, Any]],
    row_type: Any,
    process: Processor,
    report: RunReport,
    name_column: str,
) -> RunReport:
    """Process records one at a time; a failing record never stops the batch."""
    total = len(records)
    for index, record in enumerate(records):
        row_number = index + 2  # header is row 1
        name = str(record.get(name_column) or f"row {row_number}")
        logger.info(f"[{index + 1}/{total}] {name}")
        try:
            row = row_type.from_record(record)
            status, message = process(session, row)
        except Exception as e:
            status, message = FAILED, str(e)
            logger.warning(f"Row {row_number} ({name}) failed: {message}")
        report.add(row_number, name, status, message)
    return report


def main(
    argv: Optional[Sequence[str]],
    job: str,
    description: str,
    row_type: Any,
    process: Processor,
    name_column: str,
    settings_factory: Optional[Callable[[], Any]] = None,
) -> int:
    """Run one job end to end and return its exit code.

    ``settings_factory`` is called once after the input is loaded and its
    result is passed to ``process`` as ``settings``.
    """
    args = build_parser(description).parse_args(argv)
    configure_logging(args.log_file, args.verbose)

    try:
        records = load_records(args.path, row_type.COLUMNS)
    except InputError as e:
        logger.error(str(e))
        return 1

    if settings_factory is not None:
        try:
            process = functools.partial(process, settings=settings_factory())
        except ConfigError as e:
            logger.error(str(e))
            return 2

    try:
        session = open_session(what_if=args.what_if)
    except RuntimeError as e:
        logger.error(f"Could not connect to Microsoft Graph: {e}")
        return 2

    report = RunReport(job)
    try:
        run_batch(session, records, row_type, process, report, name_column)
    finally:
        close_session()

    logger.info(report.summary())
    if args.report:
        report.write_csv(args.report)
        logger.info(f"Report written to {args.report}")
    return 0
