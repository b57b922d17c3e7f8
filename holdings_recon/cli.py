"""Command-line entrypoint for holdings reconciliation."""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

from holdings_recon.application.dto import SummaryRequest
from holdings_recon.application.use_cases import (
    ExportWorkbookUseCase,
    IngestContext,
    IngestHoldingsUseCase,
    PersistHoldingsUseCase,
    SummarizeHoldingsUseCase,
)
from holdings_recon.domain.column_keys import parse_date_text
from holdings_recon.domain.errors import HoldingsError
from holdings_recon.infrastructure.repositories.excel_repositories import PathHoldingFiles
from holdings_recon.infrastructure.repositories.sql_repository import SqlSnapshotStore, create_store_engine
from holdings_recon.presentation.matrix_report import render_csv


def _date_arg(value: str) -> date:
    parsed = parse_date_text(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"not a date: {value!r} (use YYYY-MM-DD or DD-MM-YYYY)")
    return parsed


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile AS ON holding snapshots over a date range")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--database-url", type=str, help="SQLAlchemy URL of the snapshot store")
    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="Ingest holding files and summarise them")
    ingest.add_argument("files", nargs="+", type=Path, help="Holding statements (.xlsx, .xls or .csv)")
    ingest.add_argument("--from", dest="start", type=_date_arg, help="Range start (defaults to earliest date)")
    ingest.add_argument("--to", dest="end", type=_date_arg, help="Range end (defaults to latest date)")
    ingest.add_argument("--persist", action="store_true", help="Replace the store contents with this batch")
    ingest.add_argument("--workbook", type=Path, help="Write the summary workbook here")
    ingest.add_argument("--csv", type=Path, help="Write the matrix report here")

    export = commands.add_parser("export", help="Export the summary workbook from the store")
    export.add_argument("--workbook", type=Path, required=True, help="Output .xlsx path")
    export.add_argument("--from", dest="start", type=_date_arg, help="Range start")
    export.add_argument("--to", dest="end", type=_date_arg, help="Range end")
    return parser.parse_args(argv)


def _store(args: argparse.Namespace) -> SqlSnapshotStore:
    return SqlSnapshotStore(create_store_engine(args.database_url))


def run_ingest(args: argparse.Namespace) -> int:
    report = IngestHoldingsUseCase(IngestContext(source=PathHoldingFiles(args.files))).execute()

    print("Ingest Summary")
    print("==============")
    for item in report.files:
        print(
            f"- {item.source}: file {item.file_index}, AS ON {item.first_date.isoformat()} "
            f"and {item.second_date.isoformat()}, {item.rows} rows"
        )
    for failure in report.failures:
        print(f"- {failure.source}: REJECTED ({failure.reason})")
    print(f"Identities: {report.identity_count}")
    print(f"Snapshots: {report.snapshot_count}")

    if not report.has_usable_data():
        print("\nNo usable data ingested.")
        return 1

    request = SummaryRequest(start=args.start, end=args.end)
    summary = SummarizeHoldingsUseCase(report.records, report.groups).execute(request)
    totals = summary.totals
    print(f"\nRange: {summary.date_range.start.isoformat()} to {summary.date_range.end.isoformat()}")
    print(f"Initial holding: {totals['initial_holding']}")
    print(f"Bought: {totals['bought']}")
    print(f"Sold: {totals['sold']}")
    print(f"Net: {totals['net']}")
    print(f"Still holding: {totals['still_holding']}")

    if args.persist:
        written = PersistHoldingsUseCase(_store(args)).execute(report.records)
        print(f"\nPersisted {written} snapshot rows.")
    if args.csv:
        args.csv.write_bytes(render_csv(report.records, report.groups))
        print(f"Matrix written to {args.csv}")
    if args.workbook:
        export = ExportWorkbookUseCase().from_records(report.records, report.groups, request)
        args.workbook.write_bytes(export.content)
        print(f"Workbook written to {args.workbook}")
    return 0


def run_export(args: argparse.Namespace) -> int:
    store = _store(args)
    request = SummaryRequest(start=args.start, end=args.end)
    export = ExportWorkbookUseCase().from_store(store, request, extra_meta=store.stats())
    args.workbook.write_bytes(export.content)
    print(
        f"Workbook written to {args.workbook}: {export.identities} identities, "
        f"{export.by_date_rows} ByDate rows, range {export.date_range.start.isoformat()} "
        f"to {export.date_range.end.isoformat()}"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "ingest":
            return run_ingest(args)
        return run_export(args)
    except HoldingsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
