"""Application services orchestrating ingest, reconciliation and export."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from holdings_recon.application.dto import SummaryRequest, SummaryResponse, WorkbookExport
from holdings_recon.domain import column_keys
from holdings_recon.domain.consolidation import Consolidator, order_files
from holdings_recon.domain.errors import UnparseableFileError
from holdings_recon.domain.grouping import group, group_keys
from holdings_recon.domain.ingest import ParsedHoldingFile
from holdings_recon.domain.models import FileGroup, HoldingRecord
from holdings_recon.domain.reconciliation import (
    in_range_slots,
    rank_bounds,
    reconcile_all,
    reconcile_slots,
    resolve_range,
    sort_by_net,
    totals,
)
from holdings_recon.domain.repositories import HoldingFileSource, SnapshotRowSource, SnapshotStore
from holdings_recon.domain.results import FileFailure, IngestedFile, IngestReport
from holdings_recon.domain.streaming import StreamingRangeAggregator
from holdings_recon.presentation.formula_mirror import LongTableBuilder
from holdings_recon.presentation.workbook import SummaryEntry, SummaryWorkbookWriter, position_meta

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestContext:
    source: HoldingFileSource
    consolidator: Consolidator = field(default_factory=Consolidator)


class IngestHoldingsUseCase:
    """Parse every source, keep the usable files and consolidate them.

    A file that cannot be parsed becomes a ``FileFailure``; the rest of the
    batch still goes through.
    """

    def __init__(self, context: IngestContext) -> None:
        self._context = context

    def execute(self) -> IngestReport:
        parsed: list[ParsedHoldingFile] = []
        failures: list[FileFailure] = []
        for name in self._context.source.source_names():
            try:
                parsed.append(self._context.source.parse(name))
            except UnparseableFileError as exc:
                logger.warning("Rejected %s: %s", exc.source, exc.reason)
                failures.append(FileFailure(source=exc.source, reason=exc.reason))

        consolidator = self._context.consolidator
        first_index = consolidator.next_file_index
        files = [
            IngestedFile(
                source=item.source,
                file_index=first_index + offset,
                first_date=item.first_date,
                second_date=item.second_date,
                rows=len(item.rows),
            )
            for offset, item in enumerate(order_files(parsed))
        ]
        records = consolidator.consolidate(parsed)
        groups = group(records)

        report = IngestReport(files=tuple(files), failures=tuple(failures), records=tuple(records), groups=tuple(groups))
        logger.info(
            "Ingested %d files (%d rejected): %d identities, %d snapshots",
            len(files),
            len(failures),
            report.identity_count,
            report.snapshot_count,
        )
        return report


class SummarizeHoldingsUseCase:
    def __init__(self, records: Sequence[HoldingRecord], groups: Sequence[FileGroup]) -> None:
        self._records = records
        self._groups = groups

    def execute(self, request: SummaryRequest | None = None) -> SummaryResponse:
        request = request or SummaryRequest()
        date_range = resolve_range(self._groups, request.start, request.end)
        rows = sort_by_net(reconcile_all(self._records, self._groups, date_range))
        return SummaryResponse(date_range=date_range, rows=rows, totals=totals(rows))


class PersistHoldingsUseCase:
    def __init__(self, store: SnapshotStore) -> None:
        self._store = store

    def execute(self, records: Sequence[HoldingRecord]) -> int:
        return self._store.replace_all(records)


class ExportWorkbookUseCase:
    """Build the summary workbook from in-memory records or from a row store."""

    def from_records(
        self,
        records: Sequence[HoldingRecord],
        groups: Sequence[FileGroup],
        request: SummaryRequest | None = None,
    ) -> WorkbookExport:
        request = request or SummaryRequest()
        date_range = resolve_range(groups, request.start, request.end)
        builder = LongTableBuilder(groups)
        writer = SummaryWorkbookWriter()
        for record in records:
            for row in builder.rows_for_record(record):
                writer.add_by_date_row(row)

        slots = in_range_slots(groups, date_range)
        entries = []
        for record in records:
            start_rank, end_rank = rank_bounds(record, slots)
            entries.append(
                SummaryEntry(
                    key_id=builder.key_id(record.identity),
                    row=reconcile_slots(record, slots),
                    start_rank=start_rank,
                    end_rank=end_rank,
                )
            )

        content = writer.finish(entries, groups, date_range, position_meta(builder.position_counts))
        return WorkbookExport(
            content=content,
            date_range=date_range,
            identities=len(entries),
            by_date_rows=builder.rows_written,
        )

    def from_store(
        self,
        store: SnapshotRowSource,
        request: SummaryRequest | None = None,
        extra_meta: Mapping[str, object] | None = None,
    ) -> WorkbookExport:
        """Single pass over ``store.stream_rows()``; HoldingRecords are never built."""
        request = request or SummaryRequest()
        groups = group_keys(column_keys.decode(text) for text in store.column_keys())
        date_range = resolve_range(groups, request.start, request.end)
        aggregator = StreamingRangeAggregator(groups, date_range)
        builder = LongTableBuilder(groups)
        writer = SummaryWorkbookWriter(constant_memory=True)
        for row in store.stream_rows():
            aggregator.add(row)
            by_date = builder.row_for_snapshot(row)
            if by_date is not None:
                writer.add_by_date_row(by_date)

        bounds = aggregator.rank_bounds()
        entries = [
            SummaryEntry(
                key_id=builder.key_id(summary.identity),
                row=summary,
                start_rank=bounds[summary.identity][0],
                end_rank=bounds[summary.identity][1],
            )
            for summary in aggregator.finalize()
        ]
        meta = position_meta(builder.position_counts)
        meta.update(extra_meta or {})
        content = writer.finish(entries, groups, date_range, meta)
        logger.info("Streamed %d rows from the store into the workbook", aggregator.rows_seen)
        return WorkbookExport(
            content=content,
            date_range=date_range,
            identities=len(entries),
            by_date_rows=builder.rows_written,
        )
