"""Merging ingested files into one holding record per identity."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Iterable, Sequence

from .ingest import ParsedHoldingFile, snapshot_entries
from .models import HoldingRecord, Identity, SnapshotColumnKey, SnapshotValue

logger = logging.getLogger(__name__)


def order_files(files: Iterable[ParsedHoldingFile]) -> list[ParsedHoldingFile]:
    """Chronological by second AS ON date; ties broken so upload order never matters."""
    return sorted(files, key=lambda parsed: parsed.ordering_key())


class Consolidator:
    """Accumulates holding records across one or more ingest batches.

    File indices continue from the previous batch, so consolidating
    ``[a, b]`` then ``[c]`` lands on the same records as ``[a, b, c]`` when
    ``c`` sorts last.
    """

    def __init__(self, next_file_index: int = 0) -> None:
        self._records: dict[Identity, HoldingRecord] = {}
        self._periods: dict[tuple[int, int], date] = {}
        self._next_file_index = next_file_index

    @property
    def next_file_index(self) -> int:
        return self._next_file_index

    def consolidate(self, files: Sequence[ParsedHoldingFile]) -> list[HoldingRecord]:
        for parsed in order_files(files):
            file_index = self._next_file_index
            self._next_file_index += 1
            for identity, category, key, snapshot in snapshot_entries(parsed, file_index):
                record = self._records.get(identity)
                if record is None:
                    record = HoldingRecord(identity=identity)
                    self._records[identity] = record
                self._add(record, key, snapshot)
                record.adopt_category(category)
            logger.debug("Consolidated %s as file index %d", parsed.source, file_index)
        return self.records()

    def merge(self, records: Iterable[HoldingRecord]) -> list[HoldingRecord]:
        """Fold another record set in, summing snapshots that share a column key.

        When the incoming set reuses a file index that already names a
        different period here, all of its file indices are renumbered from
        ``next_file_index``.
        """
        incoming = list(records)
        remap = self._file_index_remap(incoming)
        for source in incoming:
            record = self._records.get(source.identity)
            if record is None:
                record = HoldingRecord(identity=source.identity)
                self._records[source.identity] = record
            for key, snapshot in source.snapshots.items():
                if key.file_index in remap:
                    key = replace(key, file_index=remap[key.file_index])
                self._add(record, key, snapshot)
            record.adopt_category(source.category)
        return self.records()

    def _file_index_remap(self, incoming: Sequence[HoldingRecord]) -> dict[int, int]:
        provenance: dict[tuple[int, int], date] = {}
        for record in incoming:
            for key in record.snapshots:
                if key.is_grouped and key.base_date is not None:
                    provenance.setdefault((key.file_index, key.position), key.base_date)
        clashes = {
            slot[0]
            for slot, base_date in provenance.items()
            if self._periods.get(slot, base_date) != base_date
        }
        indices = sorted({slot[0] for slot in provenance})
        if not clashes:
            self._next_file_index = max(self._next_file_index, max(indices, default=-1) + 1)
            return {}
        remap = {}
        for file_index in indices:
            remap[file_index] = self._next_file_index
            self._next_file_index += 1
        logger.warning(
            "Incoming records reuse file indices %s for other periods; renumbered to %s",
            sorted(clashes),
            sorted(remap.values()),
        )
        return remap

    def _add(self, record: HoldingRecord, key: SnapshotColumnKey, snapshot: SnapshotValue) -> None:
        record.add_snapshot(key, snapshot)
        if key.is_grouped and key.base_date is not None:
            self._periods.setdefault((key.file_index, key.position), key.base_date)

    def records(self) -> list[HoldingRecord]:
        return list(self._records.values())


def consolidate(files: Sequence[ParsedHoldingFile]) -> list[HoldingRecord]:
    return Consolidator().consolidate(files)


def merge_holdings(*record_sets: Iterable[HoldingRecord]) -> list[HoldingRecord]:
    """Union records by identity, summing snapshots that share a column key."""
    consolidator = Consolidator()
    for records in record_sets:
        consolidator.merge(records)
    return consolidator.records()
