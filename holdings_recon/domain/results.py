"""Domain-level results for ingest batches."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from .models import FileGroup, HoldingRecord


@dataclass(frozen=True)
class IngestedFile:
    source: str
    file_index: int
    first_date: date
    second_date: date
    rows: int


@dataclass(frozen=True)
class FileFailure:
    source: str
    reason: str


@dataclass(frozen=True)
class IngestReport:
    files: Sequence[IngestedFile] = field(default_factory=tuple)
    failures: Sequence[FileFailure] = field(default_factory=tuple)
    records: Sequence[HoldingRecord] = field(default_factory=tuple)
    groups: Sequence[FileGroup] = field(default_factory=tuple)

    @property
    def identity_count(self) -> int:
        return len(self.records)

    @property
    def snapshot_count(self) -> int:
        return sum(len(record.snapshots) for record in self.records)

    def has_usable_data(self) -> bool:
        return bool(self.files) and bool(self.records)
