"""Repository interfaces anchoring the domain layer."""
from __future__ import annotations

from typing import Iterable, Iterator, Protocol, Sequence

from .ingest import ParsedHoldingFile
from .models import HoldingRecord
from .streaming import SnapshotRow


class HoldingFileSource(Protocol):
    """Provides uploaded holding files, one parse per named source."""

    def source_names(self) -> Sequence[str]:
        ...

    def parse(self, name: str) -> ParsedHoldingFile:
        ...


class SnapshotRowSource(Protocol):
    """Provides persisted snapshot rows as a stream."""

    def column_keys(self) -> Sequence[str]:
        ...

    def stream_rows(self) -> Iterator[SnapshotRow]:
        ...


class SnapshotStore(SnapshotRowSource, Protocol):
    def replace_all(self, records: Iterable[HoldingRecord]) -> int:
        ...

    def clear(self) -> None:
        ...
