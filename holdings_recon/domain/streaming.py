"""Single-pass range summary over a stream of persisted snapshot rows.

Rows may arrive in any order: each one is placed by its period rank rather
than by arrival, so only per-identity running state is kept. Every in-range
second snapshot of an identity lies between its lowest and highest rank
(the start and end a range plan would pick), so the bought/sold sums need
no end-of-window check.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from . import column_keys
from .identity import identity_key
from .models import FIRST, SECOND, FileGroup, Identity, SnapshotValue, SummaryRow
from .reconciliation import RANK_STRIDE, DateRange, initial_from, rank_table


@dataclass(frozen=True)
class SnapshotRow:
    """One persisted (identity, column key) observation."""

    depository_id: str
    client_id: str
    name: str
    category: str
    column_key: str
    value: int
    bought: int
    sold: int

    @property
    def identity(self) -> Identity:
        return identity_key(self.depository_id, self.client_id, self.name)


@dataclass
class _RunningSummary:
    identity: Identity
    category: str = ""
    min_rank: int | None = None
    min_position: int = FIRST
    min_snapshot: SnapshotValue = SnapshotValue()
    max_rank: int | None = None
    bought: int = 0
    sold: int = 0

    def finalize(self) -> SummaryRow:
        if self.min_rank is None:
            return SummaryRow(identity=self.identity, category=self.category)
        return SummaryRow(
            identity=self.identity,
            initial_holding=initial_from(self.min_snapshot, self.min_position),
            bought=self.bought,
            sold=self.sold,
            category=self.category,
        )


class StreamingRangeAggregator:
    """Incremental equivalent of reconciling every identity over one range.

    The FileGroup sequence must be known up front (it only needs the
    distinct column keys, not the rows).
    """

    def __init__(self, groups: Sequence[FileGroup], date_range: DateRange) -> None:
        self._ranks = rank_table(groups, date_range)
        self._running: dict[Identity, _RunningSummary] = {}
        self.rows_seen = 0

    def add(self, row: SnapshotRow) -> None:
        self.rows_seen += 1
        identity = row.identity
        running = self._running.get(identity)
        if running is None:
            running = _RunningSummary(identity=identity)
            self._running[identity] = running
        if not running.category and row.category:
            running.category = row.category

        rank = self._ranks.get(column_keys.decode(row.column_key))
        if rank is None:
            return
        position = rank % RANK_STRIDE
        snapshot = SnapshotValue(value=row.value, bought=row.bought, sold=row.sold)

        if running.min_rank is None or rank < running.min_rank:
            running.min_rank = rank
            running.min_position = position
            running.min_snapshot = snapshot
        elif rank == running.min_rank:
            running.min_snapshot = running.min_snapshot + snapshot

        if running.max_rank is None or rank > running.max_rank:
            running.max_rank = rank

        if position == SECOND:
            running.bought += row.bought
            running.sold += row.sold

    def extend(self, rows: Iterable[SnapshotRow]) -> None:
        for row in rows:
            self.add(row)

    def finalize(self) -> list[SummaryRow]:
        return [running.finalize() for running in self._running.values()]

    def rank_bounds(self) -> dict[Identity, tuple[int, int]]:
        """Lowest and highest in-range period rank per identity; (0, 0) when none."""
        return {
            identity: (running.min_rank or 0, running.max_rank or 0)
            for identity, running in self._running.items()
        }


def summarize_stream(
    rows: Iterable[SnapshotRow],
    groups: Sequence[FileGroup],
    date_range: DateRange,
) -> list[SummaryRow]:
    aggregator = StreamingRangeAggregator(groups, date_range)
    aggregator.extend(rows)
    return aggregator.finalize()
