"""Range-bounded reconciliation of consolidated holdings.

The FileGroup sequence is the arena: a range selects slots out of it, and a
plan records the start and end of one identity's data as indices into those
slots. Everything reported is derived from the plan, so ``still_holding`` is
always ``initial_holding + bought - sold``.

Every snapshot also has a period rank, ``(sequence index + 1) * 10 +
position``. Among the snapshots an identity has inside a range, the plan's
start is the one with the lowest rank and its end the one with the highest;
the streaming aggregator and the spreadsheet formulas rely on that.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from .errors import InvalidRangeError
from .models import (
    FIRST,
    SECOND,
    FileGroup,
    HoldingRecord,
    SnapshotColumnKey,
    SnapshotValue,
    SummaryRow,
)

RANK_STRIDE = 10


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range; ``start <= end`` is expected."""

    start: date
    end: date

    @classmethod
    def between(cls, first: date, second: date) -> DateRange:
        if first > second:
            first, second = second, first
        return cls(start=first, end=second)

    def contains(self, value: date | None) -> bool:
        return value is not None and self.start <= value <= self.end


@dataclass(frozen=True)
class PeriodSlot:
    """The part of one FileGroup that falls inside a range."""

    sequence_index: int
    first_key: SnapshotColumnKey | None
    second_key: SnapshotColumnKey | None


@dataclass(frozen=True)
class RangePlan:
    start_slot: int
    start_mode: int
    end_slot: int
    end_mode: int


def period_rank(sequence_index: int, position: int) -> int:
    return (sequence_index + 1) * RANK_STRIDE + position


def rank_table(groups: Sequence[FileGroup], date_range: DateRange | None = None) -> dict[SnapshotColumnKey, int]:
    """Period rank of every key, optionally restricted to keys inside a range."""
    ranks: dict[SnapshotColumnKey, int] = {}
    for index, file_group in enumerate(groups):
        for key in file_group.keys():
            if date_range is not None and not date_range.contains(key.base_date):
                continue
            ranks[key] = period_rank(index, key.position)
    return ranks


def default_range(groups: Iterable[FileGroup]) -> DateRange | None:
    dates = [key.base_date for file_group in groups for key in file_group.keys() if key.base_date is not None]
    if not dates:
        return None
    return DateRange(start=min(dates), end=max(dates))


def resolve_range(groups: Sequence[FileGroup], start: date | None = None, end: date | None = None) -> DateRange:
    """Fill unset bounds from the full span of available dates and put them in order."""
    full = default_range(groups)
    if full is None:
        if start is None or end is None:
            raise InvalidRangeError("no AS ON dates available to default the range from")
        return DateRange.between(start, end)
    return DateRange.between(start or full.start, end or full.end)


def in_range_slots(groups: Sequence[FileGroup], date_range: DateRange) -> list[PeriodSlot]:
    slots: list[PeriodSlot] = []
    for index, file_group in enumerate(groups):
        first = file_group.first_key if file_group.first_key and date_range.contains(file_group.first_key.base_date) else None
        second = (
            file_group.second_key
            if file_group.second_key and date_range.contains(file_group.second_key.base_date)
            else None
        )
        if first is None and second is None:
            continue
        slots.append(PeriodSlot(sequence_index=index, first_key=first, second_key=second))
    return slots


def plan_range(record: HoldingRecord, slots: Sequence[PeriodSlot]) -> RangePlan | None:
    start: tuple[int, int] | None = None
    for i, slot in enumerate(slots):
        if record.get(slot.first_key) is not None:
            start = (i, FIRST)
            break
        if record.get(slot.second_key) is not None:
            start = (i, SECOND)
            break
    if start is None:
        return None

    end: tuple[int, int] = start
    for i in range(len(slots) - 1, start[0] - 1, -1):
        slot = slots[i]
        if record.get(slot.second_key) is not None:
            end = (i, SECOND)
            break
        if record.get(slot.first_key) is not None:
            end = (i, FIRST)
            break

    return RangePlan(start_slot=start[0], start_mode=start[1], end_slot=end[0], end_mode=end[1])


def initial_from(snapshot: SnapshotValue, mode: int) -> int:
    """A second snapshot already includes its period's deltas; back them out."""
    if mode == FIRST:
        return snapshot.value
    return snapshot.value - snapshot.delta


def reconcile_slots(record: HoldingRecord, slots: Sequence[PeriodSlot]) -> SummaryRow:
    plan = plan_range(record, slots)
    if plan is None:
        return SummaryRow(identity=record.identity, category=record.category)

    start_slot = slots[plan.start_slot]
    start_key = start_slot.first_key if plan.start_mode == FIRST else start_slot.second_key
    initial = initial_from(record.snapshots[start_key], plan.start_mode)

    bought = 0
    sold = 0
    for i in range(plan.start_slot, plan.end_slot + 1):
        if i == plan.end_slot and plan.end_mode == FIRST:
            continue
        snapshot = record.get(slots[i].second_key)
        if snapshot is None:
            continue
        bought += snapshot.bought
        sold += snapshot.sold

    return SummaryRow(
        identity=record.identity,
        initial_holding=initial,
        bought=bought,
        sold=sold,
        category=record.category,
    )


def rank_bounds(record: HoldingRecord, slots: Sequence[PeriodSlot]) -> tuple[int, int]:
    """Period ranks of the planned start and end snapshots; (0, 0) without data."""
    plan = plan_range(record, slots)
    if plan is None:
        return (0, 0)
    return (
        period_rank(slots[plan.start_slot].sequence_index, plan.start_mode),
        period_rank(slots[plan.end_slot].sequence_index, plan.end_mode),
    )


def reconcile(record: HoldingRecord, groups: Sequence[FileGroup], date_range: DateRange) -> SummaryRow:
    return reconcile_slots(record, in_range_slots(groups, date_range))


def reconcile_all(
    records: Iterable[HoldingRecord],
    groups: Sequence[FileGroup],
    date_range: DateRange,
) -> list[SummaryRow]:
    slots = in_range_slots(groups, date_range)
    return [reconcile_slots(record, slots) for record in records]


def sort_by_net(rows: Iterable[SummaryRow]) -> list[SummaryRow]:
    return sorted(rows, key=lambda row: (-row.net, row.identity.key()))


def totals(rows: Iterable[SummaryRow]) -> dict[str, int]:
    result = {"initial_holding": 0, "bought": 0, "sold": 0, "net": 0, "still_holding": 0}
    for row in rows:
        result["initial_holding"] += row.initial_holding
        result["bought"] += row.bought
        result["sold"] += row.sold
        result["net"] += row.net
        result["still_holding"] += row.still_holding
    return result
