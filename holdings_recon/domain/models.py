"""Domain models for the holdings reconciliation pipeline.

These dataclasses capture the canonical shape of consolidated holding
snapshots and the reconciled summaries derived from them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterator


FIRST = 1
SECOND = 2


@dataclass(frozen=True)
class SnapshotColumnKey:
    """One AS ON column instance: a calendar date plus its provenance."""

    base_date: date | None
    file_index: int | None = None
    position: int | None = None

    @property
    def is_grouped(self) -> bool:
        return self.file_index is not None and self.position in (FIRST, SECOND)


@dataclass(frozen=True)
class SnapshotValue:
    value: int = 0
    bought: int = 0
    sold: int = 0

    def __add__(self, other: SnapshotValue) -> SnapshotValue:
        return SnapshotValue(
            value=self.value + other.value,
            bought=self.bought + other.bought,
            sold=self.sold + other.sold,
        )

    @property
    def delta(self) -> int:
        return self.bought - self.sold


@dataclass(frozen=True, order=True)
class Identity:
    """Canonical (depository id, client id, normalized name) triple."""

    depository_id: str
    client_id: str
    name: str

    def key(self) -> tuple[str, str, str]:
        return (self.depository_id, self.client_id, self.name)

    def token(self) -> str:
        """Unambiguous text form, for places that can only carry a string."""
        return "|".join(_escape(part) for part in self.key())


def _escape(part: str) -> str:
    return part.replace("\\", "\\\\").replace("|", "\\|")


@dataclass
class HoldingRecord:
    identity: Identity
    category: str = ""
    snapshots: dict[SnapshotColumnKey, SnapshotValue] = field(default_factory=dict)

    @property
    def depository_id(self) -> str:
        return self.identity.depository_id

    @property
    def client_id(self) -> str:
        return self.identity.client_id

    @property
    def name(self) -> str:
        return self.identity.name

    def add_snapshot(self, key: SnapshotColumnKey, snapshot: SnapshotValue) -> None:
        existing = self.snapshots.get(key)
        self.snapshots[key] = snapshot if existing is None else existing + snapshot

    def adopt_category(self, category: str) -> None:
        if not self.category and category:
            self.category = category

    def get(self, key: SnapshotColumnKey | None) -> SnapshotValue | None:
        if key is None:
            return None
        return self.snapshots.get(key)


@dataclass(frozen=True)
class FileGroup:
    """The first/second AS ON keys contributed by one ingested file."""

    file_index: int
    first_key: SnapshotColumnKey | None = None
    second_key: SnapshotColumnKey | None = None

    def keys(self) -> Iterator[SnapshotColumnKey]:
        if self.first_key is not None:
            yield self.first_key
        if self.second_key is not None:
            yield self.second_key

    @property
    def sort_date(self) -> date | None:
        dates = [key.base_date for key in self.keys() if key.base_date is not None]
        return min(dates) if dates else None


@dataclass(frozen=True)
class SummaryRow:
    """Range-bounded aggregate for one identity.

    ``net`` and ``still_holding`` are derived from the stored fields, so the
    reconciliation invariant cannot be violated by a caller.
    """

    identity: Identity
    initial_holding: int = 0
    bought: int = 0
    sold: int = 0
    category: str = ""

    @property
    def net(self) -> int:
        return self.bought - self.sold

    @property
    def still_holding(self) -> int:
        return self.initial_holding + self.net

    def as_dict(self) -> dict[str, object]:
        return {
            "dpid": self.identity.depository_id,
            "client_id": self.identity.client_id,
            "category": self.category,
            "name": self.identity.name,
            "initial_holding": self.initial_holding,
            "bought": self.bought,
            "sold": self.sold,
            "net": self.net,
            "still_holding": self.still_holding,
        }
