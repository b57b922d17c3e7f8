"""Application-level DTOs for holdings reconciliation."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from holdings_recon.domain.models import SummaryRow
from holdings_recon.domain.reconciliation import DateRange


@dataclass(slots=True, frozen=True)
class SummaryRequest:
    start: date | None = None
    end: date | None = None


@dataclass(slots=True, frozen=True)
class SummaryResponse:
    date_range: DateRange
    rows: Sequence[SummaryRow]
    totals: dict[str, int]


@dataclass(slots=True, frozen=True)
class WorkbookExport:
    content: bytes
    date_range: DateRange
    identities: int
    by_date_rows: int
