"""Matrix report: one row per identity, three columns per file period."""
from __future__ import annotations

from typing import Sequence

import pandas as pd

from holdings_recon.domain import column_keys
from holdings_recon.domain.grouping import ordered_column_keys
from holdings_recon.domain.models import FileGroup, HoldingRecord, SnapshotColumnKey

LEADING_HEADERS = ["DPID", "CLIENT-ID", "CATEGORY", "NAME", "INITIAL HOLDING"]


def format_bs(bought: int, sold: int) -> str:
    text = (f"+{bought}" if bought > 0 else "") + (f"-{sold}" if sold > 0 else "")
    return text or "-"


def _as_on_header(key: SnapshotColumnKey | None, fallback: str) -> str:
    if key is None or key.base_date is None:
        return fallback
    return f"AS ON {column_keys.format_base_date(key.base_date)}"


def _dedupe(headers: list[str]) -> list[str]:
    # later repeats get a " #n" suffix
    seen: dict[str, int] = {}
    result: list[str] = []
    for header in headers:
        count = seen.get(header, 0) + 1
        seen[header] = count
        result.append(header if count == 1 else f"{header} #{count}")
    return result


def matrix_headers(groups: Sequence[FileGroup]) -> list[str]:
    headers = list(LEADING_HEADERS)
    for number, file_group in enumerate(groups, start=1):
        headers.append(_as_on_header(file_group.first_key, f"FILE {number} HOLDING 1"))
        headers.append("B/S")
        headers.append(_as_on_header(file_group.second_key, f"FILE {number} HOLDING 2"))
    return _dedupe(headers)


def earliest_value(record: HoldingRecord, groups: Sequence[FileGroup]) -> int:
    """Value of the record's earliest-dated snapshot; period order breaks ties."""
    best: SnapshotColumnKey | None = None
    for key in ordered_column_keys(groups):
        if key not in record.snapshots:
            continue
        if best is None or key.base_date < best.base_date:
            best = key
    return record.snapshots[best].value if best is not None else 0


def matrix_rows(records: Sequence[HoldingRecord], groups: Sequence[FileGroup]) -> list[list[object]]:
    rows: list[list[object]] = []
    for record in records:
        row: list[object] = [
            record.depository_id,
            record.client_id,
            record.category,
            record.name,
            earliest_value(record, groups),
        ]
        for file_group in groups:
            first = record.get(file_group.first_key)
            second = record.get(file_group.second_key)
            row.append(first.value if first else 0)
            row.append(format_bs(second.bought, second.sold) if second else "-")
            row.append(second.value if second else 0)
        rows.append(row)
    return rows


def matrix_frame(
    records: Sequence[HoldingRecord],
    groups: Sequence[FileGroup],
    newest_first: bool = False,
) -> pd.DataFrame:
    """Matrix as a DataFrame; ``newest_first`` only reverses the period columns shown."""
    ordered = list(reversed(groups)) if newest_first else list(groups)
    return pd.DataFrame(matrix_rows(records, ordered), columns=matrix_headers(ordered))


def search_records(records: Sequence[HoldingRecord], text: str) -> list[HoldingRecord]:
    pattern = text.strip().lower()
    if not pattern:
        return list(records)
    return [
        record
        for record in records
        if any(pattern in field.lower() for field in (record.depository_id, record.client_id, record.name, record.category))
    ]


def render_csv(records: Sequence[HoldingRecord], groups: Sequence[FileGroup]) -> bytes:
    frame = matrix_frame(records, groups)
    return frame.to_csv(index=False).encode("utf-8")
