"""Turning one uploaded file's rows into per-identity snapshot entries."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Iterator, Sequence

from .column_keys import make_key, parse_date_text
from .errors import UnparseableFileError
from .identity import identity_key
from .models import FIRST, SECOND, Identity, SnapshotColumnKey, SnapshotValue

AS_ON_PATTERN = r"^\s*as\s+on\b"

_HEADER_DATE_PATTERNS = (
    re.compile(r"\d{1,2}[-./]\d{1,2}[-./]\d{4}"),
    re.compile(r"\d{4}[-./]\d{1,2}[-./]\d{1,2}"),
    re.compile(r"\d{1,2}[-./][A-Za-z]{3}[-./]\d{4}"),
)


@dataclass(frozen=True)
class AsOnColumn:
    header: str
    as_of: date


@dataclass(frozen=True)
class RawHoldingRow:
    depository_id: str
    client_id: str
    name: str
    category: str
    first_value: int
    second_value: int
    bought: int
    sold: int


@dataclass(frozen=True)
class ParsedHoldingFile:
    """One usable upload: its two AS ON columns and the rows read under them."""

    source: str
    first_column: AsOnColumn
    second_column: AsOnColumn
    rows: Sequence[RawHoldingRow] = field(default_factory=tuple)
    file_hash: str = ""

    @property
    def first_date(self) -> date:
        return self.first_column.as_of

    @property
    def second_date(self) -> date:
        return self.second_column.as_of

    def ordering_key(self) -> tuple[date, date, str, str]:
        return (self.second_date, self.first_date, self.source, self.file_hash)


def extract_header_date(header: object) -> date | None:
    text = "" if header is None else str(header)
    for pattern in _HEADER_DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            parsed = parse_date_text(match.group(0))
            if parsed is not None:
                return parsed
    return None


def locate_as_on_columns(
    headers: Iterable[object],
    source: str,
    pattern: str = AS_ON_PATTERN,
) -> tuple[AsOnColumn, AsOnColumn]:
    """Pick the two earliest dated AS ON headers, in date order.

    Raises ``UnparseableFileError`` when fewer than two are present; the
    file is rejected whole rather than partially ingested.
    """
    matcher = re.compile(pattern, re.IGNORECASE)
    found: list[AsOnColumn] = []
    for header in headers:
        text = str(header)
        if not matcher.search(text):
            continue
        as_of = extract_header_date(text)
        if as_of is None:
            continue
        found.append(AsOnColumn(header=text, as_of=as_of))

    found.sort(key=lambda column: column.as_of)
    if len(found) < 2:
        raise UnparseableFileError(
            source,
            f"expected at least 2 dated AS ON columns, found {len(found)}",
        )
    return found[0], found[1]


def file_keys(parsed: ParsedHoldingFile, file_index: int) -> tuple[SnapshotColumnKey, SnapshotColumnKey]:
    return (
        make_key(parsed.first_date, file_index, FIRST),
        make_key(parsed.second_date, file_index, SECOND),
    )


def snapshot_entries(
    parsed: ParsedHoldingFile,
    file_index: int,
) -> Iterator[tuple[Identity, str, SnapshotColumnKey, SnapshotValue]]:
    """Two entries per row; only the second carries the period's bought/sold."""
    first_key, second_key = file_keys(parsed, file_index)
    for row in parsed.rows:
        identity = identity_key(row.depository_id, row.client_id, row.name)
        if not identity.name:
            continue
        yield identity, row.category, first_key, SnapshotValue(value=row.first_value)
        yield identity, row.category, second_key, SnapshotValue(
            value=row.second_value,
            bought=row.bought,
            sold=row.sold,
        )
