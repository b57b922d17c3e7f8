"""Encoding and decoding of AS ON column keys.

A key is rendered as ``DD-MM-YYYY@@<file index>-<position>``. The base date
keeps the column readable in exports; the suffix keeps two files that both
report the same calendar date apart.
"""
from __future__ import annotations

import re
from datetime import date, datetime

from .models import FIRST, SECOND, SnapshotColumnKey

SEPARATOR = "@@"
BASE_DATE_FORMAT = "%d-%m-%Y"
EXCEL_EPOCH = date(1899, 12, 30)

_META_PATTERN = re.compile(r"^(\d+)-(\d+)$")
_DMY_PATTERN = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_YMD_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_DMONY_PATTERN = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{4})$")
_MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}


def parse_date_text(text: object) -> date | None:
    """Parse ``DD-MM-YYYY``, ``YYYY-MM-DD`` or ``DD-MMM-YYYY``; ``.`` and ``/`` also separate."""
    if text is None:
        return None
    if isinstance(text, datetime):
        return text.date()
    if isinstance(text, date):
        return text
    s = str(text).strip().replace(".", "-").replace("/", "-")
    if not s:
        return None

    match = _DMY_PATTERN.match(s)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = _YMD_PATTERN.match(s)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = _DMONY_PATTERN.match(s)
    if match:
        month = _MONTHS.get(match.group(2).lower())
        if month is None:
            return None
        return _safe_date(int(match.group(3)), month, int(match.group(1)))

    return None


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_base_date(value: date) -> str:
    return value.strftime(BASE_DATE_FORMAT)


def encode(key: SnapshotColumnKey) -> str:
    base = format_base_date(key.base_date) if key.base_date is not None else ""
    if not key.is_grouped:
        return base
    return f"{base}{SEPARATOR}{key.file_index}-{key.position}"


def make_key(base_date: date, file_index: int, position: int) -> SnapshotColumnKey:
    if position not in (FIRST, SECOND):
        raise ValueError(f"position must be {FIRST} or {SECOND}, got {position!r}")
    return SnapshotColumnKey(base_date=base_date, file_index=file_index, position=position)


def decode(text: str) -> SnapshotColumnKey:
    """Recover a key from its text form.

    Never raises: missing or malformed provenance yields ``file_index`` and
    ``position`` of ``None``, an unreadable date yields ``base_date`` of ``None``.
    """
    raw = "" if text is None else str(text)
    base, _, meta = raw.partition(SEPARATOR)
    base_date = parse_date_text(base)
    match = _META_PATTERN.match(meta.strip())
    if not match:
        return SnapshotColumnKey(base_date=base_date)
    position = int(match.group(2))
    if position not in (FIRST, SECOND):
        return SnapshotColumnKey(base_date=base_date)
    return SnapshotColumnKey(base_date=base_date, file_index=int(match.group(1)), position=position)


def base_date_of(text: str) -> date | None:
    return decode(text).base_date


def file_index_of(text: str) -> int | None:
    return decode(text).file_index


def position_of(text: str) -> int | None:
    return decode(text).position


def to_excel_serial(value: date) -> int:
    """Days since the 1900 date system's day zero."""
    return (value - EXCEL_EPOCH).days


def from_excel_serial(serial: int) -> date:
    return date.fromordinal(EXCEL_EPOCH.toordinal() + int(serial))
