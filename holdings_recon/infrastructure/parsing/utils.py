"""Shared parsing utilities for workbook ingestion."""
from __future__ import annotations

import hashlib
import math
from decimal import Decimal, InvalidOperation
from io import BytesIO
from pathlib import Path

import pandas as pd

EXCEL_ENGINES = ("openpyxl", "xlrd")
_BLANKS = {"", "NAN", "NA", "N/A", "NULL", "NONE", "-"}


def ensure_bytes(source: BytesIO | Path | bytes) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, BytesIO):
        return source.getvalue()
    if isinstance(source, Path):
        return source.read_bytes()
    raise TypeError(f"Unsupported source type: {type(source)!r}")


def compute_file_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def parse_int(value: object) -> int:
    """Whole-share quantity from a noisy cell; anything unreadable is 0.

    Accepts thousands separators (Western and Indian grouping), accounting
    parentheses for negatives and a leading ``+``. Fractions truncate.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    s = str(value).strip()
    if s.upper() in _BLANKS:
        return 0
    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1].strip()
    for ch in [",", " ", "\u00a0"]:
        s = s.replace(ch, "")
    if s.startswith("+"):
        s = s[1:]
    try:
        result = Decimal(s)
    except InvalidOperation:
        return 0
    if not result.is_finite():
        return 0
    number = int(result)
    return -number if negative else number


def clean_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    s = str(value).strip()
    return "" if s.upper() == "NAN" else s


def read_first_sheet(source: bytes, engines: tuple[str, ...] = EXCEL_ENGINES) -> pd.DataFrame:
    """Read the first worksheet as text, trying each engine in turn."""
    last_error: Exception | None = None
    for engine in engines:
        try:
            return pd.read_excel(
                BytesIO(source),
                sheet_name=0,
                engine=engine,
                dtype=str,
                keep_default_na=False,
            )
        except Exception as exc:
            last_error = exc
            continue
    raise ValueError(f"unable to read workbook with engines {', '.join(engines)}: {last_error}")


def read_csv_text(source: bytes) -> pd.DataFrame:
    return pd.read_csv(BytesIO(source), dtype=str, keep_default_na=False)
