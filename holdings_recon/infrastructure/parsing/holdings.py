"""Holding-statement parser producing one ParsedHoldingFile per upload."""
from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Mapping

import pandas as pd

from holdings_recon.config import SETTINGS
from holdings_recon.domain.errors import UnparseableFileError
from holdings_recon.domain.ingest import ParsedHoldingFile, RawHoldingRow, locate_as_on_columns
from holdings_recon.infrastructure.parsing.utils import (
    clean_text,
    compute_file_hash,
    ensure_bytes,
    parse_int,
    read_csv_text,
    read_first_sheet,
)

logger = logging.getLogger(__name__)

COLUMN_ALIASES: Mapping[str, tuple[str, ...]] = {
    "dpid": ("DPID", "DP ID", "DP-ID"),
    "client_id": ("CLIENT-ID", "CLIENT ID", "CLIENTID", "CLIENT_ID"),
    "name": ("NAME", "HOLDER NAME", "SHAREHOLDER NAME"),
    "category": ("CATEGORY",),
    "bought": ("BOUGHT",),
    "sold": ("SOLD",),
}


def _resolve_columns(columns: list[str]) -> dict[str, str | None]:
    upper_map = {str(col).strip().upper(): col for col in columns}
    resolved: dict[str, str | None] = {}
    for field_name, aliases in COLUMN_ALIASES.items():
        resolved[field_name] = next((upper_map[alias] for alias in aliases if alias in upper_map), None)
    return resolved


def read_holdings_raw(raw_bytes: bytes, name: str) -> pd.DataFrame:
    if name.lower().endswith(".csv"):
        return read_csv_text(raw_bytes)
    return read_first_sheet(raw_bytes)


def frame_to_parsed_file(df: pd.DataFrame, source: str, file_hash: str = "") -> ParsedHoldingFile:
    """Locate the two AS ON columns and read every named row under them."""
    if df.empty:
        raise UnparseableFileError(source, "no data rows")
    first_column, second_column = locate_as_on_columns(
        list(df.columns),
        source,
        pattern=SETTINGS.as_on_header_pattern,
    )
    columns = _resolve_columns(list(df.columns))

    def cell(row: Mapping[str, object], field_name: str) -> object:
        column = columns[field_name]
        return row.get(column) if column is not None else None

    rows: list[RawHoldingRow] = []
    for record in df.to_dict(orient="records"):
        name = clean_text(cell(record, "name"))
        if not name:
            continue
        rows.append(
            RawHoldingRow(
                depository_id=clean_text(cell(record, "dpid")),
                client_id=clean_text(cell(record, "client_id")),
                name=name,
                category=clean_text(cell(record, "category")),
                first_value=parse_int(record.get(first_column.header)),
                second_value=parse_int(record.get(second_column.header)),
                bought=parse_int(cell(record, "bought")),
                sold=parse_int(cell(record, "sold")),
            )
        )

    return ParsedHoldingFile(
        source=source,
        first_column=first_column,
        second_column=second_column,
        rows=tuple(rows),
        file_hash=file_hash,
    )


def parse_holding_file(source: BytesIO | Path | bytes, name: str | None = None) -> ParsedHoldingFile:
    """Parse one upload; any failure to produce two dated columns rejects the file."""
    if name is None:
        name = source.name if isinstance(source, Path) else "upload"
    raw_bytes = ensure_bytes(source)
    try:
        dataframe = read_holdings_raw(raw_bytes, name)
    except (ValueError, OSError) as exc:
        raise UnparseableFileError(name, f"unreadable file: {exc}") from exc
    parsed = frame_to_parsed_file(dataframe, name, file_hash=compute_file_hash(raw_bytes))
    logger.info(
        "Parsed %s: %d rows, AS ON %s and %s",
        name,
        len(parsed.rows),
        parsed.first_date.isoformat(),
        parsed.second_date.isoformat(),
    )
    return parsed
