from __future__ import annotations

from datetime import date
from typing import Sequence

import pandas as pd

from holdings_recon.domain.ingest import AsOnColumn, ParsedHoldingFile, RawHoldingRow

# (dpid, client_id, name, first_value, second_value, bought, sold)
Row = tuple[str, str, str, int, int, int, int]


def as_on(value: date) -> AsOnColumn:
    return AsOnColumn(header=f"AS ON {value:%d-%m-%Y}", as_of=value)


def make_file(
    source: str,
    first: date,
    second: date,
    rows: Sequence[Row],
    category: str = "",
) -> ParsedHoldingFile:
    return ParsedHoldingFile(
        source=source,
        first_column=as_on(first),
        second_column=as_on(second),
        rows=tuple(
            RawHoldingRow(
                depository_id=dpid,
                client_id=client_id,
                name=name,
                category=category,
                first_value=first_value,
                second_value=second_value,
                bought=bought,
                sold=sold,
            )
            for dpid, client_id, name, first_value, second_value, bought, sold in rows
        ),
    )


def holding_frame(first: date, second: date, rows: Sequence[Row], category: str = "PROMOTER") -> pd.DataFrame:
    """A statement the way the depository exports it: text cells, AS ON headers."""
    return pd.DataFrame(
        [
            {
                "DPID": dpid,
                "CLIENT-ID": client_id,
                "NAME": name,
                "CATEGORY": category,
                f"AS ON {first:%d-%m-%Y}": f"{first_value:,}",
                "BOUGHT": str(bought),
                "SOLD": str(sold),
                f"AS ON {second:%d-%m-%Y}": f"{second_value:,}",
            }
            for dpid, client_id, name, first_value, second_value, bought, sold in rows
        ]
    )


def write_xlsx(path, frame: pd.DataFrame):
    frame.to_excel(path, index=False, engine="openpyxl")
    return path
