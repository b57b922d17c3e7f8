"""Spreadsheet-formula rendition of the range reconciliation.

The summary is described once, as conditional aggregates over the long
``ByDate`` table, and that description is both rendered into Excel formulas
and evaluated with pandas. The period rank column carries the FileGroup
sequence into the sheet: the lowest in-range rank is the start snapshot,
the highest is the end, and second-snapshot deltas count only between them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Sequence

import pandas as pd

from holdings_recon.domain import column_keys
from holdings_recon.domain.models import FIRST, SECOND, FileGroup, HoldingRecord, Identity
from holdings_recon.domain.reconciliation import RANK_STRIDE, rank_table
from holdings_recon.domain.streaming import SnapshotRow

BY_DATE_SHEET = "ByDate"
START_NAME = "RangeStart"
END_NAME = "RangeEnd"

BASE_DATE = "BaseDate"
SERIAL = "BaseDateSerial"
POSITION = "SnapshotPos"
FILE_INDEX = "FileIndex"
DPID = "DPID"
CLIENT_ID = "ClientID"
CATEGORY = "Category"
NAME = "Name"
KEY = "Key"
KEY_ID = "KeyId"
DATE_RANK = "DateRank"
PERIOD_RANK = "PeriodRank"
KEY_RANK = "KeyRank"
VALUE = "Value"
BOUGHT = "Bought"
SOLD = "Sold"
DATE_KEY = "DateKey"

BY_DATE_COLUMNS = (
    BASE_DATE,
    SERIAL,
    POSITION,
    FILE_INDEX,
    DPID,
    CLIENT_ID,
    CATEGORY,
    NAME,
    KEY,
    KEY_ID,
    DATE_RANK,
    PERIOD_RANK,
    KEY_RANK,
    VALUE,
    BOUGHT,
    SOLD,
    DATE_KEY,
)


@dataclass(frozen=True)
class Criterion:
    column: str
    op: str
    operand: str | int


@dataclass(frozen=True)
class ConditionalAggregate:
    function: str
    target: str
    criteria: tuple[Criterion, ...]


IN_RANGE = (
    Criterion(KEY_ID, "=", "key"),
    Criterion(SERIAL, ">=", "start"),
    Criterion(SERIAL, "<=", "end"),
)
START_RANK = ConditionalAggregate("MINIFS", PERIOD_RANK, IN_RANGE)
END_RANK = ConditionalAggregate("MAXIFS", PERIOD_RANK, IN_RANGE)
DELTA_WINDOW = IN_RANGE + (
    Criterion(POSITION, "=", SECOND),
    Criterion(PERIOD_RANK, ">=", "start_rank"),
    Criterion(PERIOD_RANK, "<=", "end_rank"),
)
BOUGHT_SUM = ConditionalAggregate("SUMIFS", BOUGHT, DELTA_WINDOW)
SOLD_SUM = ConditionalAggregate("SUMIFS", SOLD, DELTA_WINDOW)


def column_letter(col_idx: int) -> str:
    # 0 -> A, 25 -> Z, 26 -> AA
    name = ""
    n = col_idx
    while True:
        n, r = divmod(n, 26)
        name = chr(65 + r) + name
        if n == 0:
            break
        n -= 1
    return name


def by_date_range(column: str, last_row: int) -> str:
    letter = column_letter(BY_DATE_COLUMNS.index(column))
    return f"{BY_DATE_SHEET}!${letter}$2:${letter}${max(last_row, 2)}"


class LongTableBuilder:
    """Produces ByDate rows and hands out numeric identity ids on first sight.

    Criteria and lookups match on ``KeyId`` rather than the text key, so
    wildcard characters or case differences in names cannot blur identities.
    """

    def __init__(self, groups: Sequence[FileGroup]) -> None:
        self._ranks = rank_table(groups)
        self._key_ids: dict[Identity, int] = {}
        self.rows_written = 0
        self.position_counts = {FIRST: 0, SECOND: 0}

    def key_id(self, identity: Identity) -> int:
        key_id = self._key_ids.get(identity)
        if key_id is None:
            key_id = len(self._key_ids) + 1
            self._key_ids[identity] = key_id
        return key_id

    def known_identities(self) -> Mapping[Identity, int]:
        return self._key_ids

    def row(
        self,
        identity: Identity,
        category: str,
        key_text: str,
        value: int,
        bought: int,
        sold: int,
    ) -> list[object] | None:
        key_id = self.key_id(identity)
        key = column_keys.decode(key_text)
        rank = self._ranks.get(key)
        if rank is None or key.base_date is None:
            return None
        serial = column_keys.to_excel_serial(key.base_date)
        self.rows_written += 1
        self.position_counts[key.position] += 1
        return [
            column_keys.format_base_date(key.base_date),
            serial,
            key.position,
            key.file_index,
            identity.depository_id,
            identity.client_id,
            category,
            identity.name,
            identity.token(),
            key_id,
            serial * RANK_STRIDE + key.position,
            rank,
            f"{key_id}|{rank}",
            value,
            bought,
            sold,
            column_keys.encode(key),
        ]

    def rows_for_record(self, record: HoldingRecord) -> Iterator[list[object]]:
        self.key_id(record.identity)
        ordered = sorted(record.snapshots.items(), key=lambda item: self._ranks.get(item[0], 0))
        for key, snapshot in ordered:
            row = self.row(
                record.identity,
                record.category,
                column_keys.encode(key),
                snapshot.value,
                snapshot.bought,
                snapshot.sold,
            )
            if row is not None:
                yield row

    def row_for_snapshot(self, snapshot_row: SnapshotRow) -> list[object] | None:
        return self.row(
            snapshot_row.identity,
            snapshot_row.category,
            snapshot_row.column_key,
            snapshot_row.value,
            snapshot_row.bought,
            snapshot_row.sold,
        )


def build_long_table(records: Iterable[HoldingRecord], groups: Sequence[FileGroup]) -> pd.DataFrame:
    builder = LongTableBuilder(groups)
    rows = [row for record in records for row in builder.rows_for_record(record)]
    return pd.DataFrame(rows, columns=list(BY_DATE_COLUMNS))


def _render_criterion(criterion: Criterion, refs: Mapping[str, str], last_row: int) -> str:
    criteria_range = by_date_range(criterion.column, last_row)
    if isinstance(criterion.operand, int):
        operand = str(criterion.operand)
    else:
        operand = refs[criterion.operand]
    if criterion.op == "=":
        return f"{criteria_range},{operand}"
    return f'{criteria_range},"{criterion.op}"&{operand}'


def render_aggregate(aggregate: ConditionalAggregate, refs: Mapping[str, str], last_row: int) -> str:
    parts = [by_date_range(aggregate.target, last_row)]
    parts.extend(_render_criterion(criterion, refs, last_row) for criterion in aggregate.criteria)
    return f"{aggregate.function}({','.join(parts)})"


def render_initial(refs: Mapping[str, str], last_row: int) -> str:
    match = f'MATCH({refs["key"]}&"|"&{refs["start_rank"]},{by_date_range(KEY_RANK, last_row)},0)'

    def at(column: str) -> str:
        return f"INDEX({by_date_range(column, last_row)},{match})"

    reconstructed = f"{at(VALUE)}-({at(BOUGHT)}-{at(SOLD)})"
    return (
        f"IF({refs['start_rank']}=0,0,"
        f"IFERROR(IF({at(POSITION)}={FIRST},{at(VALUE)},{reconstructed}),0))"
    )


@dataclass(frozen=True)
class RowFormulas:
    start_rank: str
    end_rank: str
    initial: str
    bought: str
    sold: str
    net: str
    still: str


def row_formulas(excel_row: int, last_row: int, columns: Mapping[str, str]) -> RowFormulas:
    """Formulas for one SummaryDynamic row; ``columns`` maps roles to sheet letters."""
    refs = {
        "key": f"${columns['key']}{excel_row}",
        "start": START_NAME,
        "end": END_NAME,
        "start_rank": f"${columns['start_rank']}{excel_row}",
        "end_rank": f"${columns['end_rank']}{excel_row}",
    }
    return RowFormulas(
        start_rank="=" + render_aggregate(START_RANK, refs, last_row),
        end_rank="=" + render_aggregate(END_RANK, refs, last_row),
        initial="=" + render_initial(refs, last_row),
        bought="=" + render_aggregate(BOUGHT_SUM, refs, last_row),
        sold="=" + render_aggregate(SOLD_SUM, refs, last_row),
        net=f"={columns['bought']}{excel_row}-{columns['sold']}{excel_row}",
        still=f"={columns['initial']}{excel_row}+{columns['net']}{excel_row}",
    )


_OPS = {
    "=": lambda left, right: left == right,
    ">=": lambda left, right: left >= right,
    "<=": lambda left, right: left <= right,
}


def evaluate_aggregate(
    aggregate: ConditionalAggregate,
    table: pd.DataFrame,
    operands: Mapping[str, int | pd.Series],
) -> pd.Series:
    """Per-KeyId result of one aggregate, with the spreadsheet's 0 for no match.

    Scalar operands apply to every row; Series operands are per-KeyId values.
    """
    mask = pd.Series(True, index=table.index)
    for criterion in aggregate.criteria:
        if criterion.operand == "key":
            continue
        if isinstance(criterion.operand, int):
            right: object = criterion.operand
        else:
            value = operands[criterion.operand]
            right = table[KEY_ID].map(value).fillna(0) if isinstance(value, pd.Series) else value
        mask &= _OPS[criterion.op](table[criterion.column], right)

    key_ids = pd.Index(sorted(table[KEY_ID].unique()), name=KEY_ID)
    grouped = table.loc[mask].groupby(KEY_ID)[aggregate.target]
    if aggregate.function == "MINIFS":
        result = grouped.min()
    elif aggregate.function == "MAXIFS":
        result = grouped.max()
    else:
        result = grouped.sum()
    return result.reindex(key_ids, fill_value=0).astype("int64")


def evaluate(table: pd.DataFrame, start_serial: int, end_serial: int) -> pd.DataFrame:
    """What SummaryDynamic computes for every KeyId at the given Start/End."""
    operands: dict[str, int | pd.Series] = {"start": start_serial, "end": end_serial}
    start_rank = evaluate_aggregate(START_RANK, table, operands)
    end_rank = evaluate_aggregate(END_RANK, table, operands)
    operands.update(start_rank=start_rank, end_rank=end_rank)
    bought = evaluate_aggregate(BOUGHT_SUM, table, operands)
    sold = evaluate_aggregate(SOLD_SUM, table, operands)

    first_by_key_rank = table.drop_duplicates(subset=KEY_RANK, keep="first").set_index(KEY_RANK)
    initial: dict[int, int] = {}
    for key_id, rank in start_rank.items():
        lookup = f"{key_id}|{rank}"
        if rank == 0 or lookup not in first_by_key_rank.index:
            initial[key_id] = 0
            continue
        row = first_by_key_rank.loc[lookup]
        if int(row[POSITION]) == FIRST:
            initial[key_id] = int(row[VALUE])
        else:
            initial[key_id] = int(row[VALUE]) - (int(row[BOUGHT]) - int(row[SOLD]))

    result = pd.DataFrame(
        {
            "start_rank": start_rank,
            "end_rank": end_rank,
            "initial_holding": pd.Series(initial, dtype="int64"),
            "bought": bought,
            "sold": sold,
        }
    )
    result["net"] = result["bought"] - result["sold"]
    result["still_holding"] = result["initial_holding"] + result["net"]
    return result
