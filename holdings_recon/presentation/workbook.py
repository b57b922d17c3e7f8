"""Summary workbook writer: static summary, range controls and live formulas."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from io import BytesIO
from typing import Mapping, Sequence

import pandas as pd

from holdings_recon.domain import column_keys
from holdings_recon.domain.models import FIRST, SECOND, FileGroup, SummaryRow
from holdings_recon.domain.reconciliation import DateRange, sort_by_net, totals
from holdings_recon.presentation.formula_mirror import (
    BY_DATE_COLUMNS,
    BY_DATE_SHEET,
    END_NAME,
    START_NAME,
    row_formulas,
)

logger = logging.getLogger(__name__)

SUMMARY_SHEET = "Summary"
CONTROLS_SHEET = "Controls"
DYNAMIC_SHEET = "SummaryDynamic"
META_SHEET = "Meta"
LISTS_SHEET = "Lists"

SUMMARY_HEADERS = [
    "DPID",
    "ClientID",
    "Category",
    "Sold",
    "Name",
    "Bought",
    "Initial Holding",
    "Net B/S (Bought - Sold)",
    "Still Holding",
]
DYNAMIC_HEADERS = [
    "KeyId",
    "DPID",
    "ClientID",
    "Category",
    "Name",
    "Initial Holding",
    "Bought",
    "Sold",
    "Net (Bought-Sold)",
    "Still Holding",
    "StartRank",
    "EndRank",
]
DYNAMIC_COLUMNS = {
    "key": "A",
    "initial": "F",
    "bought": "G",
    "sold": "H",
    "net": "I",
    "still": "J",
    "start_rank": "K",
    "end_rank": "L",
}
DYNAMIC_FIRST_ROW = 3
START_CELL = f"={CONTROLS_SHEET}!$B$5"
END_CELL = f"={CONTROLS_SHEET}!$B$6"


@dataclass(frozen=True)
class SummaryEntry:
    key_id: int
    row: SummaryRow
    start_rank: int
    end_rank: int


def dropdown_label(value: date, include_year: bool) -> str:
    return value.strftime("%d %b %Y") if include_year else value.strftime("%d %b")


def available_dates(groups: Sequence[FileGroup]) -> list[date]:
    return sorted({key.base_date for group in groups for key in group.keys() if key.base_date is not None})


class SummaryWorkbookWriter:
    """Writes the summary workbook; ByDate rows may be fed one at a time.

    Sheets: Summary, Controls, SummaryDynamic, ByDate, Meta and a hidden
    Lists sheet feeding the From/To dropdowns. ``RangeStart``/``RangeEnd``
    name the Controls cells the formulas read.
    """

    def __init__(self, constant_memory: bool = False) -> None:
        self._buffer = BytesIO()
        self._writer = pd.ExcelWriter(
            self._buffer,
            engine="xlsxwriter",
            engine_kwargs={"options": {"use_future_functions": True, "constant_memory": constant_memory}},
        )
        book = self._writer.book
        self._summary = book.add_worksheet(SUMMARY_SHEET)
        self._controls = book.add_worksheet(CONTROLS_SHEET)
        self._dynamic = book.add_worksheet(DYNAMIC_SHEET)
        self._by_date = book.add_worksheet(BY_DATE_SHEET)
        self._meta = book.add_worksheet(META_SHEET)
        self._lists = book.add_worksheet(LISTS_SHEET)
        self._date_format = book.add_format({"num_format": "yyyy-mm-dd"})
        self._bold = book.add_format({"bold": True})
        self._by_date.write_row(0, 0, list(BY_DATE_COLUMNS), self._bold)
        self._by_date_rows = 0

    def add_by_date_row(self, values: Sequence[object]) -> None:
        self._by_date_rows += 1
        self._by_date.write_row(self._by_date_rows, 0, list(values))

    def finish(
        self,
        entries: Sequence[SummaryEntry],
        groups: Sequence[FileGroup],
        default_range: DateRange,
        meta: Mapping[str, object] | None = None,
    ) -> bytes:
        last_row = self._by_date_rows + 1
        self._by_date.autofilter(0, 0, max(self._by_date_rows, 1), len(BY_DATE_COLUMNS) - 1)
        self._by_date.set_column(1, 1, 14, self._date_format)

        self._write_summary(entries)
        self._write_controls(groups, default_range)
        self._write_dynamic(entries, last_row)
        self._write_meta(entries, default_range, meta or {})

        book = self._writer.book
        book.set_calc_mode("auto")
        book.define_name(START_NAME, START_CELL)
        book.define_name(END_NAME, END_CELL)
        self._writer.close()
        logger.info("Wrote summary workbook: %d identities, %d ByDate rows", len(entries), self._by_date_rows)
        return self._buffer.getvalue()

    def _write_summary(self, entries: Sequence[SummaryEntry]) -> None:
        rows = sort_by_net(entry.row for entry in entries)
        total = totals(rows)
        sheet = self._summary
        sheet.write_row(0, 0, SUMMARY_HEADERS, self._bold)
        sheet.write_row(
            1,
            0,
            ["", "", "", total["sold"], "Total", total["bought"], total["initial_holding"], total["net"], total["still_holding"]],
            self._bold,
        )
        for offset, row in enumerate(rows, start=2):
            sheet.write_row(
                offset,
                0,
                [
                    row.identity.depository_id,
                    row.identity.client_id,
                    row.category,
                    row.sold,
                    row.identity.name,
                    row.bought,
                    row.initial_holding,
                    row.net,
                    row.still_holding,
                ],
            )
        sheet.autofilter(0, 0, max(len(rows) + 1, 1), len(SUMMARY_HEADERS) - 1)
        sheet.set_column(0, 2, 16)
        sheet.set_column(4, 4, 30)

    def _write_controls(self, groups: Sequence[FileGroup], default_range: DateRange) -> None:
        dates = available_dates(groups)
        include_year = len({value.year for value in dates}) > 1

        lists = self._lists
        lists.write_row(0, 0, ["Label", "Serial"], self._bold)
        for offset, value in enumerate(dates, start=1):
            lists.write_string(offset, 0, dropdown_label(value, include_year))
            lists.write_number(offset, 1, column_keys.to_excel_serial(value), self._date_format)
        lists.hide()

        list_last = max(len(dates) + 1, 2)
        labels = f"{LISTS_SHEET}!$A$2:$A${list_last}"
        serials = f"{LISTS_SHEET}!$B$2:$B${list_last}"
        validation = {
            "validate": "list",
            "source": f"={labels}",
            "input_title": "Select AS ON date",
            "input_message": "Pick a date from the uploaded files.",
            "error_title": "Invalid selection",
            "error_message": "Please select a value from the dropdown list.",
        }

        sheet = self._controls
        sheet.set_column(0, 0, 18)
        sheet.set_column(1, 1, 26)
        sheet.write_row(0, 0, ["Parameter", "Value"], self._bold)
        sheet.write_string(1, 0, "From")
        sheet.write_string(1, 1, dropdown_label(default_range.start, include_year))
        sheet.data_validation(1, 1, 1, 1, validation)
        sheet.write_string(2, 0, "To")
        sheet.write_string(2, 1, dropdown_label(default_range.end, include_year))
        sheet.data_validation(2, 1, 2, 1, validation)

        from_serial = f"INDEX({serials},MATCH(B2,{labels},0))"
        to_serial = f"INDEX({serials},MATCH(B3,{labels},0))"
        sheet.write_string(4, 0, "Start")
        sheet.write_formula(
            4,
            1,
            f"=MIN({from_serial},{to_serial})",
            self._date_format,
            column_keys.to_excel_serial(default_range.start),
        )
        sheet.write_string(5, 0, "End")
        sheet.write_formula(
            5,
            1,
            f"=MAX({from_serial},{to_serial})",
            self._date_format,
            column_keys.to_excel_serial(default_range.end),
        )
        sheet.write_row(7, 0, ["Tip", "Use the From/To dropdowns above. SummaryDynamic recalculates from them."])

    def _write_dynamic(self, entries: Sequence[SummaryEntry], last_row: int) -> None:
        sheet = self._dynamic
        sheet.write_row(0, 0, DYNAMIC_HEADERS, self._bold)
        first, last = DYNAMIC_FIRST_ROW, DYNAMIC_FIRST_ROW + max(len(entries), 1) - 1
        sheet.write_string(1, 4, "Total", self._bold)
        for role in ("initial", "bought", "sold"):
            letter = DYNAMIC_COLUMNS[role]
            sheet.write_formula(f"{letter}2", f"=SUM({letter}{first}:{letter}{last})", self._bold)
        sheet.write_formula("I2", "=G2-H2", self._bold)
        sheet.write_formula("J2", "=F2+I2", self._bold)

        for offset, entry in enumerate(sorted(entries, key=lambda item: item.key_id)):
            excel_row = DYNAMIC_FIRST_ROW + offset
            index = excel_row - 1
            formulas = row_formulas(excel_row, last_row, DYNAMIC_COLUMNS)
            row = entry.row
            sheet.write_number(index, 0, entry.key_id)
            sheet.write_row(
                index,
                1,
                [row.identity.depository_id, row.identity.client_id, row.category, row.identity.name],
            )
            sheet.write_formula(index, 5, formulas.initial, None, row.initial_holding)
            sheet.write_formula(index, 6, formulas.bought, None, row.bought)
            sheet.write_formula(index, 7, formulas.sold, None, row.sold)
            sheet.write_formula(index, 8, formulas.net, None, row.net)
            sheet.write_formula(index, 9, formulas.still, None, row.still_holding)
            sheet.write_formula(index, 10, formulas.start_rank, None, entry.start_rank)
            sheet.write_formula(index, 11, formulas.end_rank, None, entry.end_rank)

        sheet.autofilter(0, 0, max(len(entries) + 1, 1), len(DYNAMIC_HEADERS) - 1)
        sheet.set_column(4, 4, 30)
        sheet.set_column(10, 11, 10, None, {"hidden": True})

    def _write_meta(self, entries: Sequence[SummaryEntry], default_range: DateRange, meta: Mapping[str, object]) -> None:
        rows: list[tuple[str, object]] = [
            ("ExportedAt", datetime.now(timezone.utc).isoformat()),
            ("ByDate rows", self._by_date_rows),
            ("Unique identities", len(entries)),
            ("Default range from", default_range.start.isoformat()),
            ("Default range to", default_range.end.isoformat()),
        ]
        rows.extend(meta.items())
        sheet = self._meta
        sheet.set_column(0, 0, 28)
        sheet.set_column(1, 1, 60)
        for offset, (label, value) in enumerate(rows):
            sheet.write(offset, 0, label)
            sheet.write(offset, 1, value)


def position_meta(position_counts: Mapping[int, int]) -> dict[str, object]:
    return {
        "SnapshotPos=1 rows": position_counts.get(FIRST, 0),
        "SnapshotPos=2 rows": position_counts.get(SECOND, 0),
    }
