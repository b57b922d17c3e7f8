"""The imperative walk, the streaming aggregator and the workbook formulas must agree."""
from datetime import date
from itertools import combinations_with_replacement

import pytest

from factories import make_file
from holdings_recon.domain import column_keys
from holdings_recon.domain.consolidation import consolidate
from holdings_recon.domain.grouping import group
from holdings_recon.domain.reconciliation import DateRange, in_range_slots, rank_bounds, reconcile_slots
from holdings_recon.domain.streaming import SnapshotRow, StreamingRangeAggregator, summarize_stream
from holdings_recon.presentation.formula_mirror import build_long_table, evaluate

X = ("IN1", "10", "X Corp")
Y = ("IN1", "11", "Y Trust")
Z = ("IN2", "12", "Z & Co.")


def overlapping_batch():
    # b starts before a ends; c repeats b's second date as its first
    a = make_file("a.xlsx", date(2025, 1, 1), date(2025, 1, 20), [X + (100, 130, 40, 10), Y + (0, 50, 60, 10)])
    b = make_file("b.xlsx", date(2025, 1, 10), date(2025, 1, 25), [X + (115, 120, 10, 5), Z + (7, 9, 2, 0)])
    c = make_file("c.xlsx", date(2025, 1, 25), date(2025, 2, 5), [X + (120, 90, 0, 30), Y + (50, 45, 0, 5), Z + (9, 9, 0, 0)])
    d = make_file("d.xlsx", date(2025, 2, 5), date(2025, 2, 5), [Y + (45, 47, 2, 0)])
    return [c, a, d, b]


def duplicate_date_batch():
    g1 = make_file("g1.xlsx", date(2025, 12, 1), date(2025, 12, 3), [X + (500, 600, 150, 50)])
    g2 = make_file("g2.xlsx", date(2025, 12, 3), date(2025, 12, 10), [X + (600, 700, 100, 0), Y + (1, 2, 1, 0)])
    return [g2, g1]


def snapshot_rows(records):
    rows = []
    for record in records:
        for key, snapshot in record.snapshots.items():
            rows.append(
                SnapshotRow(
                    depository_id=record.depository_id,
                    client_id=record.client_id,
                    name=record.name,
                    category=record.category,
                    column_key=column_keys.encode(key),
                    value=snapshot.value,
                    bought=snapshot.bought,
                    sold=snapshot.sold,
                )
            )
    return rows


def all_ranges(groups):
    dates = sorted({key.base_date for g in groups for key in g.keys()})
    outside = [date(2024, 6, 1), date(2026, 6, 1)]
    candidates = sorted(set(dates) | set(outside) | {date(2025, 1, 15)})
    return [DateRange(start, end) for start, end in combinations_with_replacement(candidates, 2)]


@pytest.mark.parametrize("batch", [overlapping_batch, duplicate_date_batch])
def test_streaming_matches_reconciler(batch):
    records = consolidate(batch())
    groups = group(records)
    rows = snapshot_rows(records)

    for date_range in all_ranges(groups):
        slots = in_range_slots(groups, date_range)
        expected = {record.identity: reconcile_slots(record, slots) for record in records}
        aggregator = StreamingRangeAggregator(groups, date_range)
        aggregator.extend(reversed(rows))

        streamed = {row.identity: row for row in aggregator.finalize()}

        assert streamed == expected, date_range
        assert {row.identity: row for row in summarize_stream(rows, groups, date_range)} == expected
        bounds = aggregator.rank_bounds()
        for record in records:
            assert bounds[record.identity] == rank_bounds(record, slots), date_range


@pytest.mark.parametrize("batch", [overlapping_batch, duplicate_date_batch])
def test_formulas_match_reconciler(batch):
    records = consolidate(batch())
    groups = group(records)
    table = build_long_table(records, groups)

    for date_range in all_ranges(groups):
        slots = in_range_slots(groups, date_range)
        result = evaluate(
            table,
            column_keys.to_excel_serial(date_range.start),
            column_keys.to_excel_serial(date_range.end),
        )
        for key_id, record in enumerate(records, start=1):
            row = reconcile_slots(record, slots)
            got = result.loc[key_id]
            assert (
                int(got["initial_holding"]),
                int(got["bought"]),
                int(got["sold"]),
                int(got["net"]),
                int(got["still_holding"]),
            ) == (row.initial_holding, row.bought, row.sold, row.net, row.still_holding), date_range
            assert (int(got["start_rank"]), int(got["end_rank"])) == rank_bounds(record, slots), date_range


def test_streaming_sums_rows_sharing_a_key():
    records = consolidate(duplicate_date_batch())
    groups = group(records)
    date_range = DateRange(date(2025, 12, 1), date(2025, 12, 10))
    rows = [row for row in snapshot_rows(records) if row.name == "Y Trust"]

    aggregator = StreamingRangeAggregator(groups, date_range)
    aggregator.extend(rows + rows)

    [summary] = aggregator.finalize()
    assert (summary.initial_holding, summary.bought, summary.sold) == (2, 2, 0)
    assert aggregator.rows_seen == 4
