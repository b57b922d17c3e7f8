from datetime import date
from itertools import combinations_with_replacement

from factories import make_file
from holdings_recon.domain.consolidation import consolidate
from holdings_recon.domain.errors import InvalidRangeError
from holdings_recon.domain.grouping import group
from holdings_recon.domain.models import SummaryRow
from holdings_recon.domain.reconciliation import (
    DateRange,
    default_range,
    reconcile,
    reconcile_all,
    resolve_range,
    sort_by_net,
    totals,
)

X = ("IN1", "10", "X Corp")


def build(files):
    records = consolidate(files)
    return records, group(records)


def figures(row: SummaryRow):
    return (row.initial_holding, row.bought, row.sold, row.net, row.still_holding)


def two_period_batch():
    g1 = make_file("g1.xlsx", date(2025, 1, 1), date(2025, 1, 31), [X + (500, 600, 150, 50)])
    g2 = make_file("g2.xlsx", date(2025, 1, 31), date(2025, 2, 28), [X + (600, 700, 100, 0)])
    return build([g2, g1])


def test_baseline_rebuilt_from_second_snapshot():
    records, groups = build([make_file("one.xlsx", date(2025, 1, 1), date(2025, 1, 8), [X + (900, 1000, 200, 50)])])

    [row] = reconcile_all(records, groups, DateRange(date(2025, 1, 8), date(2025, 1, 8)))

    assert figures(row) == (850, 200, 50, 150, 1000)


def test_first_period_only():
    records, groups = two_period_batch()

    [row] = reconcile_all(records, groups, DateRange(date(2025, 1, 1), date(2025, 1, 31)))

    assert figures(row) == (500, 150, 50, 100, 600)


def test_both_periods():
    records, groups = two_period_batch()

    [row] = reconcile_all(records, groups, DateRange(date(2025, 1, 1), date(2025, 2, 28)))

    assert figures(row) == (500, 250, 50, 200, 700)


def test_second_period_only():
    records, groups = two_period_batch()

    [row] = reconcile_all(records, groups, DateRange(date(2025, 2, 1), date(2025, 2, 28)))

    assert figures(row) == (600, 100, 0, 100, 700)


def test_range_outside_data_gives_zero_row():
    records, groups = two_period_batch()

    row = reconcile(records[0], groups, DateRange(date(2024, 1, 1), date(2024, 12, 31)))

    assert figures(row) == (0, 0, 0, 0, 0)
    assert row.identity == records[0].identity


def test_identity_missing_from_later_file():
    g1 = make_file("g1.xlsx", date(2025, 1, 1), date(2025, 1, 31), [X + (500, 600, 150, 50), ("IN1", "11", "Y", 10, 0, 0, 10)])
    g2 = make_file("g2.xlsx", date(2025, 1, 31), date(2025, 2, 28), [X + (600, 700, 100, 0)])
    records, groups = build([g1, g2])

    rows = {row.identity.name: row for row in reconcile_all(records, groups, default_range(groups))}

    assert figures(rows["Y"]) == (10, 0, 10, -10, 0)
    assert figures(rows["X Corp"]) == (500, 250, 50, 200, 700)


def test_end_on_first_snapshot_excludes_that_period_deltas():
    # X exists in g2 only through its first column inside the range
    g1 = make_file("g1.xlsx", date(2025, 1, 1), date(2025, 1, 10), [X + (100, 110, 20, 10)])
    g2 = make_file("g2.xlsx", date(2025, 1, 10), date(2025, 1, 20), [X + (110, 300, 190, 0)])
    records, groups = build([g1, g2])

    [row] = reconcile_all(records, groups, DateRange(date(2025, 1, 1), date(2025, 1, 15)))

    assert figures(row) == (100, 20, 10, 10, 110)


def test_invariant_holds_for_every_range():
    g1 = make_file("g1.xlsx", date(2025, 1, 1), date(2025, 1, 10), [X + (100, 110, 20, 10), ("IN2", "1", "Z", 0, 50, 50, 0)])
    g2 = make_file("g2.xlsx", date(2025, 1, 5), date(2025, 1, 20), [X + (105, 90, 5, 25)])
    g3 = make_file("g3.xlsx", date(2025, 1, 20), date(2025, 1, 25), [("IN2", "1", "Z", 40, 45, 7, 2), X + (90, 95, 5, 0)])
    records, groups = build([g3, g1, g2])
    dates = sorted({key.base_date for g in groups for key in g.keys()})

    for start, end in combinations_with_replacement(dates, 2):
        for row in reconcile_all(records, groups, DateRange(start, end)):
            assert row.net == row.bought - row.sold
            assert row.still_holding == row.initial_holding + row.net


def test_reconcile_is_pure_across_range_changes():
    records, groups = two_period_batch()
    narrow = DateRange(date(2025, 1, 1), date(2025, 1, 31))
    wide = DateRange(date(2025, 1, 1), date(2025, 2, 28))

    before = reconcile_all(records, groups, narrow)
    reconcile_all(records, groups, wide)
    after = reconcile_all(records, groups, narrow)

    assert before == after


def test_resolve_range_defaults_and_swaps():
    _, groups = two_period_batch()

    assert resolve_range(groups) == DateRange(date(2025, 1, 1), date(2025, 2, 28))
    assert resolve_range(groups, date(2025, 2, 1), date(2025, 1, 5)) == DateRange(date(2025, 1, 5), date(2025, 2, 1))
    assert resolve_range(groups, start=date(2025, 2, 1)) == DateRange(date(2025, 2, 1), date(2025, 2, 28))


def test_resolve_range_without_dates():
    try:
        resolve_range([])
    except InvalidRangeError:
        pass
    else:
        raise AssertionError("range resolved without any dates")


def test_sorting_and_totals():
    g1 = make_file(
        "g1.xlsx",
        date(2025, 1, 1),
        date(2025, 1, 10),
        [("A", "1", "Low", 10, 5, 0, 5), ("A", "2", "High", 0, 90, 100, 10)],
    )
    records, groups = build([g1])

    rows = sort_by_net(reconcile_all(records, groups, default_range(groups)))

    assert [row.identity.name for row in rows] == ["High", "Low"]
    assert totals(rows) == {"initial_holding": 10, "bought": 100, "sold": 15, "net": 85, "still_holding": 95}
