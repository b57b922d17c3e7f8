from datetime import date

from factories import make_file
from holdings_recon.domain.consolidation import consolidate
from holdings_recon.domain.grouping import group
from holdings_recon.presentation.matrix_report import format_bs, matrix_frame, render_csv, search_records

X = ("IN1", "10", "X Corp")
Y = ("IN1", "11", "Y Trust")


def sample():
    g1 = make_file("g1.xlsx", date(2025, 1, 1), date(2025, 1, 31), [X + (500, 600, 150, 50), Y + (10, 0, 0, 10)])
    g2 = make_file("g2.xlsx", date(2025, 1, 31), date(2025, 2, 28), [X + (600, 700, 100, 0)])
    records = consolidate([g2, g1])
    return records, group(records)


def test_bs_cell():
    assert format_bs(150, 50) == "+150-50"
    assert format_bs(100, 0) == "+100"
    assert format_bs(0, 10) == "-10"
    assert format_bs(0, 0) == "-"


def test_matrix_layout():
    records, groups = sample()

    frame = matrix_frame(records, groups)

    assert list(frame.columns) == [
        "DPID",
        "CLIENT-ID",
        "CATEGORY",
        "NAME",
        "INITIAL HOLDING",
        "AS ON 01-01-2025",
        "B/S",
        "AS ON 31-01-2025",
        "AS ON 31-01-2025 #2",
        "B/S #2",
        "AS ON 28-02-2025",
    ]
    x = frame[frame["NAME"] == "X Corp"].iloc[0].tolist()
    assert x[4:] == [500, 500, "+150-50", 600, 600, "+100", 700]
    y = frame[frame["NAME"] == "Y Trust"].iloc[0].tolist()
    assert y[4:] == [10, 10, "-10", 0, 0, "-", 0]


def test_newest_first_only_reorders_columns():
    records, groups = sample()

    frame = matrix_frame(records, groups, newest_first=True)

    assert list(frame.columns)[5] == "AS ON 31-01-2025"
    assert list(frame.columns)[7] == "AS ON 28-02-2025"
    assert frame[frame["NAME"] == "X Corp"].iloc[0]["INITIAL HOLDING"] == 500


def test_search_and_csv():
    records, groups = sample()

    assert [r.name for r in search_records(records, "trust")] == ["Y Trust"]
    assert len(search_records(records, "  ")) == 2

    text = render_csv(records, groups).decode("utf-8")
    assert text.splitlines()[0].startswith("DPID,CLIENT-ID,CATEGORY,NAME,INITIAL HOLDING,AS ON 01-01-2025")
    assert len(text.splitlines()) == 3
