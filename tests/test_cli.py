from datetime import date
from io import BytesIO

from openpyxl import load_workbook

from factories import holding_frame, write_xlsx
from holdings_recon.cli import main

X = ("IN1", "10", "X Corp")


def statements(tmp_path):
    week1 = write_xlsx(tmp_path / "week1.xlsx", holding_frame(date(2025, 1, 1), date(2025, 1, 31), [X + (500, 600, 150, 50)]))
    week2 = write_xlsx(tmp_path / "week2.xlsx", holding_frame(date(2025, 1, 31), date(2025, 2, 28), [X + (600, 700, 100, 0)]))
    return [str(week2), str(week1)]


def test_ingest_writes_outputs_and_persists(tmp_path, capsys):
    database_url = f"sqlite:///{tmp_path / 'h.db'}"
    workbook_path = tmp_path / "summary.xlsx"
    csv_path = tmp_path / "matrix.csv"

    code = main(
        ["--database-url", database_url, "ingest", *statements(tmp_path), "--persist", "--workbook", str(workbook_path), "--csv", str(csv_path)]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "Still holding: 700" in out
    assert "Persisted 4 snapshot rows." in out
    assert csv_path.read_text().startswith("DPID,CLIENT-ID")
    assert load_workbook(BytesIO(workbook_path.read_bytes())).sheetnames[0] == "Summary"

    exported = tmp_path / "from_store.xlsx"
    assert main(["--database-url", database_url, "export", "--workbook", str(exported), "--to", "31-01-2025"]) == 0
    summary = load_workbook(exported, data_only=True)["Summary"]
    assert summary["I3"].value == 600


def test_ingest_range_arguments(tmp_path, capsys):
    code = main(["ingest", *statements(tmp_path), "--from", "2025-01-01", "--to", "2025-01-31"])

    assert code == 0
    out = capsys.readouterr().out
    assert "Range: 2025-01-01 to 2025-01-31" in out
    assert "Bought: 150" in out


def test_rejected_files_reported(tmp_path, capsys):
    bad = tmp_path / "bad.xlsx"
    bad.write_bytes(b"not excel")

    code = main(["ingest", str(bad)])

    assert code == 1
    out = capsys.readouterr().out
    assert "REJECTED" in out
    assert "No usable data ingested." in out


def test_export_from_empty_store_fails(tmp_path, capsys):
    code = main(["--database-url", f"sqlite:///{tmp_path / 'empty.db'}", "export", "--workbook", str(tmp_path / "out.xlsx")])

    assert code == 1
    assert "no AS ON dates" in capsys.readouterr().err
