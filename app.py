"""Streamlit front-end for the holdings reconciliation pipeline."""
from __future__ import annotations

from io import BytesIO
from typing import Sequence

import pandas as pd
import streamlit as st

from holdings_recon import (
    ExportWorkbookUseCase,
    IngestContext,
    IngestHoldingsUseCase,
    PersistHoldingsUseCase,
    SummarizeHoldingsUseCase,
    UploadedHoldingFiles,
)
from holdings_recon.application.dto import SummaryRequest, SummaryResponse
from holdings_recon.domain.errors import HoldingsError
from holdings_recon.domain.reconciliation import default_range
from holdings_recon.domain.results import IngestReport
from holdings_recon.infrastructure.repositories.sql_repository import SqlSnapshotStore
from holdings_recon.presentation.matrix_report import matrix_frame, render_csv, search_records


st.set_page_config(page_title="Holdings Reconciliation", layout="wide")
st.title("Holdings Reconciliation Tool")


def run_ingest(uploads: dict[str, bytes]) -> IngestReport:
    source = UploadedHoldingFiles({name: BytesIO(content) for name, content in uploads.items()})
    return IngestHoldingsUseCase(IngestContext(source=source)).execute()


def file_status_dataframe(report: IngestReport) -> pd.DataFrame:
    rows = [
        {
            "file": item.source,
            "status": "OK",
            "file_index": item.file_index,
            "first_as_on": item.first_date,
            "second_as_on": item.second_date,
            "rows": item.rows,
            "reason": "",
        }
        for item in report.files
    ]
    rows.extend(
        {
            "file": failure.source,
            "status": "REJECTED",
            "file_index": None,
            "first_as_on": None,
            "second_as_on": None,
            "rows": 0,
            "reason": failure.reason,
        }
        for failure in report.failures
    )
    return pd.DataFrame(rows)


def summary_dataframe(summary: SummaryResponse, hide_zero: bool) -> pd.DataFrame:
    rows: Sequence = summary.rows
    if hide_zero:
        rows = [row for row in rows if row.initial_holding or row.bought or row.sold]
    frame = pd.DataFrame([row.as_dict() for row in rows])
    total = {"dpid": "", "client_id": "", "category": "", "name": "Total", **summary.totals}
    return pd.concat([pd.DataFrame([total]), frame], ignore_index=True)


if "report" not in st.session_state:
    st.session_state["report"] = None


uploads = st.file_uploader(
    "Upload holding statements",
    type=["xls", "xlsx", "csv"],
    accept_multiple_files=True,
)
run_btn = st.button("Ingest", disabled=not uploads)
if run_btn and uploads:
    with st.spinner("Reading files..."):
        st.session_state["report"] = run_ingest({upload.name: upload.read() for upload in uploads})
    st.rerun()

report: IngestReport | None = st.session_state.get("report")
if report is None:
    st.info("Upload two or more holding statements and press Ingest.")
    st.stop()

st.subheader("Files")
st.dataframe(file_status_dataframe(report), hide_index=True, use_container_width=True)
col1, col2, col3 = st.columns(3)
col1.metric("Files ingested", len(report.files))
col2.metric("Identities", report.identity_count)
col3.metric("Snapshots", report.snapshot_count)

if not report.has_usable_data():
    st.warning("None of the uploaded files had two dated AS ON columns.")
    st.stop()

full = default_range(report.groups)
tabs = st.tabs(["Summary", "Matrix"])

with tabs[0]:
    col_from, col_to, col_hide = st.columns([2, 2, 1])
    with col_from:
        start = st.date_input("From", value=full.start, min_value=full.start, max_value=full.end)
    with col_to:
        end = st.date_input("To", value=full.end, min_value=full.start, max_value=full.end)
    with col_hide:
        hide_zero = st.checkbox("Hide zero rows", value=True)

    request = SummaryRequest(start=start, end=end)
    summary = SummarizeHoldingsUseCase(report.records, report.groups).execute(request)
    st.caption(f"Range {summary.date_range.start:%d %b %Y} to {summary.date_range.end:%d %b %Y}")
    st.dataframe(summary_dataframe(summary, hide_zero), hide_index=True, use_container_width=True)

    try:
        export = ExportWorkbookUseCase().from_records(report.records, report.groups, request)
    except HoldingsError as exc:
        st.error(str(exc))
    else:
        st.download_button(
            "Download summary workbook",
            data=export.content,
            file_name="holdings_summary.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

    if st.button("Save batch to database"):
        written = PersistHoldingsUseCase(SqlSnapshotStore()).execute(report.records)
        st.success(f"Persisted {written} snapshot rows")

with tabs[1]:
    search_text = st.text_input("Search DPID / client / name / category", key="matrix_search")
    newest_first = st.toggle("Newest period first", value=False)
    visible = search_records(report.records, search_text or "")
    st.caption(f"Total {report.identity_count} identities; showing {len(visible)}")
    st.dataframe(matrix_frame(visible, report.groups, newest_first=newest_first), use_container_width=True)
    st.download_button(
        "Download matrix CSV",
        data=render_csv(visible, report.groups),
        file_name="holdings_matrix.csv",
        mime="text/csv",
    )
