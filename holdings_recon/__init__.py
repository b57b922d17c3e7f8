"""Consolidation and range reconciliation of holdings snapshots."""
from holdings_recon.application.use_cases import (
    ExportWorkbookUseCase,
    IngestContext,
    IngestHoldingsUseCase,
    PersistHoldingsUseCase,
    SummarizeHoldingsUseCase,
)
from holdings_recon.domain.reconciliation import DateRange, reconcile, reconcile_all
from holdings_recon.infrastructure.repositories.excel_repositories import (
    PathHoldingFiles,
    UploadedHoldingFiles,
)

__all__ = [
    "ExportWorkbookUseCase",
    "IngestContext",
    "IngestHoldingsUseCase",
    "PersistHoldingsUseCase",
    "SummarizeHoldingsUseCase",
    "DateRange",
    "reconcile",
    "reconcile_all",
    "PathHoldingFiles",
    "UploadedHoldingFiles",
]
