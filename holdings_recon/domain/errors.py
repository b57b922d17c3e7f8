"""Domain-level exceptions."""
from __future__ import annotations


class HoldingsError(Exception):
    """Base exception for holdings reconciliation failures."""


class UnparseableFileError(HoldingsError):
    """Raised when an uploaded file cannot yield two dated AS ON columns."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class InvalidRangeError(HoldingsError):
    """Raised when a date range is required but no dates are available."""
