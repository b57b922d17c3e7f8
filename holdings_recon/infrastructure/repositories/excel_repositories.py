"""Upload-backed repositories for holding files."""
from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Mapping, Sequence

from holdings_recon.domain.ingest import ParsedHoldingFile
from holdings_recon.domain.repositories import HoldingFileSource
from holdings_recon.infrastructure.parsing.holdings import parse_holding_file
from holdings_recon.infrastructure.parsing.utils import ensure_bytes


class UploadedHoldingFiles(HoldingFileSource):
    """In-memory uploads keyed by their original file names."""

    def __init__(self, uploads: Mapping[str, BytesIO | Path | bytes]) -> None:
        self._uploads = {name: ensure_bytes(content) for name, content in uploads.items()}

    def source_names(self) -> Sequence[str]:
        return list(self._uploads)

    def parse(self, name: str) -> ParsedHoldingFile:
        return parse_holding_file(self._uploads[name], name=name)


class PathHoldingFiles(HoldingFileSource):
    def __init__(self, paths: Sequence[Path | str]) -> None:
        self._paths = {str(path): Path(path) for path in paths}

    def source_names(self) -> Sequence[str]:
        return list(self._paths)

    def parse(self, name: str) -> ParsedHoldingFile:
        return parse_holding_file(self._paths[name], name=name)
