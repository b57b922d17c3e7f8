"""Central configuration for the holdings reconciliation package."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from holdings_recon.domain.ingest import AS_ON_PATTERN

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"


def _get_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(slots=True, frozen=True)
class Settings:
    data_dir: Path
    database_url: str
    stream_batch_size: int
    as_on_header_pattern: str


SETTINGS = Settings(
    data_dir=DATA_DIR,
    database_url=os.getenv("HOLDINGS_DATABASE_URL", f"sqlite:///{DATA_DIR / 'holdings.db'}"),
    stream_batch_size=_get_int_env("HOLDINGS_STREAM_BATCH_SIZE", 1000),
    as_on_header_pattern=AS_ON_PATTERN,
)


def ensure_data_dir(settings: Settings = SETTINGS) -> Path:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings.data_dir
