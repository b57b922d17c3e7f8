"""Grouping column keys by originating file into the period sequence."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from .models import FIRST, SECOND, FileGroup, HoldingRecord, SnapshotColumnKey

logger = logging.getLogger(__name__)


def collect_keys(records: Iterable[HoldingRecord]) -> set[SnapshotColumnKey]:
    keys: set[SnapshotColumnKey] = set()
    for record in records:
        keys.update(record.snapshots.keys())
    return keys


def group_keys(keys: Iterable[SnapshotColumnKey]) -> list[FileGroup]:
    """Build one group per file index, ordered by the group's earliest date.

    Keys without a date or without file/position provenance cannot be placed
    in the sequence and are left out. When two dates claim the same file
    index and position, the earliest is kept and the rest are logged.
    """
    by_file: dict[int, dict[int, SnapshotColumnKey]] = defaultdict(dict)
    discarded: list[SnapshotColumnKey] = []
    for key in sorted(
        (key for key in keys if key.is_grouped and key.base_date is not None),
        key=lambda key: (key.file_index, key.position, key.base_date),
    ):
        slot = by_file[key.file_index]
        if key.position in slot:
            discarded.append(key)
            continue
        slot[key.position] = key
    if discarded:
        logger.warning(
            "Discarded %d column keys that reuse a file index and position: %s",
            len(discarded),
            ", ".join(f"{key.base_date.isoformat()}@{key.file_index}-{key.position}" for key in discarded),
        )

    groups = [
        FileGroup(file_index=file_index, first_key=slots.get(FIRST), second_key=slots.get(SECOND))
        for file_index, slots in by_file.items()
    ]
    groups.sort(key=lambda group: (group.sort_date, group.file_index))
    return groups


def group(records: Iterable[HoldingRecord], all_keys: Iterable[SnapshotColumnKey] = ()) -> list[FileGroup]:
    keys = collect_keys(records)
    keys.update(all_keys)
    return group_keys(keys)


def ordered_column_keys(groups: Iterable[FileGroup]) -> list[SnapshotColumnKey]:
    """Column keys in period order, for matrix-style presentation."""
    keys: list[SnapshotColumnKey] = []
    for file_group in groups:
        keys.extend(file_group.keys())
    return keys
