"""
Period Join Module
Enriches one report window with value columns from another window of the same entities.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "\t"


@dataclass
class JoinResult:
    header: List[str]
    rows: List[List[str]]


def _column_indices(header: Sequence[str], columns: Sequence[str], label: str) -> List[int]:
    positions = {name: i for i, name in enumerate(header)}
    indices = []
    for column in columns:
        if column not in positions:
            raise KeyError(f"{label} column not found: {column}")
        indices.append(positions[column])
    return indices


def _key(row: Sequence[str], indices: Sequence[int]) -> str:
    return KEY_SEPARATOR.join(str(row[i]) if i < len(row) else "" for i in indices)


def join_by_key(
    base_rows: Sequence[Sequence[str]],
    base_header: Sequence[str],
    enrich_rows: Sequence[Sequence[str]],
    enrich_header: Sequence[str],
    key_columns: Sequence[str],
    enrich_value_columns: Sequence[str],
    base_tag: str = "7d",
    enrich_tag: str = "28d"
) -> JoinResult:
    """
    Left outer join of base rows with enrichment values by composite key.

    Every base row is kept in its original order. Base columns that share a
    name with an enrichment value column get a `_<base_tag>` suffix; the
    enrichment values are appended as `<column>_<enrich_tag>`, or "" when the
    key has no match. With duplicate enrichment keys the first row wins.

    Raises:
        KeyError: If a key or value column is missing from either header
    """
    base_key_idx = _column_indices(base_header, key_columns, "Base key")
    enrich_key_idx = _column_indices(enrich_header, key_columns, "Enrichment key")
    enrich_value_idx = _column_indices(enrich_header, enrich_value_columns, "Enrichment value")

    lookup: Dict[str, List[str]] = {}
    for row in enrich_rows:
        key = _key(row, enrich_key_idx)
        if key not in lookup:
            lookup[key] = [row[i] if i < len(row) else "" for i in enrich_value_idx]

    renamed = set(enrich_value_columns)
    header = [f"{name}_{base_tag}" if name in renamed else name for name in base_header]
    header.extend(f"{name}_{enrich_tag}" for name in enrich_value_columns)

    empty = [""] * len(enrich_value_columns)
    rows = []
    matched = 0
    for row in base_rows:
        values = lookup.get(_key(row, base_key_idx))
        if values is not None:
            matched += 1
        rows.append(list(row) + list(values if values is not None else empty))

    logger.info(
        f"Joined {len(rows)} {base_tag} rows with {len(enrich_rows)} {enrich_tag} rows "
        f"({matched} matched)"
    )
    return JoinResult(header=header, rows=rows)
