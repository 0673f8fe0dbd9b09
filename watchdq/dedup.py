"""
Composite-key deduplication.

Partition the table by its natural key, rank every partition by a
tie-break order and keep the head. A hidden row-position column is always
the last sort key, so the survivor is the same on every run for the same
input order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .dataset import Dataset, as_dataset
from .errors import InvalidKeyError

logger = logging.getLogger(__name__)

_ROW = "_row_position"


def _helper_column(df: pd.DataFrame, base: str = _ROW) -> str:
    """A column name not already used by `df`."""
    name = base
    while name in df.columns:
        name = f"_{name}"
    return name


_DIRECTIONS = {"asc": True, "ascending": True, "desc": False, "descending": False}


@dataclass(frozen=True)
class DedupReport:
    raw_count: int
    dedup_count: int
    removed_count: int
    duplicate_groups: int


def _parse_order(order: Sequence[Tuple[str, str]]) -> Tuple[List[str], List[bool]]:
    cols, ascending = [], []
    for col, direction in order:
        d = str(direction).lower()
        if d not in _DIRECTIONS:
            raise ValueError(f"Unknown sort direction {direction!r} for column {col!r}")
        cols.append(col)
        ascending.append(_DIRECTIONS[d])
    return cols, ascending


def deduplicate(
    dataset: Union[Dataset, pd.DataFrame],
    key: Sequence[str],
    order: Sequence[Tuple[str, str]] = (),
    name: Optional[str] = None,
) -> Dataset:
    """
    Keep exactly one record per key value.

    Args:
        dataset: input table (not modified).
        key: composite key columns.
        order: ``(column, "asc" | "desc")`` pairs ranking records inside a
            group; the first record wins. Nulls rank last in either
            direction. Remaining ties go to the earliest input row.
        name: name of the output dataset (default ``<name>_dedup``).

    Returns:
        A new Dataset with the input schema, survivors in input order.

    Raises:
        InvalidKeyError: a key column is missing.
        MissingColumnError: a tie-break column is missing.
    """
    ds = as_dataset(dataset)
    key = list(key)
    if not key:
        raise InvalidKeyError(ds.name, ["<empty key>"], ds.columns)
    ds.require_columns(key, error=InvalidKeyError)

    sort_cols, ascending = _parse_order(order)
    ds.require_columns(sort_cols)

    df = ds.frame.copy()
    row = _helper_column(df)
    df[row] = np.arange(len(df))

    # partition -> rank -> head
    ranked = df.sort_values(
        by=sort_cols + [row],
        ascending=ascending + [True],
        na_position="last",
        kind="mergesort",
    )
    survivors = ranked.groupby(key, dropna=False, sort=False).head(1)

    out = (
        survivors.sort_values(row, kind="mergesort")
        .drop(columns=[row])
        .reset_index(drop=True)
    )

    out_name = name or f"{ds.name}_dedup"
    logger.info("Deduplicated %s: %d -> %d rows (%s)", ds.name, len(df), len(out), out_name)
    return ds.derive(out_name, out)


def duplicate_groups(
    dataset: Union[Dataset, pd.DataFrame],
    key: Sequence[str],
    limit: Optional[int] = 20,
) -> pd.DataFrame:
    """
    Key values that occur more than once, with their ``dup_count``,
    largest groups first.
    """
    ds = as_dataset(dataset)
    key = list(key)
    ds.require_columns(key, error=InvalidKeyError)

    counts = (
        ds.frame.groupby(key, dropna=False, sort=False)
        .size()
        .reset_index(name="dup_count")
    )
    counts = counts[counts["dup_count"] > 1]
    counts = counts.sort_values("dup_count", ascending=False, kind="mergesort").reset_index(drop=True)
    if limit is not None:
        counts = counts.head(limit)
    return counts


def dedup_report(
    raw: Union[Dataset, pd.DataFrame],
    dedup: Union[Dataset, pd.DataFrame],
    key: Sequence[str],
) -> DedupReport:
    """Before/after row counts for the verification step."""
    raw_ds, dedup_ds = as_dataset(raw), as_dataset(dedup)
    n_groups = len(duplicate_groups(raw_ds, key, limit=None))
    return DedupReport(
        raw_count=raw_ds.row_count,
        dedup_count=dedup_ds.row_count,
        removed_count=raw_ds.row_count - dedup_ds.row_count,
        duplicate_groups=n_groups,
    )
