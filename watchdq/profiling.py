"""
Missingness profiling.

Pure reads over a Dataset: null counts and percentages per column, plus a
compact table profile for the run report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from .dataset import Dataset, as_dataset, percentage
from .errors import EmptyDatasetError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnMissingness:
    column: str
    total_rows: int
    missing_count: int
    missing_percentage: float


@dataclass
class TableProfile:
    """Compact per-table statistics (report/logging)."""
    name: str
    rows: int
    cols: int
    memory_mb: float
    missing_by_col: Dict[str, int]
    duplicate_rows_full: Optional[int] = None
    duplicate_rows_on_keys: Optional[int] = None


def memory_mb(df: pd.DataFrame) -> float:
    """Memory footprint in MB (deep=True counts strings)."""
    return float(df.memory_usage(deep=True).sum()) / (1024 ** 2)


def profile(
    dataset: Union[Dataset, pd.DataFrame],
    columns: Optional[Sequence[str]] = None,
    precision: int = 2,
) -> Dict[str, ColumnMissingness]:
    """
    Null count and percentage for each requested column.

    Args:
        dataset: table to profile.
        columns: columns to report, in order. ``None`` means all columns.
        precision: decimal places of ``missing_percentage``.

    Raises:
        EmptyDatasetError: the table has no rows.
        MissingColumnError: a requested column does not exist.
    """
    ds = as_dataset(dataset)
    cols: List[str] = list(columns) if columns is not None else ds.columns
    ds.require_columns(cols)

    total = ds.row_count
    if total == 0:
        raise EmptyDatasetError(ds.name, "cannot compute missingness")

    out: Dict[str, ColumnMissingness] = {}
    for c in cols:
        missing = int(ds.frame[c].isna().sum())
        out[c] = ColumnMissingness(
            column=c,
            total_rows=total,
            missing_count=missing,
            missing_percentage=percentage(missing, total, precision, ds.name),
        )

    logger.info(
        "Profiled %s (%d rows): %s",
        ds.name,
        total,
        ", ".join(f"{c}={m.missing_percentage}%" for c, m in out.items()),
    )
    return out


def missingness_frame(prof: Dict[str, ColumnMissingness]) -> pd.DataFrame:
    """Tabular view of a profile, one row per column."""
    return pd.DataFrame([asdict(m) for m in prof.values()])


def profile_table(dataset: Union[Dataset, pd.DataFrame], key: Optional[Sequence[str]] = None) -> TableProfile:
    """
    Compact table profile: shape, memory, nulls per column and duplicates
    (on the full row, or on `key` when given).
    """
    ds = as_dataset(dataset)
    df = ds.frame
    if key:
        ds.require_columns(key)

    prof = TableProfile(
        name=ds.name,
        rows=int(len(df)),
        cols=int(df.shape[1]),
        memory_mb=round(memory_mb(df), 2),
        missing_by_col={c: int(df[c].isna().sum()) for c in df.columns},
    )

    if key:
        prof.duplicate_rows_on_keys = int(df.duplicated(subset=list(key)).sum())
    else:
        prof.duplicate_rows_full = int(df.duplicated().sum())

    return prof
