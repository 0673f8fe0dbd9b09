"""
IQR fence, outlier counting and capping (winsorizing).

Bounds are fitted from the data on every run and threaded to `cap`;
nothing here ever stores a literal cap value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .dataset import Dataset, as_dataset, percentage
from .errors import ColumnTypeError, DegenerateDistributionError, EmptyDatasetError
from .quantiles import ExactQuantileEstimator, QuantileEstimator

logger = logging.getLogger(__name__)

CAPPED_SUFFIX = "_capped"
DEGENERATE_NOTE = "zero IQR: bounds collapsed onto q1, every non-q1 value is an outlier"


@dataclass(frozen=True)
class QuantileBounds:
    """Tukey fence fitted on one column: [q1 - k*iqr, q3 + k*iqr]."""
    column: str
    q1: float
    q3: float
    iqr: float
    k: float
    lower: float
    upper: float
    degenerate: bool = False

    def is_outlier(self, s: pd.Series) -> pd.Series:
        """Bool mask, False for nulls."""
        return ((s < self.lower) | (s > self.upper)).fillna(False).astype(bool)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "QuantileBounds":
        return cls(**d)


@dataclass(frozen=True)
class OutlierReport:
    column: str
    total_rows: int
    non_null_rows: int
    outlier_count: int
    outlier_percentage: float


@dataclass(frozen=True)
class ColumnSummary:
    stage: str
    column: str
    min: float
    median: float
    max: float


def capped_name(column: str) -> str:
    return f"{column}{CAPPED_SUFFIX}"


def numeric_values(ds: Dataset, column: str) -> pd.Series:
    """Non-null values of a numeric column."""
    ds.require_columns([column])
    s = ds.frame[column]
    if not pd.api.types.is_numeric_dtype(s) or pd.api.types.is_bool_dtype(s):
        raise ColumnTypeError(f"{ds.name}.{column} is not numeric (dtype={s.dtype})")
    return s.dropna().astype("float64")


def fit_bounds(
    dataset: Union[Dataset, pd.DataFrame],
    column: str,
    k: float = 1.5,
    estimator: Optional[QuantileEstimator] = None,
    strict: bool = False,
) -> QuantileBounds:
    """
    Fit q1/q3 and the fence on the non-null values of `column`.

    Zero IQR collapses all bounds onto q1; the outlier test then becomes
    ``value != q1``. With ``strict=True`` that case raises
    `DegenerateDistributionError` instead.

    Raises:
        MissingColumnError, ColumnTypeError, EmptyDatasetError
    """
    ds = as_dataset(dataset)
    values = numeric_values(ds, column)
    if values.empty:
        raise EmptyDatasetError(ds.name, f"no non-null values in {column}")

    est = estimator or ExactQuantileEstimator()
    q1, q3 = est.quantiles(values, [0.25, 0.75])
    iqr = q3 - q1

    degenerate = iqr == 0
    if degenerate:
        msg = f"{ds.name}.{column}: zero IQR (q1 == q3 == {q1}); bounds collapse to a single point"
        if strict:
            raise DegenerateDistributionError(msg)
        logger.warning(msg)

    bounds = QuantileBounds(
        column=column,
        q1=float(q1),
        q3=float(q3),
        iqr=float(iqr),
        k=float(k),
        lower=float(q1 - k * iqr),
        upper=float(q3 + k * iqr),
        degenerate=bool(degenerate),
    )
    logger.info(
        "Bounds for %s.%s (%s): q1=%.4g q3=%.4g lower=%.4g upper=%.4g",
        ds.name, column, est.name, bounds.q1, bounds.q3, bounds.lower, bounds.upper,
    )
    return bounds


def outlier_report(
    dataset: Union[Dataset, pd.DataFrame],
    column: str,
    bounds: QuantileBounds,
    precision: int = 2,
) -> OutlierReport:
    """
    Count values outside the fence on the uncapped column. Every row is in
    the denominator; nulls are never outliers.
    """
    ds = as_dataset(dataset)
    values = numeric_values(ds, column)
    total = ds.row_count
    n_out = int(bounds.is_outlier(values).sum())

    return OutlierReport(
        column=column,
        total_rows=total,
        non_null_rows=int(len(values)),
        outlier_count=n_out,
        outlier_percentage=percentage(n_out, total, precision, ds.name),
    )


def cap(
    dataset: Union[Dataset, pd.DataFrame],
    column: str,
    bounds: QuantileBounds,
    name: Optional[str] = None,
) -> Dataset:
    """
    Add ``<column>_capped`` = column clipped to [lower, upper].

    Non-destructive: the source column and all other columns are copied
    unchanged, row count is preserved, null stays null.
    """
    ds = as_dataset(dataset)
    numeric_values(ds, column)

    df = ds.frame.copy()
    df[capped_name(column)] = df[column].astype("float64").clip(lower=bounds.lower, upper=bounds.upper)

    out_name = name or f"{ds.name}_robust"
    logger.info("Capped %s.%s -> %s.%s", ds.name, column, out_name, capped_name(column))
    return ds.derive(out_name, df)


def summarize(dataset: Union[Dataset, pd.DataFrame], column: str, stage: str) -> ColumnSummary:
    """min / median / max of the non-null values."""
    ds = as_dataset(dataset)
    values = numeric_values(ds, column)
    if values.empty:
        raise EmptyDatasetError(ds.name, f"no non-null values in {column}")
    return ColumnSummary(
        stage=stage,
        column=column,
        min=float(values.min()),
        median=float(np.median(values.to_numpy())),
        max=float(values.max()),
    )


def capping_summaries(
    before: Union[Dataset, pd.DataFrame],
    after: Union[Dataset, pd.DataFrame],
    column: str,
) -> Tuple[ColumnSummary, ColumnSummary]:
    """Before/after summaries of the source column and its capped twin."""
    return (
        summarize(before, column, "before_capping"),
        summarize(after, capped_name(column), "after_capping"),
    )
