import logging
from dataclasses import asdict
from typing import Tuple

import pandas as pd
from typing_extensions import Annotated
from zenml import step

from watchdq.config import WATCH_HISTORY_DEDUP, WATCH_HISTORY_ROBUST
from watchdq.dataset import Dataset
from watchdq.outliers import QuantileBounds, cap, capping_summaries, fit_bounds, outlier_report
from watchdq.quantiles import make_estimator
from watchdq.verification import verify_capping
from .config import CappingConfig


@step
def fit_bounds_step(dedup: pd.DataFrame, config: CappingConfig) -> Tuple[
    Annotated[dict, "bounds"],
    Annotated[dict, "outlier_report"],
]:
    """
    Fit the IQR fence on the deduplicated events and count outliers.
    """
    try:
        ds = Dataset(WATCH_HISTORY_DEDUP, dedup)
        estimator = make_estimator(config.estimator, config.epsilon)
        bounds = fit_bounds(ds, config.column, k=config.iqr_k, estimator=estimator, strict=config.strict)
        report = outlier_report(ds, config.column, bounds)
        return bounds.to_dict(), asdict(report)
    except Exception as e:
        logging.error(f"Error fitting bounds on {WATCH_HISTORY_DEDUP}.{config.column}: {e}")
        raise


@step
def cap_step(dedup: pd.DataFrame, bounds: dict, config: CappingConfig) -> Tuple[
    Annotated[pd.DataFrame, "watch_history_robust"],
    Annotated[list, "capping_summary"],
]:
    """
    Add the capped column using the bounds fitted in this run.
    """
    try:
        fence = QuantileBounds.from_dict(bounds)
        ds = Dataset(WATCH_HISTORY_DEDUP, dedup)
        robust = cap(ds, config.column, fence, name=WATCH_HISTORY_ROBUST)
        before, after = capping_summaries(ds, robust, config.column)
        verify_capping(fence, before, after)
        return robust.frame, [asdict(before), asdict(after)]
    except Exception as e:
        logging.error(f"Error capping {WATCH_HISTORY_DEDUP}.{config.column}: {e}")
        raise
