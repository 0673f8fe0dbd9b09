"""
Plain-Python orchestration of the four stages.

raw watch_history -> dedup -> robust -> flags, with profiling and the
users/movies rules running on their raw inputs. Every stage either
completes or raises; nothing is persisted here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Union

import pandas as pd

from . import config
from .anomalies import FlagSummary, RuleRegistry, default_rules, evaluate
from .config import POLICY, QualityPolicy
from .dataset import Dataset, as_dataset
from .dedup import DedupReport, dedup_report, deduplicate, duplicate_groups
from .errors import UnknownDatasetError
from .outliers import (
    DEGENERATE_NOTE,
    ColumnSummary,
    OutlierReport,
    QuantileBounds,
    cap,
    capping_summaries,
    fit_bounds,
    outlier_report,
)
from .profiling import ColumnMissingness, TableProfile, profile, profile_table
from .quantiles import QuantileEstimator, make_estimator
from .verification import verify_capping, verify_dedup, verify_percentages, verify_row_count

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything one run produces: derived datasets plus report objects."""
    datasets: Dict[str, Dataset]
    missingness: Dict[str, Dict[str, ColumnMissingness]]
    table_profiles: Dict[str, TableProfile]
    dedup: DedupReport
    duplicate_groups: pd.DataFrame
    bounds: QuantileBounds
    outliers: OutlierReport
    capping: List[ColumnSummary]
    flags: List[FlagSummary]
    notes: Dict[str, str] = field(default_factory=dict)


def _require_tables(tables: Mapping[str, Union[Dataset, pd.DataFrame]]) -> Dict[str, Dataset]:
    missing = [t for t in config.INPUT_TABLES if t not in tables]
    if missing:
        raise UnknownDatasetError(f"Missing input tables: {missing}")
    return {name: as_dataset(tables[name], name) for name in tables}


def run_quality_pipeline(
    tables: Mapping[str, Union[Dataset, pd.DataFrame]],
    policy: QualityPolicy = POLICY,
    estimator: Optional[QuantileEstimator] = None,
    rules: Optional[RuleRegistry] = None,
) -> PipelineResult:
    """
    Run profiling, dedup, capping and flagging over the raw tables.

    Args:
        tables: at least ``users``, ``watch_history`` and ``movies``.
        policy: thresholds and switches.
        estimator: quantile strategy; defaults to the policy's choice.
        rules: anomaly rules; defaults to the three standard flags.
    """
    raw = _require_tables(tables)
    est = estimator or make_estimator(policy.quantile_estimator, policy.gk_epsilon)
    rules = rules if rules is not None else default_rules()

    # 1. Profiler
    logger.info("Stage 1/4: profiling")
    missingness = {
        name: profile(raw[name], cols, policy.precision)
        for name, cols in config.PROFILE_COLUMNS.items()
    }
    table_profiles = {
        name: profile_table(ds, config.WATCH_KEY if name == config.WATCH_HISTORY else None)
        for name, ds in raw.items()
    }
    for name, prof in missingness.items():
        verify_percentages((m.missing_percentage for m in prof.values()), f"{name} missingness")

    # 2. Deduplicator
    logger.info("Stage 2/4: deduplication")
    events = raw[config.WATCH_HISTORY]
    dup_groups = duplicate_groups(events, config.WATCH_KEY, policy.duplicate_report_limit)
    dedup = deduplicate(events, config.WATCH_KEY, config.WATCH_ORDER, name=config.WATCH_HISTORY_DEDUP)
    d_report = dedup_report(events, dedup, config.WATCH_KEY)
    verify_dedup(d_report, dedup, config.WATCH_KEY)

    # 3. OutlierCapper
    logger.info("Stage 3/4: outlier capping")
    bounds = fit_bounds(dedup, config.CAP_COLUMN, k=policy.iqr_k, estimator=est, strict=policy.strict_bounds)
    o_report = outlier_report(dedup, config.CAP_COLUMN, bounds, policy.precision)
    verify_percentages([o_report.outlier_percentage], "outlier_percentage")

    robust = cap(dedup, config.CAP_COLUMN, bounds, name=config.WATCH_HISTORY_ROBUST)
    verify_row_count(dedup, robust)
    before, after = capping_summaries(dedup, robust, config.CAP_COLUMN)
    verify_capping(bounds, before, after, policy.gate_tolerance)

    # 4. AnomalyFlagger
    logger.info("Stage 4/4: anomaly flags")
    available = dict(raw)
    available[dedup.name] = dedup
    available[robust.name] = robust
    flags = evaluate(rules, available, policy.precision)
    verify_percentages((f.matched_percentage for f in flags), "flag percentages")

    notes = {}
    if bounds.degenerate:
        notes["bounds"] = DEGENERATE_NOTE

    logger.info("Pipeline finished: %d -> %d events, %d flags", d_report.raw_count, d_report.dedup_count, len(flags))
    return PipelineResult(
        datasets={dedup.name: dedup, robust.name: robust},
        missingness=missingness,
        table_profiles=table_profiles,
        dedup=d_report,
        duplicate_groups=dup_groups,
        bounds=bounds,
        outliers=o_report,
        capping=[before, after],
        flags=flags,
        notes=notes,
    )
