import logging
from dataclasses import asdict
from typing import Tuple

import pandas as pd
from typing_extensions import Annotated
from zenml import step

from watchdq.config import WATCH_HISTORY, WATCH_HISTORY_DEDUP
from watchdq.dataset import Dataset
from watchdq.dedup import dedup_report, deduplicate, duplicate_groups
from watchdq.verification import verify_dedup
from .config import DedupConfig


@step
def deduplicate_step(watch_history: pd.DataFrame, config: DedupConfig) -> Tuple[
    Annotated[pd.DataFrame, "watch_history_dedup"],
    Annotated[dict, "dedup_report"],
    Annotated[list, "duplicate_groups"],
]:
    """
    Keep one event per (user, movie, date, device).
    Args:
        watch_history (pd.DataFrame): raw events.
        config (DedupConfig): key, tie-break order, how many groups to report.
    Returns:
        The deduplicated events, the before/after counts and the largest
        duplicate groups of the raw table.
    """
    try:
        raw = Dataset(WATCH_HISTORY, watch_history)
        dedup = deduplicate(raw, config.key, config.order, name=WATCH_HISTORY_DEDUP)
        report = dedup_report(raw, dedup, config.key)
        verify_dedup(report, dedup, config.key)
        groups = duplicate_groups(raw, config.key, config.report_limit)
        return dedup.frame, asdict(report), groups.to_dict(orient="records")
    except Exception as e:
        logging.error(f"Error deduplicating {WATCH_HISTORY}: {e}")
        raise
