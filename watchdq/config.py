# watchdq/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

DATA_DIR = Path(os.getenv("WATCHDQ_DATA_DIR", "data")).resolve()

# Table names
USERS = "users"
WATCH_HISTORY = "watch_history"
MOVIES = "movies"
WATCH_HISTORY_DEDUP = "watch_history_dedup"
WATCH_HISTORY_ROBUST = "watch_history_robust"

INPUT_TABLES: List[str] = [USERS, WATCH_HISTORY, MOVIES]

# Missingness columns per raw table
PROFILE_COLUMNS = {
    USERS: ["country", "subscription_plan", "age"],
}

# Event-table dedup: one row per (user, movie, day, device)
WATCH_KEY: Tuple[str, ...] = ("user_id", "movie_id", "watch_date", "device_type")
WATCH_ORDER: List[Tuple[str, str]] = [
    ("progress_percentage", "desc"),
    ("watch_duration_minutes", "desc"),
]

CAP_COLUMN = "watch_duration_minutes"

BINGE_MINUTES = 8 * 60

# Anomaly rule definitions: (rule_name, source_dataset, column, comparator, threshold)
DEFAULT_RULE_SPECS = [
    ("flag_binge", WATCH_HISTORY_ROBUST, "watch_duration_minutes_capped", "gt", BINGE_MINUTES),
    ("flag_age_extreme", USERS, "age", "outside", (10, 100)),
    ("flag_duration_anomaly", MOVIES, "duration_minutes", "outside", (15, 480)),
]

# zenml stack component used by the report step
MLFLOW_TRACKER = "mlflow_tracker"


@dataclass(frozen=True)
class QualityPolicy:
    """
    Thresholds and switches for one pipeline run.

    The bounds for capping are never part of the policy: they are fitted
    from the data on every run.
    """
    iqr_k: float = 1.5
    precision: int = 2

    quantile_estimator: str = "exact"
    gk_epsilon: float = 0.001

    # raise instead of collapsing bounds when IQR == 0
    strict_bounds: bool = False

    # float slack for the capping gate
    gate_tolerance: float = 1e-9

    duplicate_report_limit: int = 20


POLICY = QualityPolicy()
