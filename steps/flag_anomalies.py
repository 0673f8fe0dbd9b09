import logging
from dataclasses import asdict

import pandas as pd
from zenml import step

from watchdq.anomalies import default_rules, evaluate
from watchdq.config import MOVIES, USERS, WATCH_HISTORY_ROBUST


@step
def flag_step(robust: pd.DataFrame, users: pd.DataFrame, movies: pd.DataFrame) -> list:
    """
    Evaluate the configured anomaly rules.
    :return: one FlagSummary dict per rule, in declaration order.
    """
    try:
        datasets = {WATCH_HISTORY_ROBUST: robust, USERS: users, MOVIES: movies}
        return [asdict(f) for f in evaluate(default_rules(), datasets)]
    except Exception as e:
        logging.error(f"Error evaluating anomaly flags: {e}")
        raise
