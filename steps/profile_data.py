import logging
from dataclasses import asdict

import pandas as pd
from zenml import step

from watchdq.config import PROFILE_COLUMNS, USERS
from watchdq.dataset import Dataset
from watchdq.profiling import profile


@step
def profile_step(users: pd.DataFrame) -> dict:
    """
    Missingness of the profiled user columns.
    :param users: raw users table.
    :return: column -> {total_rows, missing_count, missing_percentage}
    """
    try:
        prof = profile(Dataset(USERS, users), PROFILE_COLUMNS[USERS])
        return {col: asdict(m) for col, m in prof.items()}
    except Exception as e:
        logging.error(f"Error profiling {USERS}: {e}")
        raise
