import logging
from typing import Tuple

import pandas as pd
from typing_extensions import Annotated
from zenml import step

from watchdq.ingest import TableLoader
from .config import IngestConfig


@step
def ingest_tables_step(config: IngestConfig) -> Tuple[
    Annotated[pd.DataFrame, "users"],
    Annotated[pd.DataFrame, "watch_history"],
    Annotated[pd.DataFrame, "movies"],
]:
    """
    Read the three raw tables.
    Args:
        config (IngestConfig): data directory and file format.
    Returns:
        users, watch_history and movies as DataFrames.
    """
    try:
        tables = TableLoader(config.data_dir, config.fmt).load_all()
        return tables["users"].frame, tables["watch_history"].frame, tables["movies"].frame
    except Exception as e:
        logging.error(f"Error ingesting tables: {e}")
        raise
