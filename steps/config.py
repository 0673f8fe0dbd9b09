from typing import List, Tuple

from pydantic import BaseModel

from watchdq import config as dq_config

POLICY = dq_config.POLICY


class IngestConfig(BaseModel):
    data_dir: str = str(dq_config.DATA_DIR)
    fmt: str = "csv"


class DedupConfig(BaseModel):
    key: List[str] = list(dq_config.WATCH_KEY)
    order: List[Tuple[str, str]] = list(dq_config.WATCH_ORDER)
    report_limit: int = POLICY.duplicate_report_limit


class CappingConfig(BaseModel):
    column: str = dq_config.CAP_COLUMN
    iqr_k: float = POLICY.iqr_k
    estimator: str = POLICY.quantile_estimator  # "exact" or "gk"
    epsilon: float = POLICY.gk_epsilon
    strict: bool = POLICY.strict_bounds


class ExportConfig(BaseModel):
    out_dir: str = "data/quality"
    fmt: str = "parquet"
    plots: bool = True
