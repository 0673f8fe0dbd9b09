from zenml import pipeline

from steps.cap_outliers import cap_step, fit_bounds_step
from steps.config import CappingConfig, DedupConfig, ExportConfig, IngestConfig
from steps.deduplicate_data import deduplicate_step
from steps.flag_anomalies import flag_step
from steps.ingest_data import ingest_tables_step
from steps.profile_data import profile_step
from steps.report import report_step
from watchdq.config import POLICY


@pipeline(enable_cache=False)
def data_quality_pipeline(
    data_dir: str,
    out_dir: str = "data/quality",
    fmt: str = "csv",
    out_fmt: str = "parquet",
    estimator: str = POLICY.quantile_estimator,
    epsilon: float = POLICY.gk_epsilon,
    iqr_k: float = POLICY.iqr_k,
    plots: bool = True,
):
    """Profile users, dedup and cap watch_history, then flag anomalies.
    Bounds are fitted on this run's data and passed straight to capping."""
    users, watch_history, movies = ingest_tables_step(IngestConfig(data_dir=data_dir, fmt=fmt))

    missingness = profile_step(users)

    dedup, dedup_report, dup_groups = deduplicate_step(watch_history, DedupConfig())

    capping = CappingConfig(iqr_k=iqr_k, estimator=estimator, epsilon=epsilon)
    bounds, outlier_report = fit_bounds_step(dedup, capping)
    robust, capping_summary = cap_step(dedup, bounds, capping)

    flags = flag_step(robust, users, movies)

    report_step(
        dedup=dedup,
        robust=robust,
        missingness=missingness,
        dedup_report=dedup_report,
        duplicate_groups=dup_groups,
        bounds=bounds,
        outlier_report=outlier_report,
        capping_summary=capping_summary,
        flags=flags,
        config=ExportConfig(out_dir=out_dir, fmt=out_fmt, plots=plots),
    )
