import logging
from pathlib import Path

import mlflow
import pandas as pd
from zenml import step

from watchdq.config import MLFLOW_TRACKER, WATCH_HISTORY_DEDUP, WATCH_HISTORY_ROBUST
from watchdq.dataset import Dataset
from watchdq.ingest import save_datasets
from watchdq.outliers import DEGENERATE_NOTE
from watchdq.reporting import build_run_meta, save_json, save_percentage_bar
from .config import ExportConfig


@step(experiment_tracker=MLFLOW_TRACKER, enable_cache=False)
def report_step(
    dedup: pd.DataFrame,
    robust: pd.DataFrame,
    missingness: dict,
    dedup_report: dict,
    duplicate_groups: list,
    bounds: dict,
    outlier_report: dict,
    capping_summary: list,
    flags: list,
    config: ExportConfig,
) -> str:
    """
    Persist the derived tables and the run report, log headline metrics.
    :return: path of the JSON report.
    """
    try:
        out_dir = Path(config.out_dir)
        save_datasets(
            {
                WATCH_HISTORY_DEDUP: Dataset(WATCH_HISTORY_DEDUP, dedup),
                WATCH_HISTORY_ROBUST: Dataset(WATCH_HISTORY_ROBUST, robust),
            },
            out_dir,
            config.fmt,
        )

        notes = {}
        if bounds.get("degenerate"):
            notes["bounds"] = DEGENERATE_NOTE

        report = {
            "run_meta": build_run_meta(),
            "missingness": missingness,
            "dedup": dedup_report,
            "duplicate_groups": duplicate_groups,
            "bounds": bounds,
            "outliers": outlier_report,
            "capping": capping_summary,
            "flags": flags,
            "notes": notes,
        }
        report_path = out_dir / "quality_report.json"
        save_json(report, report_path)

        if config.plots:
            save_percentage_bar(
                [f["rule_name"] for f in flags],
                [f["matched_percentage"] for f in flags],
                out_dir / "anomaly_flags.png",
                "Anomaly flags: % of rows",
            )

        mlflow.log_metric("dedup_removed", dedup_report["removed_count"])
        mlflow.log_metric("outlier_percentage", outlier_report["outlier_percentage"])
        mlflow.log_metric("cap_lower", bounds["lower"])
        mlflow.log_metric("cap_upper", bounds["upper"])
        for col, m in missingness.items():
            mlflow.log_metric(f"missing_pct_{col}", m["missing_percentage"])
        for f in flags:
            mlflow.log_metric(f"{f['rule_name']}_pct", f["matched_percentage"])

        logging.info(f"Quality report written to {report_path}")
        return str(report_path)
    except Exception as e:
        logging.error(f"Error writing quality report: {e}")
        raise
