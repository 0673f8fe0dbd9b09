import json

import pandas as pd
import pytest

from pipelines.quality_pipeline import data_quality_pipeline
from steps.cap_outliers import cap_step, fit_bounds_step
from steps.config import CappingConfig, DedupConfig, ExportConfig
from steps.deduplicate_data import deduplicate_step
from steps.flag_anomalies import flag_step
from steps.report import report_step
from watchdq.config import POLICY
from watchdq.outliers import DEGENERATE_NOTE


@pytest.fixture
def durations() -> pd.DataFrame:
    return pd.DataFrame({"watch_duration_minutes": [1, 2, 3, 4, 5, 6, 7, 8, 9, 100]})


def test_step_configs_follow_policy():
    assert DedupConfig().report_limit == POLICY.duplicate_report_limit
    c = CappingConfig()
    assert c.iqr_k == POLICY.iqr_k
    assert c.estimator == POLICY.quantile_estimator
    assert c.epsilon == POLICY.gk_epsilon
    assert c.strict == POLICY.strict_bounds


def test_deduplicate_step(watch_history):
    dedup, report, groups = deduplicate_step.entrypoint(watch_history, DedupConfig())

    assert len(dedup) == 9
    assert report == {"raw_count": 12, "dedup_count": 9, "removed_count": 3, "duplicate_groups": 2}
    assert [g["dup_count"] for g in groups] == [3, 2]
    assert groups[0]["user_id"] == "u1"


def test_deduplicate_step_report_limit(watch_history):
    _, report, groups = deduplicate_step.entrypoint(watch_history, DedupConfig(report_limit=1))
    assert report["duplicate_groups"] == 2
    assert len(groups) == 1


def test_fit_and_cap_steps(durations):
    config = CappingConfig()
    bounds, outliers = fit_bounds_step.entrypoint(durations, config)

    assert bounds["q1"] == pytest.approx(3.25)
    assert bounds["q3"] == pytest.approx(7.75)
    assert bounds["lower"] == pytest.approx(-3.5)
    assert bounds["upper"] == pytest.approx(14.5)
    assert bounds["degenerate"] is False
    assert outliers["outlier_count"] == 1
    assert outliers["outlier_percentage"] == 10.0

    robust, summary = cap_step.entrypoint(durations, bounds, config)
    assert robust["watch_duration_minutes_capped"].max() == pytest.approx(14.5)
    assert robust["watch_duration_minutes"].max() == 100
    before, after = summary
    assert before["stage"] != after["stage"]
    assert after["max"] == pytest.approx(14.5)
    assert after["min"] == before["min"] == 1
    assert after["median"] == before["median"] == 5.5


def test_flag_step(durations, users, movies):
    bounds, _ = fit_bounds_step.entrypoint(durations, CappingConfig())
    robust, _ = cap_step.entrypoint(durations, bounds, CappingConfig())

    flags = {f["rule_name"]: f for f in flag_step.entrypoint(robust, users, movies)}

    assert list(flags) == ["flag_binge", "flag_age_extreme", "flag_duration_anomaly"]
    assert flags["flag_binge"]["matched_count"] == 0
    assert flags["flag_binge"]["total_rows"] == 10
    assert flags["flag_age_extreme"]["matched_percentage"] == pytest.approx(5.43)
    assert flags["flag_duration_anomaly"]["matched_percentage"] == 40.0


def _run_report(tmp_path, monkeypatch, watch_history, users, movies, durations):
    logged = {}
    monkeypatch.setattr("steps.report.mlflow.log_metric", lambda k, v: logged.__setitem__(k, v))

    dedup, dedup_report, groups = deduplicate_step.entrypoint(watch_history, DedupConfig())
    bounds, outliers = fit_bounds_step.entrypoint(durations, CappingConfig())
    robust, summary = cap_step.entrypoint(durations, bounds, CappingConfig())
    flags = flag_step.entrypoint(robust, users, movies)
    missingness = {"age": {"total_rows": 100, "missing_count": 8, "missing_percentage": 8.0}}

    path = report_step.entrypoint(
        dedup=dedup,
        robust=robust,
        missingness=missingness,
        dedup_report=dedup_report,
        duplicate_groups=groups,
        bounds=bounds,
        outlier_report=outliers,
        capping_summary=summary,
        flags=flags,
        config=ExportConfig(out_dir=str(tmp_path / "out"), fmt="csv", plots=False),
    )
    return path, logged


def test_report_step(tmp_path, monkeypatch, watch_history, users, movies, durations):
    path, logged = _run_report(tmp_path, monkeypatch, watch_history, users, movies, durations)

    out = tmp_path / "out"
    assert (out / "watch_history_dedup.csv").exists()
    assert (out / "watch_history_robust.csv").exists()
    assert not (out / "anomaly_flags.png").exists()

    with open(path, encoding="utf-8") as f:
        report = json.load(f)
    assert report["dedup"]["removed_count"] == 3
    assert [g["dup_count"] for g in report["duplicate_groups"]] == [3, 2]
    assert report["bounds"]["upper"] == pytest.approx(14.5)
    assert report["notes"] == {}

    assert logged["dedup_removed"] == 3
    assert logged["outlier_percentage"] == 10.0
    assert logged["cap_upper"] == pytest.approx(14.5)
    assert logged["missing_pct_age"] == 8.0
    assert logged["flag_duration_anomaly_pct"] == 40.0


def test_report_step_notes_degenerate_bounds(tmp_path, monkeypatch, watch_history, users, movies):
    flat = pd.DataFrame({"watch_duration_minutes": [5.0, 5.0, 5.0, 5.0, 5.0, 9.0]})
    path, _ = _run_report(tmp_path, monkeypatch, watch_history, users, movies, flat)

    with open(path, encoding="utf-8") as f:
        report = json.load(f)
    assert report["bounds"]["degenerate"] is True
    assert report["notes"] == {"bounds": DEGENERATE_NOTE}


def test_pipeline_is_importable():
    assert callable(data_quality_pipeline)
