import numpy as np
import pandas as pd
import pytest

from watchdq.anomalies import AnomalyRule, RuleRegistry, default_rules, evaluate, rule_from_spec
from watchdq.dataset import Dataset
from watchdq.errors import EmptyDatasetError, MissingColumnError, UnknownDatasetError


@pytest.fixture
def robust() -> pd.DataFrame:
    return pd.DataFrame({"watch_duration_minutes_capped": [30.0, 500.0, np.nan, 481.0, 480.0]})


@pytest.fixture
def datasets(robust, users, movies):
    return {"watch_history_robust": robust, "users": users, "movies": Dataset("movies", movies)}


def test_default_rules_in_declaration_order(datasets):
    flags = evaluate(default_rules(), datasets)
    assert [f.rule_name for f in flags] == ["flag_binge", "flag_age_extreme", "flag_duration_anomaly"]


def test_age_extreme_excludes_null_ages(datasets):
    flags = {f.rule_name: f for f in evaluate(default_rules(), datasets)}
    age = flags["flag_age_extreme"]

    assert age.total_rows == 92
    assert age.matched_count == 5
    assert age.excluded_nulls == 8
    assert age.matched_percentage == pytest.approx(5.43)
    assert age.matched_percentage == pytest.approx(100 * 5 / 92, abs=0.01)


def test_binge_threshold_is_strict(datasets):
    binge = evaluate(default_rules(), datasets)[0]
    assert binge.total_rows == 4
    assert binge.matched_count == 2
    assert binge.matched_percentage == 50.0


def test_duration_anomaly(datasets):
    dur = evaluate(default_rules(), datasets)[2]
    assert dur.source_dataset == "movies"
    assert dur.total_rows == 5
    assert dur.matched_count == 2
    assert dur.matched_percentage == 40.0


def test_matched_never_exceeds_total(datasets):
    for f in evaluate(default_rules(), datasets):
        assert f.matched_count <= f.total_rows
        assert 0.0 <= f.matched_percentage <= 100.0


def test_registry_add_and_remove(datasets):
    rules = default_rules()
    rules.remove("flag_binge")
    rules.register(rule_from_spec(("flag_young", "users", "age", "lt", 18)))

    flags = evaluate(rules, datasets)
    assert [f.rule_name for f in flags] == ["flag_age_extreme", "flag_duration_anomaly", "flag_young"]
    assert flags[-1].matched_count == 3


def test_custom_predicate_over_two_columns():
    df = pd.DataFrame({"a": [1, 2, None, 4], "b": [1, 0, 1, None]})
    rule = AnomalyRule("a_gt_b", "t", ("a", "b"), lambda d: d["a"] > d["b"])
    [flag] = evaluate([rule], {"t": df})
    assert flag.total_rows == 2
    assert flag.excluded_nulls == 2
    assert flag.matched_count == 1


def test_duplicate_rule_name_rejected():
    rules = default_rules()
    with pytest.raises(ValueError):
        rules.register(rule_from_spec(("flag_binge", "users", "age", "gt", 1)))


def test_between_comparator():
    rule = rule_from_spec(("mid", "t", "x", "between", (2, 3)))
    [flag] = evaluate(RuleRegistry([rule]), {"t": pd.DataFrame({"x": [1, 2, 3, 4]})})
    assert flag.matched_count == 2


def test_bad_specs():
    with pytest.raises(ValueError):
        rule_from_spec(("x", "t", "c", "approx", 1))
    with pytest.raises(ValueError):
        rule_from_spec(("x", "t", "c", "outside", (10, 1)))


def test_unknown_dataset(users):
    with pytest.raises(UnknownDatasetError):
        evaluate(default_rules(), {"users": users})


def test_missing_column(datasets):
    rules = RuleRegistry([rule_from_spec(("x", "users", "height", "gt", 200))])
    with pytest.raises(MissingColumnError):
        evaluate(rules, datasets)


def test_all_null_column_raises():
    df = pd.DataFrame({"age": pd.array([None, None], dtype="Int64")})
    rules = RuleRegistry([rule_from_spec(("flag_age_extreme", "users", "age", "outside", (10, 100)))])
    with pytest.raises(EmptyDatasetError):
        evaluate(rules, {"users": df})
