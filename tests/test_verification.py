import pandas as pd
import pytest

from watchdq.dataset import Dataset
from watchdq.dedup import DedupReport
from watchdq.outliers import ColumnSummary, QuantileBounds
from watchdq.verification import (
    assert_gate,
    verify_capping,
    verify_dedup,
    verify_percentages,
    verify_row_count,
)

BOUNDS = QuantileBounds(column="m", q1=3.25, q3=7.75, iqr=4.5, k=1.5, lower=-3.5, upper=14.5)


def test_assert_gate():
    assert_gate(True, "fine")
    with pytest.raises(AssertionError, match="QUALITY GATE FAILED: broken"):
        assert_gate(False, "broken")


def test_verify_dedup_detects_leftover_duplicates():
    ds = Dataset("d", pd.DataFrame({"k": ["a", "a"]}))
    with pytest.raises(AssertionError):
        verify_dedup(DedupReport(2, 2, 0, 1), ds, ["k"])


def test_verify_dedup_detects_growth():
    ds = Dataset("d", pd.DataFrame({"k": ["a", "b", "c"]}))
    with pytest.raises(AssertionError):
        verify_dedup(DedupReport(2, 3, -1, 0), ds, ["k"])


def test_verify_capping_passes():
    before = ColumnSummary("before_capping", "m", 1, 5.5, 100)
    after = ColumnSummary("after_capping", "m_capped", 1, 5.5, 14.5)
    assert verify_capping(BOUNDS, before, after)


def test_verify_capping_max_above_upper():
    before = ColumnSummary("before_capping", "m", 1, 5.5, 100)
    after = ColumnSummary("after_capping", "m_capped", 1, 5.5, 20)
    with pytest.raises(AssertionError):
        verify_capping(BOUNDS, before, after)


def test_verify_capping_median_moved():
    before = ColumnSummary("before_capping", "m", 1, 5.5, 100)
    after = ColumnSummary("after_capping", "m_capped", 1, 6.0, 14.5)
    with pytest.raises(AssertionError):
        verify_capping(BOUNDS, before, after)


def test_verify_row_count_and_percentages():
    a = Dataset("a", pd.DataFrame({"x": [1, 2]}))
    b = Dataset("b", pd.DataFrame({"x": [1]}))
    with pytest.raises(AssertionError):
        verify_row_count(a, b)
    assert verify_percentages([0.0, 55.5, 100.0], "ok")
    with pytest.raises(AssertionError):
        verify_percentages([101.0], "too high")
