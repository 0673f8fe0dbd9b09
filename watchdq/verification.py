"""
Quality gates: hard stops when a pipeline invariant is violated.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from .dataset import Dataset
from .dedup import DedupReport
from .outliers import ColumnSummary, QuantileBounds


def assert_gate(condition: bool, msg: str):
    """
    Quality gate: aborts the run when a core assumption is violated.
    """
    if not condition:
        raise AssertionError(f"QUALITY GATE FAILED: {msg}")


def verify_dedup(report: DedupReport, dedup: Dataset, key: Sequence[str]) -> bool:
    """dedup_count <= raw_count and every key value survives exactly once."""
    assert_gate(report.dedup_count <= report.raw_count,
                f"{dedup.name}: dedup_count {report.dedup_count} > raw_count {report.raw_count}")
    assert_gate(report.dedup_count == dedup.row_count,
                f"{dedup.name}: report says {report.dedup_count} rows, dataset has {dedup.row_count}")
    assert_gate(not dedup.frame.duplicated(subset=list(key)).any(),
                f"{dedup.name}: duplicate key values after dedup")
    return True


def verify_bounds(bounds: QuantileBounds) -> bool:
    assert_gate(bounds.lower <= bounds.q1 <= bounds.q3 <= bounds.upper,
                f"{bounds.column}: bounds not ordered {bounds.to_dict()}")
    return True


def verify_capping(
    bounds: QuantileBounds,
    before: ColumnSummary,
    after: ColumnSummary,
    tolerance: float = 1e-9,
) -> bool:
    """
    After capping min >= lower and max <= upper; the median must not move
    unless the median itself was an outlier.
    """
    verify_bounds(bounds)
    assert_gate(after.min >= bounds.lower - tolerance,
                f"{after.column}: min {after.min} below lower bound {bounds.lower}")
    assert_gate(after.max <= bounds.upper + tolerance,
                f"{after.column}: max {after.max} above upper bound {bounds.upper}")

    median_is_outlier = before.median < bounds.lower or before.median > bounds.upper
    if not median_is_outlier:
        assert_gate(abs(after.median - before.median) <= tolerance,
                    f"{after.column}: median moved {before.median} -> {after.median}")
    return True


def verify_row_count(source: Dataset, derived: Dataset) -> bool:
    assert_gate(source.row_count == derived.row_count,
                f"{derived.name}: {derived.row_count} rows, expected {source.row_count}")
    return True


def verify_percentages(values: Iterable[float], label: str) -> bool:
    for v in values:
        assert_gate(0.0 <= v <= 100.0, f"{label}: percentage {v} outside [0, 100]")
    return True
