"""
Business anomaly flags.

A rule is configuration: a name, the dataset it reads, the columns it
inspects and a vectorised predicate. The engine only knows how to filter
nulls, apply a mask and count, so rules can be added or removed without
touching it.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple, Union

import pandas as pd

from .config import DEFAULT_RULE_SPECS
from .dataset import Dataset, as_dataset, percentage
from .errors import EmptyDatasetError, UnknownDatasetError

logger = logging.getLogger(__name__)

Predicate = Callable[[pd.DataFrame], pd.Series]

# (rule_name, source_dataset, column, comparator, threshold)
RuleSpec = Tuple[str, str, str, str, object]


@dataclass(frozen=True)
class AnomalyRule:
    name: str
    source_dataset: str
    columns: Tuple[str, ...]
    predicate: Predicate


@dataclass(frozen=True)
class FlagSummary:
    rule_name: str
    source_dataset: str
    total_rows: int
    matched_count: int
    matched_percentage: float
    excluded_nulls: int


def _range(threshold) -> Tuple[float, float]:
    lo, hi = threshold
    if lo > hi:
        raise ValueError(f"Invalid range {threshold}: low > high")
    return lo, hi


# comparator -> mask builder; True = anomalous
COMPARATORS: Dict[str, Callable[[pd.Series, object], pd.Series]] = {
    "gt": lambda s, t: s > t,
    "ge": lambda s, t: s >= t,
    "lt": lambda s, t: s < t,
    "le": lambda s, t: s <= t,
    "outside": lambda s, t: (s < _range(t)[0]) | (s > _range(t)[1]),
    "between": lambda s, t: s.between(*_range(t)),
}


def rule_from_spec(spec: RuleSpec) -> AnomalyRule:
    """Build an AnomalyRule from a config tuple."""
    name, source, column, comparator, threshold = spec
    if comparator not in COMPARATORS:
        raise ValueError(f"{name}: unknown comparator {comparator!r}, expected one of {sorted(COMPARATORS)}")
    fn = COMPARATORS[comparator]
    if comparator in ("outside", "between"):
        _range(threshold)

    return AnomalyRule(
        name=name,
        source_dataset=source,
        columns=(column,),
        predicate=lambda df: fn(df[column], threshold),
    )


class RuleRegistry:
    """
    Ordered rule set. Iteration order is declaration order, which is the
    order of the flag report.
    """

    def __init__(self, rules: Iterable[AnomalyRule] = ()):
        self._rules: "OrderedDict[str, AnomalyRule]" = OrderedDict()
        for r in rules:
            self.register(r)

    @classmethod
    def from_specs(cls, specs: Iterable[RuleSpec]) -> "RuleRegistry":
        return cls(rule_from_spec(s) for s in specs)

    def register(self, rule: AnomalyRule) -> None:
        if rule.name in self._rules:
            raise ValueError(f"Rule {rule.name!r} already registered")
        self._rules[rule.name] = rule

    def remove(self, name: str) -> AnomalyRule:
        return self._rules.pop(name)

    def names(self) -> List[str]:
        return list(self._rules)

    def __contains__(self, name: str) -> bool:
        return name in self._rules

    def __iter__(self) -> Iterator[AnomalyRule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)


def default_rules() -> RuleRegistry:
    """flag_binge, flag_age_extreme, flag_duration_anomaly."""
    return RuleRegistry.from_specs(DEFAULT_RULE_SPECS)


def evaluate_rule(rule: AnomalyRule, dataset: Dataset, precision: int = 2) -> FlagSummary:
    """
    Apply one rule. Rows with a null in any inspected column are left out
    of numerator and denominator.
    """
    dataset.require_columns(rule.columns)
    df = dataset.frame
    known = df.dropna(subset=list(rule.columns))
    total = int(len(known))
    if total == 0:
        raise EmptyDatasetError(dataset.name, f"{rule.name}: no rows with known {list(rule.columns)}")

    mask = rule.predicate(known)
    matched = int(pd.Series(mask, index=known.index).fillna(False).astype(bool).sum())

    return FlagSummary(
        rule_name=rule.name,
        source_dataset=dataset.name,
        total_rows=total,
        matched_count=matched,
        matched_percentage=percentage(matched, total, precision, dataset.name),
        excluded_nulls=int(len(df) - total),
    )


def evaluate(
    rules: Union[RuleRegistry, Sequence[AnomalyRule]],
    datasets: Mapping[str, Union[Dataset, pd.DataFrame]],
    precision: int = 2,
) -> List[FlagSummary]:
    """
    Evaluate every rule against its source dataset, in declaration order.

    Raises:
        UnknownDatasetError: a rule names a dataset not in `datasets`.
        MissingColumnError, EmptyDatasetError
    """
    out: List[FlagSummary] = []
    for rule in rules:
        if rule.source_dataset not in datasets:
            raise UnknownDatasetError(
                f"{rule.name}: dataset {rule.source_dataset!r} not supplied (have {sorted(datasets)})"
            )
        ds = as_dataset(datasets[rule.source_dataset], rule.source_dataset)
        summary = evaluate_rule(rule, ds, precision)
        logger.info(
            "%s on %s: %d / %d (%.2f%%)",
            summary.rule_name, summary.source_dataset,
            summary.matched_count, summary.total_rows, summary.matched_percentage,
        )
        out.append(summary)
    return out
