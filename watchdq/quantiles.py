"""
Quantile estimation strategies.

`ExactQuantileEstimator` sorts everything (linear interpolation, same as
``pandas.Series.quantile``). `GKQuantileEstimator` streams values through a
Greenwald-Khanna sketch and only keeps O((1/eps) * log(eps * n)) tuples.

Error bound of the sketch: for a probability ``phi`` over ``n`` values the
returned value has a rank r (1-based, in sorted order) with
``|r - ceil(phi * n)| <= eps * n``.
"""

from __future__ import annotations

import bisect
import logging
import math
from abc import ABC, abstractmethod
from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class QuantileEstimator(ABC):
    """
    Abstract base class for quantile strategies.
    """

    name: str

    @abstractmethod
    def quantiles(self, values: pd.Series, probs: Sequence[float]) -> List[float]:
        """
        Estimate quantiles of the non-null numeric `values`.

        Parameters:
        values : pd.Series
            Numeric values, nulls already removed.
        probs : sequence of float in [0, 1]
        """
        pass


class ExactQuantileEstimator(QuantileEstimator):
    """
    Exact quantiles with linear interpolation between order statistics.
    """
    name = "exact"

    def quantiles(self, values: pd.Series, probs: Sequence[float]) -> List[float]:
        q = pd.Series(values, dtype="float64").quantile(list(probs))
        return [float(v) for v in q.to_numpy()]


class GKSketch:
    """
    Greenwald-Khanna epsilon-approximate quantile summary.

    Each tuple is ``[value, g, delta]``: ``g`` is the rank gap to the
    previous tuple and ``delta`` the rank uncertainty. Invariant:
    ``g + delta <= floor(2 * eps * n)`` for every tuple.
    """

    def __init__(self, epsilon: float = 0.001):
        if not 0 < epsilon < 1:
            raise ValueError(f"epsilon must be in (0, 1), got {epsilon}")
        self.epsilon = float(epsilon)
        self.n = 0
        self._tuples: List[list] = []
        self._compress_every = max(1, int(math.floor(1.0 / (2.0 * self.epsilon))))

    def __len__(self) -> int:
        return self.n

    @property
    def size(self) -> int:
        """Number of stored tuples."""
        return len(self._tuples)

    def insert(self, value: float) -> None:
        v = float(value)
        i = bisect.bisect_right(self._tuples, v, key=lambda t: t[0])

        if i == 0 or i == len(self._tuples):
            delta = 0
        else:
            delta = int(math.floor(2.0 * self.epsilon * self.n))

        self._tuples.insert(i, [v, 1, delta])
        self.n += 1

        if self.n % self._compress_every == 0:
            self._compress()

    def update(self, values: Iterable[float]) -> None:
        for v in values:
            self.insert(v)

    def _compress(self) -> None:
        cap = int(math.floor(2.0 * self.epsilon * self.n))
        # first and last tuple (min / max) are never merged away
        i = len(self._tuples) - 2
        while i >= 1:
            cur, nxt = self._tuples[i], self._tuples[i + 1]
            if cur[1] + nxt[1] + nxt[2] <= cap:
                nxt[1] += cur[1]
                del self._tuples[i]
            i -= 1

    def query(self, phi: float) -> float:
        if self.n == 0:
            raise ValueError("query on an empty sketch")
        if not 0.0 <= phi <= 1.0:
            raise ValueError(f"phi must be in [0, 1], got {phi}")

        rank = max(1, int(math.ceil(phi * self.n)))
        slack = self.epsilon * self.n

        rmin = 0
        best, best_err = self._tuples[0][0], math.inf
        for v, g, delta in self._tuples:
            rmin += g
            rmax = rmin + delta
            err = max(rank - rmin, rmax - rank)
            if err <= slack:
                return v
            if err < best_err:
                best, best_err = v, err
        return best


class GKQuantileEstimator(QuantileEstimator):
    """
    Streaming estimator: values are fed to a `GKSketch` chunk by chunk.
    """
    name = "gk"

    def __init__(self, epsilon: float = 0.001, chunk_size: int = 100_000):
        self.epsilon = epsilon
        self.chunk_size = int(chunk_size)

    def quantiles(self, values: pd.Series, probs: Sequence[float]) -> List[float]:
        sketch = GKSketch(self.epsilon)
        arr = np.asarray(values, dtype="float64")
        for start in range(0, len(arr), self.chunk_size):
            sketch.update(arr[start:start + self.chunk_size].tolist())
        logger.info("GK sketch: n=%d, tuples=%d, eps=%g", sketch.n, sketch.size, self.epsilon)
        return [sketch.query(p) for p in probs]


def make_estimator(name: str = "exact", epsilon: float = 0.001) -> QuantileEstimator:
    """Estimator factory used by configuration and the CLI."""
    if name == "exact":
        return ExactQuantileEstimator()
    if name == "gk":
        return GKQuantileEstimator(epsilon=epsilon)
    raise ValueError(f"Unknown quantile estimator {name!r} (expected 'exact' or 'gk').")
