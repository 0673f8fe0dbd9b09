from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Union

import pandas as pd

from .errors import EmptyDatasetError, MissingColumnError


@dataclass(frozen=True)
class Dataset:
    """
    A named, schema-typed table.

    Attributes
    ----------
    name:
        Table identifier, e.g. ``watch_history`` or ``watch_history_dedup``.
    frame:
        The records. Treated as read-only: every transform copies before it
        writes and returns a new Dataset.
    """
    name: str
    frame: pd.DataFrame

    @property
    def columns(self) -> List[str]:
        return list(self.frame.columns)

    @property
    def row_count(self) -> int:
        return int(len(self.frame))

    def __len__(self) -> int:
        return self.row_count

    def require_columns(self, cols: Iterable[str], error=MissingColumnError) -> None:
        """Raise `error` if any of `cols` is absent."""
        missing = [c for c in cols if c not in self.frame.columns]
        if missing:
            raise error(self.name, missing, self.columns)

    def derive(self, name: str, frame: pd.DataFrame) -> "Dataset":
        return Dataset(name=name, frame=frame)


def as_dataset(data: Union[Dataset, pd.DataFrame], name: str = "dataset") -> Dataset:
    """Wrap a bare DataFrame; Datasets pass through unchanged."""
    if isinstance(data, Dataset):
        return data
    return Dataset(name=name, frame=data)


def percentage(part: int, whole: int, precision: int = 2, dataset: str = "dataset") -> float:
    """100 * part / whole, rounded. Zero rows is an error, never NaN."""
    if whole == 0:
        raise EmptyDatasetError(dataset, "percentage over zero rows")
    return round(100.0 * part / whole, precision)
