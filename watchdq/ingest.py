# watchdq/ingest.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping

import pandas as pd

from .config import INPUT_TABLES
from .dataset import Dataset

logger = logging.getLogger(__name__)

FORMATS = ("csv", "parquet")


def _check_format(fmt: str) -> str:
    if fmt not in FORMATS:
        raise ValueError(f"Unsupported format {fmt!r}, expected one of {FORMATS}")
    return fmt


class TableLoader:
    """
    Reads the raw input tables from ``<data_dir>/<name>.<fmt>``.
    """

    def __init__(self, data_dir: Path, fmt: str = "csv", tables: Iterable[str] = INPUT_TABLES):
        self.data_dir = Path(data_dir)
        self.fmt = _check_format(fmt)
        self.tables = list(tables)

    def path_for(self, name: str) -> Path:
        return self.data_dir / f"{name}.{self.fmt}"

    def load_table(self, name: str) -> Dataset:
        """Load one table."""
        path = self.path_for(name)
        if not path.exists():
            raise FileNotFoundError(f"Missing input table {name!r}: {path}")

        logger.info("Reading %s from %s", name, path)
        df = pd.read_csv(path) if self.fmt == "csv" else pd.read_parquet(path)
        logger.info("%s shape: %s", name, df.shape)
        return Dataset(name=name, frame=df)

    def load_all(self) -> Dict[str, Dataset]:
        return {name: self.load_table(name) for name in self.tables}


def save_datasets(datasets: Mapping[str, Dataset], out_dir: Path, fmt: str = "parquet") -> Dict[str, Path]:
    """Write each dataset to out_dir/<name>.<fmt>."""
    _check_format(fmt)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    written: Dict[str, Path] = {}
    for name, ds in datasets.items():
        path = out_dir / f"{name}.{fmt}"
        if fmt == "csv":
            ds.frame.to_csv(path, index=False, encoding="utf-8")
        else:
            ds.frame.to_parquet(path, index=False)
        logger.info("Saved %s (%d rows): %s", name, ds.row_count, path)
        written[name] = path
    return written
