from __future__ import annotations

import json
import platform
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .config import POLICY, QualityPolicy
from .runner import PipelineResult

"""
Reporting & artefact persistence.

Turns a PipelineResult into a JSON-serialisable report and draws the
percentage charts. No data processing happens here.
"""


def build_run_meta(policy: QualityPolicy = POLICY, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Run metadata: versions, timestamp, policy."""
    meta = {
        "run_ts_unix": int(time.time()),
        "python": platform.python_version(),
        "platform": platform.platform(),
        "numpy": np.__version__,
        "pandas": pd.__version__,
        "policy": asdict(policy),
    }
    if extra:
        meta["extra"] = extra
    return meta


def build_report(result: PipelineResult, run_meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "run_meta": run_meta or {},
        "missingness": {
            table: {col: asdict(m) for col, m in prof.items()}
            for table, prof in result.missingness.items()
        },
        "table_profiles": {name: asdict(p) for name, p in result.table_profiles.items()},
        "dedup": asdict(result.dedup),
        "duplicate_groups": result.duplicate_groups.to_dict(orient="records"),
        "bounds": result.bounds.to_dict(),
        "outliers": asdict(result.outliers),
        "capping": [asdict(s) for s in result.capping],
        "flags": [asdict(f) for f in result.flags],
        "notes": result.notes,
    }


def save_json(obj: dict, path: Path):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False, default=str)


def save_percentage_bar(labels: Sequence[str], values: Sequence[float], path: Path, title: str, dpi: int = 150) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.bar(list(labels), list(values))
    ax.set_title(title)
    ax.set_ylabel("%")
    ax.set_ylim(0, 100)
    ax.tick_params(axis="x", rotation=45)
    fig.tight_layout()
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    return path


def save_report_charts(result: PipelineResult, out_dir: Path) -> Dict[str, Path]:
    """Missingness and flag percentages as bar charts."""
    out_dir = Path(out_dir)
    paths: Dict[str, Path] = {}
    for table, prof in result.missingness.items():
        paths[f"{table}_missingness"] = save_percentage_bar(
            [m.column for m in prof.values()],
            [m.missing_percentage for m in prof.values()],
            out_dir / f"{table}_missingness.png",
            f"{table}: missing %",
        )
    paths["flags"] = save_percentage_bar(
        [f.rule_name for f in result.flags],
        [f.matched_percentage for f in result.flags],
        out_dir / "anomaly_flags.png",
        "Anomaly flags: % of rows",
    )
    return paths
