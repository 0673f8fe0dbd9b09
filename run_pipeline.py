# run_pipeline.py
import logging
from dataclasses import replace
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from watchdq.config import DATA_DIR, POLICY
from watchdq.ingest import TableLoader, save_datasets
from watchdq.reporting import build_report, build_run_meta, save_json, save_report_charts
from watchdq.runner import PipelineResult, run_quality_pipeline

LOCAL = "local"
ZENML = "zenml"

console = Console()


def print_result(result: PipelineResult) -> None:
    for table, prof in result.missingness.items():
        t = Table(title=f"Missingness: {table}")
        t.add_column("column")
        t.add_column("missing", justify="right")
        t.add_column("%", justify="right")
        for m in prof.values():
            t.add_row(m.column, str(m.missing_count), f"{m.missing_percentage:.2f}")
        console.print(t)

    d = result.dedup
    console.print(f"[cyan]Dedup:[/cyan] raw={d.raw_count} dedup={d.dedup_count} removed={d.removed_count}")

    b, o = result.bounds, result.outliers
    console.print(
        f"[cyan]Bounds ({b.column}):[/cyan] q1={b.q1:.4g} q3={b.q3:.4g} "
        f"lower={b.lower:.4g} upper={b.upper:.4g} outliers={o.outlier_count} ({o.outlier_percentage:.2f}%)"
    )

    t = Table(title="Capping")
    for col in ("stage", "min", "median", "max"):
        t.add_column(col)
    for s in result.capping:
        t.add_row(s.stage, f"{s.min:.4g}", f"{s.median:.4g}", f"{s.max:.4g}")
    console.print(t)

    t = Table(title="Anomaly flags")
    for col in ("flag", "dataset", "rows", "matched", "%"):
        t.add_column(col)
    for f in result.flags:
        t.add_row(f.rule_name, f.source_dataset, str(f.total_rows), str(f.matched_count), f"{f.matched_percentage:.2f}")
    console.print(t)

    for key, note in result.notes.items():
        console.print(f"[yellow]{key}:[/yellow] {note}")


@click.command()
@click.option("--data-dir", default=str(DATA_DIR), type=click.Path(file_okay=False), help="Directory with users/watch_history/movies.")
@click.option("--out-dir", default="data/quality", type=click.Path(file_okay=False))
@click.option("--format", "fmt", type=click.Choice(["csv", "parquet"]), default="csv", help="Input file format.")
@click.option("--out-format", "out_fmt", type=click.Choice(["csv", "parquet"]), default="parquet")
@click.option("--engine", type=click.Choice([LOCAL, ZENML]), default=ZENML)
@click.option("--estimator", type=click.Choice(["exact", "gk"]), default=POLICY.quantile_estimator)
@click.option("--epsilon", type=float, default=POLICY.gk_epsilon, help="Rank error bound of the GK sketch.")
@click.option("--iqr-k", type=float, default=POLICY.iqr_k)
@click.option("--plots/--no-plots", default=True)
@click.option("--verbose", "-v", is_flag=True)
def main(data_dir, out_dir, fmt, out_fmt, engine, estimator, epsilon, iqr_k, plots, verbose):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s - %(name)s - %(message)s",
    )

    if engine == ZENML:
        from pipelines.quality_pipeline import data_quality_pipeline

        data_quality_pipeline(
            data_dir=data_dir,
            out_dir=out_dir,
            fmt=fmt,
            out_fmt=out_fmt,
            estimator=estimator,
            epsilon=epsilon,
            iqr_k=iqr_k,
            plots=plots,
        )
        console.print(f"[green]Data-quality pipeline finished, outputs in {out_dir}.[/green]")
        return

    policy = replace(POLICY, quantile_estimator=estimator, gk_epsilon=epsilon, iqr_k=iqr_k)
    tables = TableLoader(Path(data_dir), fmt).load_all()
    result = run_quality_pipeline(tables, policy=policy)

    out = Path(out_dir)
    save_datasets(result.datasets, out, out_fmt)
    save_json(build_report(result, build_run_meta(policy)), out / "quality_report.json")
    if plots:
        save_report_charts(result, out)

    print_result(result)
    console.print(f"[green]Data-quality run finished, outputs in {out}.[/green]")


if __name__ == "__main__":
    main()
