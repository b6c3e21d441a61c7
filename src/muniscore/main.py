from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from muniscore.config import settings
from muniscore.data.dto import serialize
from muniscore.data.repositories import ReferenceStore
from muniscore.data.seed import seed_database
from muniscore.data.storage import Database
from muniscore.exceptions import MuniscoreError
from muniscore.logic.windows import current_period, parse_period
from muniscore.services import (
    EvaluationEngine,
    EvaluationFilter,
    MonthlyBreakdownCalculator,
    PerformanceCalculator,
    RankingMetric,
    TaskLifecycleService,
)

logging.basicConfig(level=getattr(logging, settings.logging.level.upper(), logging.INFO))

cli = typer.Typer(help="Muniscore CLI (municipal task evaluation)")

DbOption = typer.Option(None, "--db", help="SQLite file (defaults to settings.paths.db_path)")


def _store(db_path: Optional[Path]) -> ReferenceStore:
    return ReferenceStore(Database(db_path or settings.paths.db_path))


def _emit(payload) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _fail(exc: MuniscoreError) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


def _evaluation_filter(month: Optional[str], division_id: Optional[int]) -> Optional[EvaluationFilter]:
    if month:
        year, month_num = parse_period(month)
        return EvaluationFilter.for_month(year, month_num, division_id=division_id)
    if division_id is not None:
        return EvaluationFilter(division_id=division_id)
    return None


@cli.command()
def version() -> None:
    """Print runtime version."""
    typer.echo(f"Muniscore {settings.app.version}")


@cli.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload for local development"),
) -> None:
    """Run the Muniscore API server."""
    uvicorn.run(
        "muniscore.api.main:app",
        host=host,
        port=port,
        reload=reload,
        app_dir="src",
    )


@cli.command("advance-tasks")
def advance_tasks(db: Optional[Path] = DbOption) -> None:
    """Finish every in-progress task whose deadline has passed."""
    finished = TaskLifecycleService(_store(db)).advance_due_tasks()
    typer.echo(f"{finished} task(s) finished")


@cli.command()
def seed(
    db: Optional[Path] = DbOption,
    rng_seed: int = typer.Option(7, "--seed", help="Random seed for reproducible demo data"),
) -> None:
    """Populate the database with demo divisions, municipalities, tasks and deliveries."""
    _emit(seed_database(Database(db or settings.paths.db_path), seed=rng_seed))


@cli.command()
def coverage(db: Optional[Path] = DbOption) -> None:
    """Overall completion per municipality."""
    store = _store(db)
    TaskLifecycleService(store).advance_due_tasks()
    try:
        rows = PerformanceCalculator(store).compute_unit_performance()
    except MuniscoreError as exc:
        _fail(exc)
    _emit([serialize(r) for r in rows])


@cli.command()
def ranking(
    metric: RankingMetric = typer.Option(RankingMetric.FINAL, help="Metric to rank by"),
    month: Optional[str] = typer.Option(None, help="YYYY-MM; only tasks overlapping this month"),
    division_id: Optional[int] = typer.Option(None, "--division-id", help="Only tasks of this division"),
    db: Optional[Path] = DbOption,
) -> None:
    """Rank municipalities by one evaluation metric."""
    store = _store(db)
    TaskLifecycleService(store).advance_due_tasks()
    try:
        filters = _evaluation_filter(month, division_id)
        rows = EvaluationEngine(store).rank_by(metric, filters)
    except MuniscoreError as exc:
        _fail(exc)
    _emit([serialize(r) for r in rows])


@cli.command()
def monthly(
    month: Optional[str] = typer.Option(None, help="YYYY-MM, defaults to the current month"),
    db: Optional[Path] = DbOption,
) -> None:
    """Per-division completion for one month."""
    store = _store(db)
    TaskLifecycleService(store).advance_due_tasks()
    try:
        year, month_num = parse_period(month) if month else current_period()
        report = MonthlyBreakdownCalculator(store).compute_monthly_performance(year, month_num)
    except MuniscoreError as exc:
        _fail(exc)
    _emit(serialize(report))


if __name__ == "__main__":
    cli()
