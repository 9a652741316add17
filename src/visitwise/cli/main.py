"""CLI for visitwise: analyze / sweep / normalize commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from visitwise.core.config import AppSettings
from visitwise.core.dates import normalize_appointment, to_iso_utc
from visitwise.core.startup_checks import validate_settings
from visitwise.exceptions import PipelineError
from visitwise.hooks import setup_logging
from visitwise.jobs.sweeper import SweepReport, sweep_orphaned
from visitwise.models import AnalysisContext, AnalysisOutcome
from visitwise.pipeline import VisitAnalysisPipeline

app = typer.Typer(name="visitwise", help="Visit summary analysis pipeline")
console = Console()


def _build_pipeline(settings: AppSettings) -> VisitAnalysisPipeline:
    """Validate settings and wire the configured backends."""
    validate_settings(settings)
    return VisitAnalysisPipeline.from_settings(settings)


def _configure_logging(settings: AppSettings, verbose: bool) -> None:
    if verbose:
        settings.observability.log_level = "DEBUG"
    setup_logging(settings.observability)


def _load_context(context_file: Optional[Path]) -> AnalysisContext:
    if context_file is None:
        return AnalysisContext()
    raw = json.loads(context_file.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise typer.BadParameter(f"Expected JSON object in {context_file}")
    return AnalysisContext(**raw)


@app.command()
def analyze(
    source: str = typer.Argument(..., help="Storage path of the visit document"),
    owner: str = typer.Option(..., "--owner", help="Owner of the document"),
    date: str = typer.Option(..., "--date", help="Appointment date, e.g. 2026-02-14"),
    context_file: Optional[Path] = typer.Option(None, "--context-file", help="JSON file with profile hints"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Analyze one visit document and print the formatted summary."""
    settings = AppSettings()
    _configure_logging(settings, verbose)
    context = _load_context(context_file)
    pipeline = _build_pipeline(settings)

    async def _run() -> AnalysisOutcome:
        return await pipeline.analyze(source, owner, date, context, caller_id=owner)

    try:
        outcome = asyncio.run(_run())
    except PipelineError as e:
        console.print(f"[red]{e.category.value}:[/red] {e}")
        if e.retryable:
            console.print("[yellow]This failure is transient; retrying may succeed.[/yellow]")
        raise typer.Exit(code=1)

    verb = "Updated" if outcome.updated_existing else "Created"
    console.print(f"[green]{verb} summary {outcome.summary_id}[/green] (run {outcome.run_id})")
    console.print(outcome.formatted_summary, markup=False)
    console.print(
        f"\n[bold]{len(outcome.action_items)} action item(s), "
        f"{len(outcome.learning_modules)} learning module(s)[/bold]"
    )
    for flag in outcome.flags:
        console.print(f"[yellow]flag:[/yellow] {flag}")


@app.command()
def sweep(
    owner: str = typer.Option(..., "--owner", help="Owner whose abandoned jobs to release"),
    max_age: Optional[float] = typer.Option(None, "--max-age", help="Seconds; defaults to config"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Release external resources left behind by abandoned analysis jobs."""
    settings = AppSettings()
    _configure_logging(settings, verbose)
    pipeline = _build_pipeline(settings)
    age = settings.sweep.max_age_seconds if max_age is None else max_age

    async def _run() -> SweepReport:
        return await sweep_orphaned(pipeline.service, pipeline.ledger, owner, max_age_seconds=age)

    report = asyncio.run(_run())

    table = Table(title="Sweep Results")
    table.add_column("Run ID", style="cyan")
    table.add_column("Result")
    for run_id in report.swept:
        table.add_row(run_id, "[green]released[/green]")
    for run_id in report.failed:
        table.add_row(run_id, "[red]failed[/red]")
    console.print(table)

    if report.failed:
        raise typer.Exit(code=1)


@app.command()
def normalize(
    value: str = typer.Argument(..., help="Date string to normalize"),
) -> None:
    """Print the canonical appointment date for VALUE."""
    try:
        instant = normalize_appointment(value)
    except ValueError as e:
        console.print(f"[red]Invalid date:[/red] {e}")
        raise typer.Exit(code=1)
    console.print(to_iso_utc(instant))


if __name__ == "__main__":
    app()
