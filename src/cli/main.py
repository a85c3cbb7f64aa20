"""toxscan CLI (Typer).

Commands:
- `run`: batch lookup from a JSON roster, results appended to a JSON file.
- `consume`: SQS consumer loop.
- `doctor`: diagnostics and interactive configuration.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from adapters.browser.engine import engine_factory
from adapters.json_store import append_result, load_queries
from adapters.queue_consumer import QueueConsumer
from cli import doctor
from cli.ui_components import (
    add_result_row,
    build_results_table,
    build_summary_panel,
    format_result_line,
    print_banner,
)
from core.config import AppSettings, CapturePolicy
from core.domain.errors import RosterLoadError
from core.domain.models import DriverQuery
from core.interfaces.portal import EngineFactory
from core.logging_config import configure_logging
from core.services.batch_orchestrator import BatchOrchestrator

app = typer.Typer(no_args_is_help=True, help="Batch lookup of SENATRAN toxicological exam records.")
app.add_typer(doctor.app, name="doctor")

_console = Console()


def _settings_with_overrides(**overrides: object) -> AppSettings:
    settings = AppSettings()
    update = {key: value for key, value in overrides.items() if value is not None}
    if not update:
        return settings
    return AppSettings(**{**settings.model_dump(), **update})


async def run_batch(
    *,
    settings: AppSettings,
    queries: list[DriverQuery],
    factory: EngineFactory,
    output_path: Path,
    console: Console,
) -> BatchOrchestrator:
    """Process `queries`, printing and persisting each result as it completes."""

    orchestrator = BatchOrchestrator(settings=settings, engine_factory=factory)
    table = build_results_table()
    results = orchestrator.process_batch(queries)
    index = 0
    async with aclosing(results):
        async for result in results:
            index += 1
            console.print(format_result_line(index, len(queries), result))
            append_result(result=result, output_path=output_path)
            add_result_row(table, index, result)

    console.print(table)
    if orchestrator.last_summary is not None:
        console.print(build_summary_panel(orchestrator.last_summary))
    return orchestrator


@app.command(name="run")
def run_command(
    roster: Path = typer.Argument(..., help="JSON array of drivers (cpf, birthday, cnh_due_at)."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", min=1, help="Max open sessions."),
    attempts: Optional[int] = typer.Option(None, "--attempts", "-a", min=1, help="Attempts per driver."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Results JSON file (appended)."),
    capture_policy: Optional[CapturePolicy] = typer.Option(None, "--capture-policy", help="always | on-failure-only"),
    headless: Optional[bool] = typer.Option(None, "--headless/--headed", help="Chromium window mode."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Skip the banner."),
) -> None:
    """Look up every driver in ROSTER and stream results as they finish."""

    configure_logging(verbose=verbose)
    if not quiet:
        print_banner(_console)

    settings = _settings_with_overrides(
        max_concurrency=concurrency,
        max_attempts=attempts,
        results_path=output,
        capture_policy=capture_policy,
        headless=headless,
    )

    try:
        queries = load_queries(roster)
    except RosterLoadError as exc:
        _console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    if not queries:
        _console.print("[yellow]Roster is empty, nothing to do.[/yellow]")
        return

    asyncio.run(
        run_batch(
            settings=settings,
            queries=queries,
            factory=engine_factory(settings),
            output_path=settings.results_path,
            console=_console,
        )
    )
    _console.print(f"[green]Results saved to:[/green] {settings.results_path}")


@app.command()
def consume(
    max_polls: Optional[int] = typer.Option(None, "--max-polls", min=1, help="Stop after N polls."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", min=1, help="Max open sessions."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Consume driver queries from SQS and relay results to the response queue."""

    configure_logging(verbose=verbose)
    settings = _settings_with_overrides(max_concurrency=concurrency)

    try:
        consumer = QueueConsumer(
            settings=settings,
            orchestrator=BatchOrchestrator(settings=settings, engine_factory=engine_factory(settings)),
        )
    except ValueError as exc:
        _console.print(f"[red]{exc}[/red] (see `toxscan doctor setup-queue`)")
        raise typer.Exit(code=1) from exc

    try:
        asyncio.run(consumer.run(max_polls=max_polls))
    except KeyboardInterrupt:
        _console.print("\n[yellow]Stopped.[/yellow]")


def run() -> None:
    app()
