"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import check_reachable
from core.config import AppSettings, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_browser(settings: AppSettings) -> tuple[bool, str]:
    """Launch and close Chromium once to detect missing browsers/libraries."""

    from adapters.browser.engine import PlaywrightEngine  # noqa: PLC0415

    try:
        engine = await PlaywrightEngine.launch(settings.model_copy(update={"headless": True}))
        await engine.close()
        return True, "OK"
    except Exception as exc:
        return False, str(exc).splitlines()[0] if str(exc) else type(exc).__name__


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="toxscan doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("Concurrency", "OK", str(settings.max_concurrency))
    table.add_row("Attempts", "OK", f"{settings.max_attempts} (delay {settings.retry_delay_seconds:g}s)")
    table.add_row("Capture policy", "OK", settings.capture_policy.value)
    if settings.queue_url and settings.response_queue_url:
        table.add_row("Queue", "OK", settings.queue_url)
    else:
        table.add_row("Queue", "OPTIONAL", "Not configured -> only `toxscan run` is available")

    # Connectivity (best-effort)
    ok_http, detail_http = asyncio.run(check_reachable(settings.portal_url, settings=settings))
    table.add_row("Portal reachable", "OK" if ok_http else "FAIL", detail_http)

    ok_browser, detail_browser = asyncio.run(_check_browser(settings))
    table.add_row("Chromium (Playwright)", "OK" if ok_browser else "FAIL", detail_browser)

    _console.print(table)

    if not ok_browser:
        _console.print("\n[yellow]Note:[/yellow] run `playwright install chromium` or set TOXSCAN_BROWSER_EXECUTABLE_PATH.")


@app.command(name="setup-queue")
def setup_queue() -> None:
    """Interactive queue setup (stores config in the user config .env)."""

    region = typer.prompt("AWS region", default="us-east-1", show_default=True).strip()
    queue_url = typer.prompt("Query queue URL").strip()
    response_queue_url = typer.prompt("Response queue URL").strip()

    if not queue_url or not response_queue_url:
        raise typer.BadParameter("both queue URLs are required")

    env_path = write_user_env_vars(
        {
            "TOXSCAN_AWS_REGION": region,
            "TOXSCAN_QUEUE_URL": queue_url,
            "TOXSCAN_RESPONSE_QUEUE_URL": response_queue_url,
        }
    )

    _console.print(f"[green]Saved queue config to:[/green] {env_path}")
