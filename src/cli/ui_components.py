"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from visual details.
- Tables/panels are reused by `run` and `consume`.
"""

from __future__ import annotations

from datetime import date, datetime

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import BatchSummary, QueryResult

_ISO_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def print_banner(console: Console) -> None:
    """Print the welcome banner (skipped in quiet/JSON modes)."""

    title = Text("toxscan", style="bold cyan")
    subtitle = Text("SENATRAN toxicological exam lookup • batch", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def expiry_status(expired_at: str | None, *, today: date | None = None) -> str | None:
    """`valid` when the exam deadline is today or later, `expired` otherwise."""

    if not expired_at:
        return None
    try:
        deadline = datetime.strptime(expired_at, _ISO_FORMAT).date()
    except ValueError:
        return None
    return "valid" if deadline >= (today or date.today()) else "expired"


def build_results_table() -> Table:
    table = Table(title="Toxicological exam results")
    table.add_column("#", style="dim", justify="right")
    table.add_column("CPF", style="cyan", no_wrap=True)
    table.add_column("Success", style="green")
    table.add_column("Next exam by", style="white")
    table.add_column("Status", style="magenta")
    table.add_column("Collected at", style="white")
    table.add_column("Error", style="red")
    return table


def add_result_row(table: Table, index: int, result: QueryResult, *, today: date | None = None) -> None:
    outcome = result.result
    status = expiry_status(outcome.expired_at, today=today)
    table.add_row(
        str(index),
        result.payload.label,
        "yes" if outcome.success else "no",
        (outcome.expired_at or "-")[:10],
        status or "-",
        (outcome.collection_date or "-")[:10],
        outcome.error or "",
    )


def format_result_line(index: int, total: int, result: QueryResult) -> Text:
    """One-line progress message printed as each result completes."""

    line = Text(f"[{index}/{total}] ", style="dim")
    line.append(result.payload.label, style="cyan")
    if result.success:
        line.append("  ok", style="green")
        if result.result.expired_at:
            line.append(f"  next exam by {result.result.expired_at[:10]}")
    else:
        line.append("  failed", style="red")
        line.append(f"  {result.result.error}", style="dim")
    return line


def build_summary_panel(summary: BatchSummary) -> Panel:
    body = Text()
    body.append(f"Queries: {summary.total}\n")
    body.append(f"Succeeded: {summary.succeeded}\n", style="green")
    body.append(f"Failed: {summary.failed}\n", style="red" if summary.failed else "dim")
    body.append(f"Peak open sessions: {summary.max_open_sessions}\n", style="dim")
    body.append(f"Duration: {summary.duration_seconds:.1f}s", style="dim")
    return Panel(body, title=Text("Batch summary", style="bold yellow"), border_style="yellow")
