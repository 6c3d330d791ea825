"""Slowburn CLI.

Runs the API server and manages rotation plans directly against the
configured database, through the same store and reconciler the API uses.
"""

import json

import typer
import uvicorn
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from slowburn.checklist.dates import parse_channel, resolve_requested_date
from slowburn.checklist.errors import ChecklistError
from slowburn.checklist.normalize import clamp_intensity
from slowburn.checklist.reconciler import ChecklistReconciler, default_heatmap_window
from slowburn.checklist.resolver import decode_exercises
from slowburn.config.settings import settings
from slowburn.core.logger import setup_logger
from slowburn.db.session import get_session, init_db
from slowburn.db.store import ChecklistStore

console = Console()

app = typer.Typer(
    name="slowburn",
    help="Slowburn CLI - serve the API and manage workout/mobility rotations",
    add_completion=False,
)


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Enable debug logging")) -> None:
    setup_logger(level="DEBUG" if debug else settings.log_level, log_file=settings.log_file, serialize=settings.log_json)


def _channel_or_exit(value: str) -> str:
    try:
        return parse_channel(value, field="channel")
    except ChecklistError as e:
        console.print(f"[red]Error:[/red] {e}", style="bold red")
        raise typer.Exit(1) from e


@app.command()
def serve(
    host: str = typer.Option(settings.host, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Run the FastAPI server."""
    logger.info(f"Starting FastAPI server on {host}:{port} (reload={reload})")
    uvicorn.run("slowburn.main:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_db_command() -> None:
    """Create database tables if they do not exist."""
    try:
        init_db()
    except Exception as e:
        logger.exception(f"Database initialization failed: {e}")
        console.print(Panel(Text("Database initialization failed", style="bold red"), subtitle=str(e), border_style="red"))
        raise typer.Exit(1) from e
    console.print(Panel(Text("Database ready", style="bold green"), subtitle=settings.database_url, border_style="green"))


@app.command("add-plan")
def add_plan(
    channel: str = typer.Option("workout", "--channel", "-c", help="workout | mobility"),
    day_number: int = typer.Option(..., "--day-number", "-d", help="Position in the rotation"),
    focus: str = typer.Option(..., "--focus", "-f", help="Plan focus label"),
    exercises_json: str = typer.Option(..., "--exercises-json", "-e", help="JSON array of exercise entries"),
    difficulty: int | None = typer.Option(None, "--difficulty", help="Optional difficulty rating"),
) -> None:
    """Append a plan to a channel's rotation."""
    resolved_channel = _channel_or_exit(channel)
    try:
        exercises = json.loads(exercises_json)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] --exercises-json is not valid JSON: {e}", style="bold red")
        raise typer.Exit(1) from e
    if not isinstance(exercises, list) or not exercises:
        console.print("[red]Error:[/red] --exercises-json must be a non-empty JSON array", style="bold red")
        raise typer.Exit(1)

    init_db()
    safe_difficulty = clamp_intensity(difficulty, 0) if difficulty is not None else None
    with get_session() as session:
        plan = ChecklistStore(session).add_rotation_plan(resolved_channel, day_number, focus, exercises, safe_difficulty)
        plan_id = plan.id
    console.print(f"[green]Added {resolved_channel} plan {plan_id}[/green] (day {day_number}, {len(exercises)} exercises)")


@app.command("list-plans")
def list_plans(
    channel: str = typer.Option("workout", "--channel", "-c", help="workout | mobility"),
) -> None:
    """Show a channel's rotation in order."""
    resolved_channel = _channel_or_exit(channel)
    init_db()

    table = Table(title=f"{resolved_channel} rotation")
    table.add_column("id", justify="right")
    table.add_column("day", justify="right")
    table.add_column("focus")
    table.add_column("exercises", justify="right")
    table.add_column("difficulty", justify="right")
    table.add_column("completed")

    with get_session() as session:
        rows = ChecklistStore(session).list_rotation(resolved_channel)
        for row in rows:
            try:
                count = str(len(decode_exercises(row.exercises)))
            except ChecklistError:
                count = "[red]malformed[/red]"
            table.add_row(
                str(row.id),
                str(row.day_number),
                row.focus,
                count,
                "" if row.difficulty is None else str(row.difficulty),
                row.completed_at.strftime("%Y-%m-%d") if row.completed_at else "",
            )

    if not rows:
        console.print(f"[yellow]No {resolved_channel} rotation plans; the default plan will be used[/yellow]")
        return
    console.print(table)


@app.command()
def heatmap(
    days: int = typer.Option(settings.heatmap_default_days, "--days", help="Window length in days"),
    channel: str = typer.Option("workout", "--channel", "-c", help="workout | mobility"),
    end: str | None = typer.Option(None, "--end", help="Last day of the window (YYYY-MM-DD)"),
) -> None:
    """Print non-zero heatmap days for a window."""
    resolved_channel = _channel_or_exit(channel)
    window = min(max(days, settings.heatmap_min_days), settings.heatmap_max_days)
    start_day, end_day = default_heatmap_window(resolve_requested_date(end), window)
    init_db()

    with get_session() as session:
        result = ChecklistReconciler(ChecklistStore(session)).heatmap(start_day, end_day, resolved_channel)

    table = Table(title=f"{resolved_channel} heatmap {start_day} .. {end_day}")
    table.add_column("date")
    table.add_column("total", justify="right")
    table.add_column("level", justify="right")
    for day in result.days:
        table.add_row(day.day.isoformat(), str(day.total), "■" * day.level)
    console.print(table)
    console.print(f"[dim]{len(result.days)} active days out of {window}[/dim]")


if __name__ == "__main__":
    app()
