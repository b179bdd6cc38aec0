"""
Typer CLI for operating the drill engine.

Commands:
    wordsbot db init               - Create tables from the SQLAlchemy models
    wordsbot db migrate            - Run SQL migrations
    wordsbot tasks load DIR        - Sync the catalog with YAML task groups
    wordsbot tasks filters         - Show filter names and values
    wordsbot tasks deactivate ID   - Retire a task
    wordsbot stats UID --days 7    - Answer statistics for a user
    wordsbot sweep                 - Close abandoned assignments
    wordsbot info                  - Show configuration
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from wordsbot import __version__
from wordsbot.config import configure_logging, get_settings
from wordsbot.db.database import get_migration_files
from wordsbot.errors import DrillError
from wordsbot.service import DrillService

app = typer.Typer(help="words-bot: drill catalog and scheduling engine", no_args_is_help=True)
console = Console()


def _service() -> DrillService:
    return DrillService.from_settings(get_settings())


@app.callback()
def main_callback() -> None:
    configure_logging(get_settings())


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management (init, migrate)")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    with _service() as service:
        service.db.init_db()
    rprint("[green]✓[/green] Database initialized!")


@db_app.command("migrate")
def db_migrate(
    migration: str = typer.Option(
        "",
        "--migration",
        "-m",
        help="Migration prefix (e.g., '001'); all migrations when empty",
    ),
) -> None:
    """Run raw SQL migration files from wordsbot/db/migrations/."""
    files = [f for f in get_migration_files() if f.name.startswith(migration)]
    if not files:
        logger.error("No migration found matching: {}", migration)
        raise typer.Exit(code=1)

    with _service() as service:
        for migration_file in files:
            service.db.run_migration(migration_file)
            rprint(f"[green]✓[/green] {migration_file.name}")


# ========================================
# TASK COMMANDS
# ========================================

tasks_app = typer.Typer(help="Task catalog management")
app.add_typer(tasks_app, name="tasks")


@tasks_app.command("load")
def tasks_load(
    directory: Path = typer.Argument(None, help="Directory with task group YAML files"),
) -> None:
    """Make the active catalog match the task groups in a directory."""
    directory = directory or Path(get_settings().task_data_dir)
    try:
        with _service() as service:
            result = service.load_tasks(directory)
    except FileNotFoundError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    rprint("\n[green]✓[/green] Catalog synced!")
    rprint(f"  Active tasks: {result.upserted}")
    rprint(f"  Deactivated: {result.deactivated}")


@tasks_app.command("filters")
def tasks_filters() -> None:
    """Show the filter tags available across active tasks."""
    with _service() as service:
        infos = service.catalog.collect_filter_info()

    if not infos:
        rprint("[yellow]⚠[/yellow] No active tasks")
        return

    table = Table(title="Task Filters")
    table.add_column("Filter", style="cyan")
    table.add_column("Values", style="green")
    for info in infos:
        table.add_row(info.name, ", ".join(info.possible_values))
    console.print(table)


@tasks_app.command("deactivate")
def tasks_deactivate(task_id: int = typer.Argument(..., help="Task id")) -> None:
    """Retire a task from selection without deleting it."""
    try:
        with _service() as service:
            service.catalog.deactivate(task_id)
    except DrillError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    rprint(f"[green]✓[/green] Task {task_id} deactivated")


# ========================================
# HISTORY COMMANDS
# ========================================


@app.command("stats")
def show_stats(
    uid: int = typer.Argument(..., help="User id"),
    days: int = typer.Option(7, "--days", "-d", help="Trailing period in days"),
) -> None:
    """Show how many answers a user gave and how many were correct."""
    with _service() as service:
        stat = service.users.answer_stat(uid, timedelta(days=days))

    table = Table(title=f"User {uid}, last {days} days")
    table.add_column("Answers", style="cyan")
    table.add_column("Correct", style="green")
    table.add_column("Accuracy", style="magenta")
    table.add_row(str(stat.count), str(stat.correct), f"{stat.accuracy:.0%}")
    console.print(table)


@app.command("sweep")
def sweep() -> None:
    """Close assignments that were never answered within the timeout."""
    with _service() as service:
        closed = service.scheduler.sweep_expired()
    rprint(f"[green]✓[/green] Closed {closed} abandoned assignments")


@app.command("info")
def show_info() -> None:
    """Show configuration."""
    settings = get_settings()

    table = Table(title="words-bot Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database URL", settings.database_url)
    table.add_row("Feedback chat", str(settings.feedback_chat_id) if settings.feedback_chat_id else "Not set")
    table.add_row("Cool-down", f"{settings.cooldown_minutes} min")
    table.add_row("Assignment timeout", f"{settings.assignment_timeout_minutes} min")
    table.add_row("Shuffle new tasks", str(settings.shuffle_new_tasks))
    table.add_row("Re-deliver outstanding", str(settings.redeliver_outstanding))
    table.add_row("Store retries", f"{settings.store_retry_attempts} x {settings.store_retry_backoff_seconds}s")
    table.add_row("Workers", str(settings.worker_threads))
    table.add_row("Log Level", settings.log_level)

    console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint(f"[bold]words-bot[/bold] v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
