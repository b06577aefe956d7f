"""Command-line interface for the focus tracker."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from .config import CollectorSettings
from .db import SettingsStore, database_connection
from .paths import get_db_path, get_log_path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

app = typer.Typer(help="Local-first focus tracker with sessions and notifications.")
settings_app = typer.Typer(help="Read and change stored settings.")
goals_app = typer.Typer(help="Manage daily category goals.")
app.add_typer(settings_app, name="settings")
app.add_typer(goals_app, name="goals")

DB_OPTION = typer.Option(
    None,
    "--db",
    path_type=Path,
    help="Location of the activity SQLite database.",
)
LOG_FILE_OPTION = typer.Option(
    True,
    "--log-file/--no-log-file",
    help="Also append logs to the collector log in the data directory.",
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


def _attach_log_file(path: Path) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    return handler


def _make_sink(desktop: bool):
    from .notifications import DesktopNotificationSink, LoggingNotificationSink

    return DesktopNotificationSink() if desktop else LoggingNotificationSink()


@app.command()
def collect(
    db_path: Optional[Path] = DB_OPTION,
    sample_seconds: float = typer.Option(
        5.0,
        "--interval",
        min=1.0,
        help="Sampling interval in seconds.",
    ),
    idle_minutes: float = typer.Option(
        5.0,
        "--idle-threshold",
        min=0.5,
        help="Minutes of inactivity before the user counts as idle.",
    ),
    desktop: bool = typer.Option(
        True,
        "--notify/--no-notify",
        help="Show desktop notifications (otherwise they are only logged).",
    ),
    log_file: bool = LOG_FILE_OPTION,
) -> None:
    """Run the background collector until interrupted."""
    from .collector import ActivityCollector

    if log_file:
        _attach_log_file(get_log_path())

    settings = CollectorSettings.from_intervals(
        sample_seconds=sample_seconds, idle_minutes=idle_minutes
    )
    collector = ActivityCollector(
        db_path=db_path or get_db_path(), settings=settings, sink=_make_sink(desktop)
    )
    collector.run_forever()


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print a high-level summary for a specific day."""
    from .reporting import SummaryPrinter

    target = datetime.strptime(date, "%Y-%m-%d").date() if date else datetime.now().date()
    summary_printer = SummaryPrinter(db_path=db_path or get_db_path())
    summary_printer.print_daily_summary(target)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = DB_OPTION,
    sample_seconds: float = typer.Option(
        5.0,
        "--interval",
        min=1.0,
        help="Sampling interval in seconds.",
    ),
    idle_minutes: float = typer.Option(
        5.0,
        "--idle-threshold",
        min=0.5,
        help="Minutes of inactivity before the user counts as idle.",
    ),
    flush_seconds: Optional[float] = typer.Option(
        None,
        "--flush-interval",
        min=10.0,
        help="Longest interval recorded as one activity, in seconds.",
    ),
    desktop: bool = typer.Option(
        True,
        "--notify/--no-notify",
        help="Show desktop notifications (otherwise they are only logged).",
    ),
    log_file: bool = LOG_FILE_OPTION,
) -> None:
    """Start the local API with the background collector."""
    from .server_runner import run_server

    if log_file:
        _attach_log_file(get_log_path())

    settings = CollectorSettings.from_intervals(
        sample_seconds=sample_seconds,
        idle_minutes=idle_minutes,
        flush_seconds=flush_seconds,
    )
    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
        sink=_make_sink(desktop),
    )


@app.command()
def pomodoro(
    kind: str = typer.Argument(..., help='Interval type, e.g. "work" or "short_break".'),
    minutes: float = typer.Argument(..., min=0.0, help="Length of the finished interval."),
    label: Optional[str] = typer.Option(None, "--label", help="Name of the work item."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Announce a finished pomodoro interval."""
    from .config import NotificationPreferences
    from .notifications import DesktopNotificationSink, notify_pomodoro_complete

    with database_connection(db_path or get_db_path()) as conn:
        shown = notify_pomodoro_complete(
            NotificationPreferences(SettingsStore(conn)),
            DesktopNotificationSink(),
            kind,
            int(minutes * 60_000),
            label,
        )
    if not shown:
        typer.echo("Pomodoro notifications are disabled.")


@settings_app.command("get")
def settings_get(
    key: Optional[str] = typer.Argument(None, help="Setting to show; all when omitted."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Show stored settings."""
    with database_connection(db_path or get_db_path()) as conn:
        store = SettingsStore(conn)
        if key is None:
            for name, value in store.items().items():
                typer.echo(f"{name}={value}")
            return
        value = store.get(key)
    if value is None:
        typer.echo(f"{key} is not set (default applies).")
        raise typer.Exit(code=1)
    typer.echo(value)


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="Setting name, e.g. break_interval_minutes."),
    value: str = typer.Argument(..., help="New value."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Store a setting value."""
    with database_connection(db_path or get_db_path()) as conn:
        SettingsStore(conn).set(key, value)
    typer.echo(f"{key}={value}")


@goals_app.command("list")
def goals_list(db_path: Optional[Path] = DB_OPTION) -> None:
    """List daily goals."""
    from .goals import load_goals
    from .reporting import format_duration

    with database_connection(db_path or get_db_path()) as conn:
        goals = load_goals(SettingsStore(conn))
    if not goals:
        typer.echo("No goals configured.")
        return
    for goal in goals:
        typer.echo(f"{goal.category_name:<24} {format_duration(goal.target_ms)}")


@goals_app.command("set")
def goals_set(
    category: str = typer.Argument(..., help="Category name, e.g. development."),
    hours: float = typer.Argument(..., min=0.0, help="Daily target in hours."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Add or replace the goal for a category."""
    from .goals import Goal, load_goals, save_goals

    with database_connection(db_path or get_db_path()) as conn:
        store = SettingsStore(conn)
        goals = [goal for goal in load_goals(store) if goal.category_name != category]
        goals.append(Goal(category_name=category, target_ms=int(hours * 3_600_000)))
        save_goals(store, goals)
    typer.echo(f"Goal for {category}: {hours:g}h per day")


@goals_app.command("clear")
def goals_clear(
    category: Optional[str] = typer.Argument(None, help="Goal to remove; all when omitted."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Remove one goal or all goals."""
    from .goals import load_goals, save_goals

    with database_connection(db_path or get_db_path()) as conn:
        store = SettingsStore(conn)
        remaining = (
            [goal for goal in load_goals(store) if goal.category_name != category]
            if category
            else []
        )
        save_goals(store, remaining)
    typer.echo("Goals updated.")
