"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Optional

from .db import database_connection
from .models import to_millis
from .queries import AggregationQueries


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def print_daily_summary(self, day: date) -> None:
        start, end = day_bounds(day)
        with database_connection(self.db_path) as conn:
            queries = AggregationQueries(conn)
            total = queries.total_tracked_time(start, end)
            apps = queries.app_usage(start, end)
            categories = queries.category_breakdown(start, end)
            projects = queries.project_time(start, end)
            sessions = queries.sessions_in_range(start, end)
        if not total:
            print("No activity recorded for the selected day.")
            return

        print(f"Summary for {day.isoformat()}")
        print("-" * 40)
        print(f"Tracked time: {format_duration(total)}")
        print(f"Sessions:     {len(sessions)}")
        print()

        print("Top applications:")
        for entry in apps[:5]:
            print(f"  {entry.name:<30} {format_duration(entry.total_duration)}")

        print()
        print("Categories:")
        for entry in categories:
            label = category_label(entry.name) or "(uncategorized)"
            print(f"  {label:<30} {format_duration(entry.total_duration)}")

        if projects:
            print()
            print("Projects:")
            for entry in projects[:5]:
                print(f"  {entry.name:<30} {format_duration(entry.total_duration)}")


def day_bounds(day: date) -> tuple[int, int]:
    """Inclusive millisecond range covering one local calendar day."""
    start = datetime.combine(day, time.min)
    end = start + timedelta(days=1)
    return to_millis(start), to_millis(end) - 1


def category_label(category: Optional[str]) -> Optional[str]:
    return category.replace("_", " ") if category else category


def format_duration(ms: float) -> str:
    """Format milliseconds as ``"1h 30m"``, ``"45m"`` or ``"2h"``."""
    total_minutes = int(ms // 60_000)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    return f"{minutes}m"
