"""Read-side projections over stored activities and sessions.

Every range is inclusive on both ends and expressed in epoch milliseconds,
matched against each row's ``start_time``. Hour and date buckets use the
local time zone of the machine, not UTC.
"""

from __future__ import annotations

import sqlite3
import time
from collections import defaultdict
from typing import Callable, Optional

from .db import row_to_activity, row_to_session
from .models import (
    Activity,
    DailyTotal,
    HourlyTotal,
    Session,
    SessionWithActivities,
    UsageTotal,
)

DAY_MS = 24 * 60 * 60 * 1000

_IN_RANGE = "start_time >= ? AND start_time <= ?"
_LOCAL_HOUR = "CAST(strftime('%H', start_time / 1000, 'unixepoch', 'localtime') AS INTEGER)"
_LOCAL_DATE = "date(start_time / 1000, 'unixepoch', 'localtime')"


def _now_ms() -> int:
    return int(time.time() * 1000)


class AggregationQueries:
    """Aggregates over the ``activities`` and ``sessions`` tables."""

    def __init__(
        self, conn: sqlite3.Connection, *, now_ms: Callable[[], int] = _now_ms
    ) -> None:
        self._conn = conn
        self._now_ms = now_ms

    def activities_in_range(self, start_time: int, end_time: int) -> list[Activity]:
        rows = self._conn.execute(
            f"SELECT * FROM activities WHERE {_IN_RANGE} ORDER BY start_time DESC",
            (start_time, end_time),
        )
        return [row_to_activity(row) for row in rows]

    def app_usage(self, start_time: int, end_time: int) -> list[UsageTotal]:
        return self._usage_by("app_name", start_time, end_time)

    def category_breakdown(self, start_time: int, end_time: int) -> list[UsageTotal]:
        """Totals per category; uncategorised rows form their own ``None`` bucket."""
        return self._usage_by("category", start_time, end_time)

    def project_time(self, start_time: int, end_time: int) -> list[UsageTotal]:
        return self._usage_by("project_name", start_time, end_time, skip_null=True)

    def domain_usage(self, start_time: int, end_time: int) -> list[UsageTotal]:
        return self._usage_by("domain", start_time, end_time, skip_null=True)

    def _usage_by(
        self, column: str, start_time: int, end_time: int, *, skip_null: bool = False
    ) -> list[UsageTotal]:
        not_null = f" AND {column} IS NOT NULL" if skip_null else ""
        rows = self._conn.execute(
            f"""
            SELECT
                {column} AS name,
                SUM(duration) AS total_duration,
                COUNT(*) AS activity_count
            FROM activities
            WHERE {_IN_RANGE}{not_null}
            GROUP BY {column}
            ORDER BY total_duration DESC
            """,
            (start_time, end_time),
        )
        return [
            UsageTotal(
                name=row["name"],
                total_duration=int(row["total_duration"] or 0),
                activity_count=row["activity_count"],
            )
            for row in rows
        ]

    def hourly_pattern(self, start_time: int, end_time: int) -> list[HourlyTotal]:
        rows = self._conn.execute(
            f"""
            SELECT
                {_LOCAL_HOUR} AS hour,
                category,
                SUM(duration) AS total_duration
            FROM activities
            WHERE {_IN_RANGE}
            GROUP BY hour, category
            ORDER BY hour
            """,
            (start_time, end_time),
        )
        return [
            HourlyTotal(
                hour=row["hour"],
                category=row["category"],
                total_duration=int(row["total_duration"] or 0),
            )
            for row in rows
        ]

    def daily_totals(self, days: int) -> list[DailyTotal]:
        """Per local calendar date over the last ``days`` days, newest first."""
        since = self._now_ms() - days * DAY_MS
        rows = self._conn.execute(
            f"""
            SELECT
                {_LOCAL_DATE} AS day,
                SUM(duration) AS total_duration,
                COUNT(*) AS activity_count
            FROM activities
            WHERE start_time >= ?
            GROUP BY day
            ORDER BY day DESC
            """,
            (since,),
        )
        return [
            DailyTotal(
                date=row["day"],
                total_duration=int(row["total_duration"] or 0),
                activity_count=row["activity_count"],
            )
            for row in rows
        ]

    def total_tracked_time(self, start_time: int, end_time: int) -> int:
        row = self._conn.execute(
            f"SELECT SUM(duration) AS total FROM activities WHERE {_IN_RANGE}",
            (start_time, end_time),
        ).fetchone()
        return int(row["total"] or 0)

    def sessions_in_range(self, start_time: int, end_time: int) -> list[Session]:
        rows = self._conn.execute(
            f"SELECT * FROM sessions WHERE {_IN_RANGE} ORDER BY start_time DESC",
            (start_time, end_time),
        )
        return [row_to_session(row) for row in rows]

    def sessions_with_activities(
        self, start_time: int, end_time: int
    ) -> list[SessionWithActivities]:
        """Sessions started in range, each with its activities that also started in range.

        Activities without a session (rows written before sessions existed)
        have no session to attach to and are left out.
        """
        sessions = self.sessions_in_range(start_time, end_time)
        if not sessions:
            return []

        by_session: defaultdict[Optional[int], list[Activity]] = defaultdict(list)
        for activity in self.activities_in_range(start_time, end_time):
            by_session[activity.session_id].append(activity)

        return [
            SessionWithActivities(session=session, activities=by_session.get(session.id, []))
            for session in sessions
        ]
