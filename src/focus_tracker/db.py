"""SQLite database layer for activities, sessions and settings."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from .models import Activity, Session

logger = logging.getLogger(__name__)


def open_database(
    path: Union[Path, str], *, check_same_thread: bool = True
) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Union[Path, str], *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Group statements into one transaction on an autocommit connection."""
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            app_name TEXT NOT NULL,
            category TEXT,
            start_time INTEGER NOT NULL,
            end_time INTEGER NOT NULL,
            total_duration INTEGER NOT NULL DEFAULT 0,
            activity_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS activities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id INTEGER REFERENCES sessions(id),
            app_name TEXT NOT NULL,
            window_title TEXT,
            url TEXT,
            category TEXT,
            project_name TEXT,
            file_name TEXT,
            file_type TEXT,
            language TEXT,
            domain TEXT,
            start_time INTEGER NOT NULL,
            end_time INTEGER NOT NULL,
            duration INTEGER NOT NULL,
            context_json TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )
    _add_column_if_missing(
        conn, "activities", "session_id INTEGER REFERENCES sessions(id)"
    )
    conn.executescript(
        """
        CREATE INDEX IF NOT EXISTS idx_app_name ON activities(app_name);
        CREATE INDEX IF NOT EXISTS idx_category ON activities(category);
        CREATE INDEX IF NOT EXISTS idx_project ON activities(project_name);
        CREATE INDEX IF NOT EXISTS idx_start_time ON activities(start_time);
        CREATE INDEX IF NOT EXISTS idx_session_id ON activities(session_id);
        CREATE INDEX IF NOT EXISTS idx_sessions_start ON sessions(start_time);
        """
    )


def _add_column_if_missing(conn: sqlite3.Connection, table: str, column_def: str) -> None:
    # Tables created before sessions existed lack session_id; on every later
    # open the ALTER fails with a duplicate column error, which is expected.
    try:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column_def}")
        logger.info("Migrated %s: added column %s", table, column_def.split()[0])
    except sqlite3.OperationalError as exc:
        if "duplicate column" not in str(exc).lower():
            raise


class SettingsStore:
    """String-keyed settings persisted in the ``settings`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute(
            "SELECT value FROM settings WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        self._conn.execute(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )

    def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM settings WHERE key = ?", (key,))

    def items(self) -> dict[str, str]:
        rows = self._conn.execute("SELECT key, value FROM settings ORDER BY key")
        return {row["key"]: row["value"] for row in rows}


def insert_session(
    conn: sqlite3.Connection,
    app_name: str,
    category: Optional[str],
    start_time: int,
) -> int:
    cur = conn.execute(
        """
        INSERT INTO sessions (
            app_name, category, start_time, end_time, total_duration, activity_count
        ) VALUES (?, ?, ?, ?, 0, 0)
        """,
        (app_name, category, start_time, start_time),
    )
    return int(cur.lastrowid)


def extend_session(
    conn: sqlite3.Connection, session_id: int, end_time: int, duration: int
) -> None:
    """Add one activity's duration to a session's running totals."""
    cur = conn.execute(
        """
        UPDATE sessions
        SET end_time = ?,
            total_duration = total_duration + ?,
            activity_count = activity_count + 1
        WHERE id = ?
        """,
        (end_time, duration, session_id),
    )
    if cur.rowcount == 0:
        raise ValueError(f"No session found for id={session_id}")


def insert_activity_row(
    conn: sqlite3.Connection,
    *,
    session_id: Optional[int],
    app_name: str,
    window_title: Optional[str],
    url: Optional[str],
    category: Optional[str],
    project_name: Optional[str],
    file_name: Optional[str],
    file_type: Optional[str],
    language: Optional[str],
    domain: Optional[str],
    start_time: int,
    end_time: int,
    duration: int,
    context_json: Optional[str],
) -> int:
    cur = conn.execute(
        """
        INSERT INTO activities (
            session_id, app_name, window_title, url, category, project_name,
            file_name, file_type, language, domain,
            start_time, end_time, duration, context_json
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            session_id,
            app_name,
            window_title,
            url,
            category,
            project_name,
            file_name,
            file_type,
            language,
            domain,
            start_time,
            end_time,
            duration,
            context_json,
        ),
    )
    return int(cur.lastrowid)


def fetch_session(conn: sqlite3.Connection, session_id: int) -> Optional[Session]:
    row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
    return row_to_session(row) if row else None


def fetch_activities_for_session(
    conn: sqlite3.Connection, session_id: int
) -> list[Activity]:
    rows = conn.execute(
        "SELECT * FROM activities WHERE session_id = ? ORDER BY start_time",
        (session_id,),
    )
    return [row_to_activity(row) for row in rows]


def row_to_activity(row: sqlite3.Row) -> Activity:
    return Activity(
        id=row["id"],
        session_id=row["session_id"],
        app_name=row["app_name"],
        window_title=row["window_title"],
        url=row["url"],
        category=row["category"],
        project_name=row["project_name"],
        file_name=row["file_name"],
        file_type=row["file_type"],
        language=row["language"],
        domain=row["domain"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        duration=row["duration"],
        context_json=row["context_json"],
        created_at=row["created_at"],
    )


def row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        app_name=row["app_name"],
        category=row["category"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        total_duration=row["total_duration"],
        activity_count=row["activity_count"],
        created_at=row["created_at"],
    )
