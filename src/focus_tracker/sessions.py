"""Groups classified activity intervals into per-application sessions."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from typing import Optional

from .db import extend_session, insert_activity_row, insert_session, transaction
from .models import Classification, Sample

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OpenSession:
    id: int
    app_name: str


class SessionAggregator:
    """Writes activities and keeps the running totals of their sessions.

    At most one session is open at a time. The open session is only held in
    memory: closing it clears the pointer and leaves the row untouched, so a
    session abandoned by a crash keeps the end time of its last activity.

    Samples must arrive in non-decreasing start time order.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self._current: Optional[OpenSession] = None

    @property
    def current_session(self) -> Optional[OpenSession]:
        return self._current

    def on_sample(
        self,
        sample: Sample,
        classification: Classification,
        start_time: int,
        end_time: int,
    ) -> int:
        """Record one classified interval and return the new activity id."""
        if end_time < start_time:
            raise ValueError(
                f"Activity ends before it starts ({end_time} < {start_time})"
            )
        context_json = (
            json.dumps(classification.context)
            if classification.context is not None
            else None
        )
        return self.insert_activity(
            app_name=sample.app_name,
            window_title=sample.window_title,
            url=sample.url,
            category=classification.category,
            project_name=classification.project_name,
            file_name=classification.file_name,
            file_type=classification.file_type,
            language=classification.language,
            domain=classification.domain,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
            context_json=context_json,
        )

    def insert_activity(
        self,
        *,
        app_name: str,
        window_title: Optional[str],
        start_time: int,
        end_time: int,
        duration: int,
        url: Optional[str] = None,
        category: Optional[str] = None,
        project_name: Optional[str] = None,
        file_name: Optional[str] = None,
        file_type: Optional[str] = None,
        language: Optional[str] = None,
        domain: Optional[str] = None,
        context_json: Optional[str] = None,
    ) -> int:
        if duration < 0:
            raise ValueError(f"Activity duration must not be negative (got {duration})")
        with self._lock:
            previous = self._current
            try:
                with transaction(self._conn):
                    session_id = self.get_or_create_session(
                        app_name, category, start_time
                    )
                    activity_id = insert_activity_row(
                        self._conn,
                        session_id=session_id,
                        app_name=app_name,
                        window_title=window_title,
                        url=url,
                        category=category,
                        project_name=project_name,
                        file_name=file_name,
                        file_type=file_type,
                        language=language,
                        domain=domain,
                        start_time=start_time,
                        end_time=end_time,
                        duration=duration,
                        context_json=context_json,
                    )
                    extend_session(self._conn, session_id, end_time, duration)
            except BaseException:
                # A rolled back session row must not stay open.
                self._current = previous
                raise
        logger.debug(
            "Recorded activity %d in session %d: %s (%d ms)",
            activity_id,
            session_id,
            app_name,
            duration,
        )
        return activity_id

    def get_or_create_session(
        self, app_name: str, category: Optional[str], start_time: int
    ) -> int:
        """Return the open session for ``app_name``, opening a new one if needed."""
        with self._lock:
            current = self._current
            if current is not None and current.app_name == app_name:
                return current.id
            session_id = insert_session(self._conn, app_name, category, start_time)
            self._current = OpenSession(id=session_id, app_name=app_name)
        logger.debug("Opened session %d for %s", session_id, app_name)
        return session_id

    def close_current_session(self) -> None:
        with self._lock:
            if self._current is not None:
                logger.debug("Closed session %d", self._current.id)
            self._current = None
