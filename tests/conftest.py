"""Shared fixtures for the focus tracker tests."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import pytest

from focus_tracker.db import SettingsStore, open_database
from focus_tracker.models import Classification, Sample, to_millis
from focus_tracker.notifications import NotificationScheduler
from focus_tracker.queries import AggregationQueries
from focus_tracker.sessions import SessionAggregator


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class ManualTask:
    due: datetime
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Runs scheduled callbacks only when the test advances the clock."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.tasks: list[ManualTask] = []

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> ManualTask:
        task = ManualTask(self.clock.now + delay, callback)
        self.tasks.append(task)
        return task

    def shutdown(self) -> None:
        for task in self.pending:
            task.cancel()

    @property
    def pending(self) -> list[ManualTask]:
        return [task for task in self.tasks if not task.cancelled and not task.fired]

    def advance(self, **kwargs: float) -> None:
        target = self.clock.now + timedelta(**kwargs)
        while True:
            due = sorted(
                (task for task in self.pending if task.due <= target), key=lambda t: t.due
            )
            if not due:
                break
            task = due[0]
            self.clock.now = task.due
            task.fired = True
            task.callback()
        self.clock.now = target


class RecordingSink:
    def __init__(self) -> None:
        self.shown: list[tuple[str, str]] = []

    def show(self, title: str, body: str) -> None:
        self.shown.append((title, body))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 10, 9, 0))


@pytest.fixture
def conn(tmp_path):
    connection = open_database(tmp_path / "focus.sqlite3")
    yield connection
    connection.close()


@pytest.fixture
def store(conn) -> SettingsStore:
    return SettingsStore(conn)


@pytest.fixture
def aggregator(conn) -> SessionAggregator:
    return SessionAggregator(conn)


@pytest.fixture
def queries(conn, clock) -> AggregationQueries:
    return AggregationQueries(conn, now_ms=lambda: to_millis(clock()))


@pytest.fixture
def scheduler(clock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def notifier(store, queries, sink, scheduler, clock) -> NotificationScheduler:
    return NotificationScheduler(store, queries, sink, scheduler, clock=clock)


@pytest.fixture
def record(aggregator):
    """Record an interval from ``start`` to ``end`` (datetimes) for ``app``."""

    def _record(
        app: str,
        start: datetime,
        end: datetime,
        category: Optional[str] = None,
        **details: Optional[str],
    ) -> int:
        sample = Sample(
            app_name=app,
            window_title=details.pop("window_title", None),
            url=details.pop("url", None),
            timestamp=start,
        )
        return aggregator.on_sample(
            sample,
            Classification(category=category, **details),
            to_millis(start),
            to_millis(end),
        )

    return _record


@pytest.fixture
def new_york_tz(monkeypatch):
    """Run under US Eastern time so local and UTC calendars disagree."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
