"""Tests for the sampling loop that feeds the session aggregator."""

import json
from datetime import datetime, timedelta

import pytest

from focus_tracker.collector import ActivityCollector
from focus_tracker.config import DAILY_GOALS, CollectorSettings
from focus_tracker.models import Sample


class ScriptedSource:
    """Returns whatever window the test says is focused."""

    def __init__(self, clock):
        self.clock = clock
        self.app = None
        self.title = None

    def focus(self, app, title=None):
        self.app, self.title = app, title

    def poll(self):
        if self.app is None:
            return None
        return Sample(self.app, self.title, None, self.clock())


class SwitchableIdle:
    def __init__(self):
        self.idle = False

    def is_idle(self, threshold_ms):
        return self.idle


@pytest.fixture
def source(clock):
    return ScriptedSource(clock)


@pytest.fixture
def idle():
    return SwitchableIdle()


@pytest.fixture
def collector(tmp_path, clock, source, idle, sink, scheduler):
    settings = CollectorSettings(
        sample_interval=timedelta(seconds=5),
        idle_threshold=timedelta(minutes=5),
        flush_interval=timedelta(hours=1),
    )
    instance = ActivityCollector(
        tmp_path / "collector.sqlite3",
        settings,
        source=source,
        idle_detector=idle,
        sink=sink,
        task_scheduler=scheduler,
        clock=clock,
    )
    yield instance
    instance.shutdown()


def sample_at(collector, clock, minute):
    clock.now = datetime(2026, 3, 10, 9, 0) + timedelta(minutes=minute)
    collector.sample_once()


def activities(collector):
    rows = collector.queries.activities_in_range(0, 2**62)
    return sorted(
        ((row.app_name, row.duration // 60_000, row.session_id) for row in rows),
        key=lambda item: item[2],
    )


def test_window_changes_split_intervals(collector, source, clock):
    source.focus("Code", "main.py - focus - Visual Studio Code")
    for minute in (0, 5, 10):
        sample_at(collector, clock, minute)
    source.focus("Chrome", "Docs")
    sample_at(collector, clock, 15)
    source.focus("Code", "main.py - focus - Visual Studio Code")
    sample_at(collector, clock, 20)

    recorded = activities(collector)
    assert [(app, minutes) for app, minutes, _ in recorded] == [("Code", 15), ("Chrome", 5)]
    assert recorded[0][2] != recorded[1][2]

    row = collector.queries.activities_in_range(0, 2**62)[-1]
    assert row.category == "development"
    assert row.project_name == "focus"
    assert row.language == "python"


def test_title_change_in_same_app_extends_session(collector, source, clock):
    source.focus("Code", "a.py - focus - Code")
    sample_at(collector, clock, 0)
    source.focus("Code", "b.py - focus - Code")
    sample_at(collector, clock, 10)
    sample_at(collector, clock, 12)
    source.focus("Slack", "general")
    sample_at(collector, clock, 15)

    sessions = collector.queries.sessions_in_range(0, 2**62)
    assert len(sessions) == 1
    assert sessions[0].activity_count == 2
    assert sessions[0].total_duration == 15 * 60_000


def test_idle_closes_session_and_cancels_break(collector, source, idle, clock):
    source.focus("Code", "a.py")
    sample_at(collector, clock, 0)
    assert collector.notifier.break_pending

    idle.idle = True
    sample_at(collector, clock, 30)

    assert activities(collector)[0][:2] == ("Code", 25)
    assert collector.aggregator.current_session is None
    assert not collector.notifier.break_pending

    idle.idle = False
    sample_at(collector, clock, 40)
    sample_at(collector, clock, 45)
    assert collector.notifier.break_pending
    source.focus("Slack")
    sample_at(collector, clock, 50)
    assert len(collector.queries.sessions_in_range(0, 2**62)) == 2


def test_pause_and_resume(collector, source, clock):
    source.focus("Code", "a.py")
    sample_at(collector, clock, 0)
    clock.now += timedelta(minutes=10)
    collector.pause()

    assert collector.paused
    assert collector.aggregator.current_session is None
    assert not collector.notifier.break_pending
    assert activities(collector)[0][:2] == ("Code", 10)

    sample_at(collector, clock, 20)
    assert len(activities(collector)) == 1

    collector.resume()
    sample_at(collector, clock, 30)
    assert collector.notifier.break_pending
    sample_at(collector, clock, 35)
    source.focus("Slack")
    sample_at(collector, clock, 36)
    assert len(collector.queries.sessions_in_range(0, 2**62)) == 2


def test_long_interval_is_flushed_into_same_session(collector, source, clock):
    collector.settings.flush_interval = timedelta(minutes=10)
    source.focus("Code", "a.py")
    for minute in (0, 5, 10, 15):
        sample_at(collector, clock, minute)
    collector.pause()

    sessions = collector.queries.sessions_in_range(0, 2**62)
    assert len(sessions) == 1
    assert sessions[0].activity_count == 2
    assert sessions[0].total_duration == 15 * 60_000


def test_missing_window_ends_interval(collector, source, clock):
    source.focus("Code", "a.py")
    sample_at(collector, clock, 0)
    source.focus(None)
    sample_at(collector, clock, 4)
    assert activities(collector)[0][:2] == ("Code", 4)


def test_goal_checked_when_activity_recorded(collector, source, clock, sink):
    collector.store.set(DAILY_GOALS, json.dumps([{"categoryName": "development", "targetMs": 600_000}]))
    source.focus("Code", "a.py")
    sample_at(collector, clock, 0)
    source.focus("Slack")
    sample_at(collector, clock, 11)

    assert ("Goal reached!", "You hit your development goal of 0.2h.") in sink.shown


def test_break_reminder_repeats_during_continuous_work(collector, source, scheduler, sink):
    source.focus("Code", "a.py")
    collector.sample_once()
    for step in range(1, 19):
        scheduler.advance(minutes=10)
        source.focus(("Code", "Slack")[step % 2], f"window {step}")
        collector.sample_once()

    breaks = [body for title, body in sink.shown if title == "Time for a break!"]
    assert breaks == ["You've been working for 60 minutes."] * 3
    assert collector.notifier.break_pending


def test_focus_change_keeps_pending_break_countdown(collector, source, scheduler):
    source.focus("Code", "a.py")
    collector.sample_once()
    first = scheduler.pending[0]
    scheduler.advance(minutes=20)
    source.focus("Slack")
    collector.sample_once()
    assert scheduler.pending == [first]
