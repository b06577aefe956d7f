"""Break reminders, goal alerts, daily summaries and pomodoro notifications."""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from datetime import datetime, time, timedelta
from typing import Callable, Optional, Protocol

from plyer import notification

from .config import DAILY_SUMMARY_SHOWN_DATE, KeyValueStore, NotificationPreferences
from .goals import GoalLedger, load_goals
from .models import to_millis
from .queries import AggregationQueries
from .reporting import category_label, format_duration
from .scheduling import ScheduledTask, TaskScheduler

logger = logging.getLogger(__name__)

BREAK_GUARD = timedelta(minutes=5)
MIN_SUMMARY_MS = 60_000


class NotificationSink(Protocol):
    def show(self, title: str, body: str) -> None: ...


class DesktopNotificationSink:
    """Shows notifications through the operating system's toast API."""

    def __init__(self, app_name: str = "Focus Tracker", timeout: int = 10) -> None:
        self.app_name = app_name
        self.timeout = timeout

    def show(self, title: str, body: str) -> None:
        notification.notify(
            title=title, message=body, app_name=self.app_name, timeout=self.timeout
        )


class LoggingNotificationSink:
    """Writes notifications to the log instead of the desktop."""

    def show(self, title: str, body: str) -> None:
        logger.info("NOTIFY - %s: %s", title, body)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def pomodoro_message(kind: str, duration_ms: int, label: Optional[str] = None) -> tuple[str, str]:
    minutes = _round_half_up(duration_ms / 60_000)
    if kind == "work":
        title = "Pomodoro complete!"
        if label:
            body = f'"{label}" finished — {minutes} min of focused work.'
        else:
            body = f"{minutes} min of focused work complete."
    else:
        title = "Break's over!"
        body = f"Your {minutes} min {kind.replace('_', ' ')} is done. Ready to focus?"
    return title, body


def notify_pomodoro_complete(
    preferences: NotificationPreferences,
    sink: NotificationSink,
    kind: str,
    duration_ms: int,
    label: Optional[str] = None,
) -> bool:
    """Announce a finished pomodoro interval. Returns whether anything was shown."""
    if not preferences.pomodoro_enabled:
        return False
    title, body = pomodoro_message(kind, duration_ms, label)
    sink.show(title, body)
    logger.info("Pomodoro notification: %s", body)
    return True


def format_goal_hours(target_ms: int) -> str:
    hours = (Decimal(target_ms) / Decimal(3_600_000)).quantize(Decimal("0.1"), ROUND_HALF_UP)
    return str(hours).removesuffix(".0")


class NotificationScheduler:
    """Owns the break and daily summary timers and evaluates goals.

    Each timer family keeps at most one pending task; arming a family again
    cancels its previous task first.
    """

    def __init__(
        self,
        store: KeyValueStore,
        queries: AggregationQueries,
        sink: NotificationSink,
        scheduler: TaskScheduler,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.preferences = NotificationPreferences(store)
        self._queries = queries
        self._sink = sink
        self._scheduler = scheduler
        self._clock = clock
        self._break_task: Optional[ScheduledTask] = None
        self._summary_task: Optional[ScheduledTask] = None
        self._last_break_shown: Optional[datetime] = None

    def start(self) -> None:
        self.schedule_daily_summary()

    def shutdown(self) -> None:
        self._cancel_break()
        if self._summary_task is not None:
            self._summary_task.cancel()
            self._summary_task = None

    # Break reminders

    def on_activity_started(self) -> None:
        """The user became active: restart the break countdown."""
        if not self.preferences.break_reminders_enabled:
            return
        self._cancel_break()
        interval = self.preferences.break_interval

        def _break_due() -> None:
            self._break_task = None
            self.fire_break_reminder(interval)

        self._break_task = self._scheduler.call_later(interval, _break_due)
        logger.debug("Break reminder armed for %s", interval)

    def on_idle(self) -> None:
        self._cancel_break()

    def on_paused(self) -> None:
        self._cancel_break()

    @property
    def break_pending(self) -> bool:
        return self._break_task is not None

    def _cancel_break(self) -> None:
        if self._break_task is not None:
            self._break_task.cancel()
            self._break_task = None

    def fire_break_reminder(self, interval: timedelta) -> bool:
        now = self._clock()
        if self._last_break_shown is not None and now - self._last_break_shown < BREAK_GUARD:
            logger.debug("Break reminder suppressed; last one shown at %s", self._last_break_shown)
            return False
        self._last_break_shown = now
        minutes = _round_half_up(interval.total_seconds() / 60)
        self._sink.show("Time for a break!", f"You've been working for {minutes} minutes.")
        logger.info("Break reminder shown after %d minutes", minutes)
        return True

    # Daily summary

    def next_daily_summary(self, now: datetime) -> datetime:
        target = now.replace(
            hour=self.preferences.daily_summary_hour, minute=0, second=0, microsecond=0
        )
        if now >= target:
            target += timedelta(days=1)
        return target

    def schedule_daily_summary(self) -> None:
        if self._summary_task is not None:
            self._summary_task.cancel()
        now = self._clock()
        target = self.next_daily_summary(now)
        # Wall-clock subtraction is off by an hour across a DST change.
        delay = timedelta(seconds=target.timestamp() - now.timestamp())
        self._summary_task = self._scheduler.call_later(delay, self._daily_summary_due)
        logger.debug("Daily summary scheduled for %s", target)

    def _daily_summary_due(self) -> None:
        self._summary_task = None
        try:
            self.fire_daily_summary()
        finally:
            self.schedule_daily_summary()

    @property
    def daily_summary_shown_today(self) -> bool:
        return self.store.get(DAILY_SUMMARY_SHOWN_DATE) == self._clock().date().isoformat()

    def fire_daily_summary(self) -> bool:
        if not self.preferences.daily_summary_enabled:
            return False
        if self.daily_summary_shown_today:
            return False

        now = self._clock()
        start = to_millis(datetime.combine(now.date(), time.min))
        end = to_millis(now)
        total = self._queries.total_tracked_time(start, end)
        if total < MIN_SUMMARY_MS:
            logger.debug("Daily summary skipped; only %d ms tracked", total)
            return False

        self.store.set(DAILY_SUMMARY_SHOWN_DATE, now.date().isoformat())
        breakdown = self._queries.category_breakdown(start, end)
        top = next((entry for entry in breakdown if entry.name is not None), None)
        goal_categories = {goal.category_name for goal in load_goals(self.store)}
        productive = sum(
            entry.total_duration for entry in breakdown if entry.name in goal_categories
        )
        focus_percent = _round_half_up(productive / total * 100) if total > 0 else 0

        body = f"Total: {format_duration(total)}"
        if top is not None:
            body += f" • Top: {category_label(top.name)}"
        if productive > 0:
            body += f" • Focus: {focus_percent}%"
        self._sink.show("Daily Summary", body)
        logger.info("Daily summary shown: %s", body)
        return True

    # Goals

    def check_goals(self) -> list[str]:
        """Announce every goal reached today that was not announced yet."""
        if not self.preferences.enabled:
            return []
        goals = load_goals(self.store)
        if not goals:
            return []

        now = self._clock()
        today = now.date()
        start = to_millis(datetime.combine(today, time.min))
        totals = {
            entry.name: entry.total_duration
            for entry in self._queries.category_breakdown(start, to_millis(now))
        }
        ledger = GoalLedger.load(self.store, today)

        reached: list[str] = []
        for goal in goals:
            if goal.category_name in ledger:
                continue
            if totals.get(goal.category_name, 0) >= goal.target_ms:
                ledger.mark(goal.category_name)
                self._sink.show(
                    "Goal reached!",
                    f"You hit your {category_label(goal.category_name)} goal of "
                    f"{format_goal_hours(goal.target_ms)}h.",
                )
                logger.info("Goal reached for %s", goal.category_name)
                reached.append(goal.category_name)
        return reached

    # Pomodoro

    def on_pomodoro_complete(
        self, kind: str, duration_ms: int, label: Optional[str] = None
    ) -> bool:
        return notify_pomodoro_complete(self.preferences, self._sink, kind, duration_ms, label)
