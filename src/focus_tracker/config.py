"""Configuration models and helpers for the focus tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Protocol


@dataclass(slots=True)
class CollectorSettings:
    """Runtime configuration for the activity collector."""

    sample_interval: timedelta = timedelta(seconds=5)
    idle_threshold: timedelta = timedelta(minutes=5)
    flush_interval: timedelta = timedelta(minutes=5)

    @classmethod
    def from_intervals(
        cls,
        sample_seconds: float,
        idle_minutes: float,
        flush_seconds: float | None = None,
    ) -> "CollectorSettings":
        flush = flush_seconds if flush_seconds is not None else max(sample_seconds * 60, 300.0)
        return cls(
            sample_interval=timedelta(seconds=sample_seconds),
            idle_threshold=timedelta(minutes=idle_minutes),
            flush_interval=timedelta(seconds=flush),
        )


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


NOTIFICATIONS_ENABLED = "notifications_enabled"
BREAK_REMINDERS_ENABLED = "break_reminders_enabled"
BREAK_INTERVAL_MINUTES = "break_interval_minutes"
DAILY_SUMMARY_ENABLED = "daily_summary_enabled"
DAILY_SUMMARY_HOUR = "daily_summary_hour"
POMODORO_NOTIFICATIONS_ENABLED = "pomodoro_notifications_enabled"
DAILY_GOALS = "daily_goals"
GOALS_NOTIFIED_TODAY = "goals_notified_today"
DAILY_SUMMARY_SHOWN_DATE = "daily_summary_shown_date"

DEFAULT_BREAK_INTERVAL_MINUTES = 60
DEFAULT_DAILY_SUMMARY_HOUR = 18


class NotificationPreferences:
    """Typed view of the notification settings.

    Values are read from the store on every access so that changes made by
    other writers take effect without a restart.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def _flag(self, key: str) -> bool:
        return self.store.get(key) != "false"

    @property
    def enabled(self) -> bool:
        return self._flag(NOTIFICATIONS_ENABLED)

    @property
    def break_reminders_enabled(self) -> bool:
        return self.enabled and self._flag(BREAK_REMINDERS_ENABLED)

    @property
    def daily_summary_enabled(self) -> bool:
        return self.enabled and self._flag(DAILY_SUMMARY_ENABLED)

    @property
    def pomodoro_enabled(self) -> bool:
        return self.enabled and self._flag(POMODORO_NOTIFICATIONS_ENABLED)

    @property
    def break_interval(self) -> timedelta:
        minutes = _parse_int(self.store.get(BREAK_INTERVAL_MINUTES))
        if minutes is None or minutes < 1:
            minutes = DEFAULT_BREAK_INTERVAL_MINUTES
        return timedelta(minutes=minutes)

    @property
    def daily_summary_hour(self) -> int:
        hour = _parse_int(self.store.get(DAILY_SUMMARY_HOUR))
        if hour is None or not 0 <= hour <= 23:
            return DEFAULT_DAILY_SUMMARY_HOUR
        return hour


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None
