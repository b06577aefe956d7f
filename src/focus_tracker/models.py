"""Domain models for recorded focus activity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


def to_millis(value: datetime) -> int:
    """Convert a (local, naive) datetime to epoch milliseconds."""
    return int(value.timestamp() * 1000)


@dataclass(slots=True)
class Sample:
    """One observation of the focused application window."""

    app_name: str
    window_title: Optional[str]
    url: Optional[str]
    timestamp: datetime

    def same_window(self, other: "Sample") -> bool:
        return (
            self.app_name == other.app_name
            and self.window_title == other.window_title
            and self.url == other.url
        )


@dataclass(slots=True)
class Classification:
    category: Optional[str] = None
    project_name: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    language: Optional[str] = None
    domain: Optional[str] = None
    context: Optional[dict[str, Any]] = None


@dataclass(slots=True)
class Activity:
    """Represents one contiguous interval of classified focus on one window."""

    id: int
    session_id: Optional[int]
    app_name: str
    window_title: Optional[str]
    url: Optional[str]
    category: Optional[str]
    project_name: Optional[str]
    file_name: Optional[str]
    file_type: Optional[str]
    language: Optional[str]
    domain: Optional[str]
    start_time: int
    end_time: int
    duration: int
    context_json: Optional[str]
    created_at: Optional[str]


@dataclass(slots=True)
class Session:
    """A run of consecutive activities on the same application."""

    id: int
    app_name: str
    category: Optional[str]
    start_time: int
    end_time: int
    total_duration: int
    activity_count: int
    created_at: Optional[str] = None


@dataclass(slots=True)
class SessionWithActivities:
    session: Session
    activities: list[Activity] = field(default_factory=list)


@dataclass(slots=True)
class UsageTotal:
    """Summed duration and activity count for one grouping key."""

    name: Optional[str]
    total_duration: int
    activity_count: int


@dataclass(slots=True)
class HourlyTotal:
    hour: int
    category: Optional[str]
    total_duration: int


@dataclass(slots=True)
class DailyTotal:
    date: str
    total_duration: int
    activity_count: int
