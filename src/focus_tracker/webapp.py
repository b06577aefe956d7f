"""FastAPI application that exposes a local API for the focus tracker."""

from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .collector import ActivityCollector
from .config import CollectorSettings, NotificationPreferences
from .db import SettingsStore, database_connection
from .goals import Goal, load_goals, save_goals
from .notifications import DesktopNotificationSink, NotificationSink, notify_pomodoro_complete
from .paths import get_db_path
from .queries import AggregationQueries
from .reporting import day_bounds

logger = logging.getLogger(__name__)


class CollectorRunner:
    """Manage the activity collector in a background thread."""

    def __init__(self, db_path: Path, settings: CollectorSettings, sink: NotificationSink) -> None:
        self._db_path = Path(db_path)
        self._settings = settings
        self._sink = sink
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._collector: Optional[ActivityCollector] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            collector = ActivityCollector(
                db_path=self._db_path, settings=self._settings, sink=self._sink
            )
            thread = threading.Thread(
                target=collector.run_until_stopped,
                args=(stop_event,),
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            self._collector = collector
            thread.start()
            logger.info("Collector background thread started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
            self._collector = None
        if thread:
            thread.join(timeout=10)
            logger.info("Collector background thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def is_paused(self) -> bool:
        with self._lock:
            return bool(self._collector and self._collector.paused)

    def pause(self) -> bool:
        with self._lock:
            collector = self._collector
        if collector is None:
            return False
        collector.pause()
        return True

    def resume(self) -> bool:
        with self._lock:
            collector = self._collector
        if collector is None:
            return False
        collector.resume()
        return True


class SettingValue(BaseModel):
    value: str

    model_config = ConfigDict(extra="forbid")


class GoalsPayload(BaseModel):
    goals: List[Goal]

    model_config = ConfigDict(extra="forbid")


class PomodoroPayload(BaseModel):
    type: str = Field(min_length=1)
    duration_ms: int = Field(ge=0)
    label: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[CollectorSettings] = None,
    sink: Optional[NotificationSink] = None,
    run_collector: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or CollectorSettings()
    resolved_sink = sink or DesktopNotificationSink()
    runner = CollectorRunner(resolved_db_path, resolved_settings, resolved_sink)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if run_collector:
            runner.start()
        try:
            yield
        finally:
            runner.stop()

    app = FastAPI(title="Focus Tracker", version="0.3.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.collector_runner = runner
    app.state.sink = resolved_sink

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        runner: CollectorRunner = request.app.state.collector_runner
        return {
            "collector_running": runner.is_running(),
            "paused": runner.is_paused(),
            "database_path": str(request.app.state.db_path),
            "sample_seconds": resolved_settings.sample_interval.total_seconds(),
            "idle_minutes": resolved_settings.idle_threshold.total_seconds() / 60.0,
        }

    @app.get("/api/activities")
    def activities(
        request: Request,
        start: Optional[int] = Query(default=None, description="Range start (epoch ms)."),
        end: Optional[int] = Query(default=None, description="Range end (epoch ms)."),
    ) -> Dict[str, Any]:
        start_ms, end_ms = _resolve_range(start, end)
        with database_connection(request.app.state.db_path) as conn:
            rows = AggregationQueries(conn).activities_in_range(start_ms, end_ms)
        return {"start": start_ms, "end": end_ms, "activities": [asdict(row) for row in rows]}

    def _usage_endpoint(path: str, method_name: str) -> None:
        @app.get(path, name=method_name)
        def usage(
            request: Request,
            start: Optional[int] = Query(default=None, description="Range start (epoch ms)."),
            end: Optional[int] = Query(default=None, description="Range end (epoch ms)."),
        ) -> Dict[str, Any]:
            start_ms, end_ms = _resolve_range(start, end)
            with database_connection(request.app.state.db_path) as conn:
                rows = getattr(AggregationQueries(conn), method_name)(start_ms, end_ms)
            return {"start": start_ms, "end": end_ms, "entries": [asdict(row) for row in rows]}

    _usage_endpoint("/api/apps", "app_usage")
    _usage_endpoint("/api/categories", "category_breakdown")
    _usage_endpoint("/api/projects", "project_time")
    _usage_endpoint("/api/domains", "domain_usage")
    _usage_endpoint("/api/hourly", "hourly_pattern")

    @app.get("/api/total")
    def total(
        request: Request,
        start: Optional[int] = Query(default=None),
        end: Optional[int] = Query(default=None),
    ) -> Dict[str, Any]:
        start_ms, end_ms = _resolve_range(start, end)
        with database_connection(request.app.state.db_path) as conn:
            tracked = AggregationQueries(conn).total_tracked_time(start_ms, end_ms)
        return {"start": start_ms, "end": end_ms, "total_duration": tracked}

    @app.get("/api/daily")
    def daily(request: Request, days: int = Query(default=7, ge=1, le=366)) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            rows = AggregationQueries(conn).daily_totals(days)
        return {"days": days, "entries": [asdict(row) for row in rows]}

    @app.get("/api/sessions")
    def sessions(
        request: Request,
        start: Optional[int] = Query(default=None),
        end: Optional[int] = Query(default=None),
    ) -> Dict[str, Any]:
        start_ms, end_ms = _resolve_range(start, end)
        with database_connection(request.app.state.db_path) as conn:
            rows = AggregationQueries(conn).sessions_with_activities(start_ms, end_ms)
        return {
            "start": start_ms,
            "end": end_ms,
            "sessions": [
                {
                    **asdict(row.session),
                    "activities": [asdict(activity) for activity in row.activities],
                }
                for row in rows
            ],
        }

    @app.get("/api/settings")
    def list_settings(request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            store = SettingsStore(conn)
            stored = store.items()
            preferences = NotificationPreferences(store)
            effective = {
                "notifications_enabled": preferences.enabled,
                "break_reminders_enabled": preferences.break_reminders_enabled,
                "break_interval_minutes": int(preferences.break_interval.total_seconds() // 60),
                "daily_summary_enabled": preferences.daily_summary_enabled,
                "daily_summary_hour": preferences.daily_summary_hour,
                "pomodoro_notifications_enabled": preferences.pomodoro_enabled,
            }
        return {"settings": stored, "effective": effective}

    @app.put("/api/settings/{key}")
    def put_setting(key: str, payload: SettingValue, request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            SettingsStore(conn).set(key, payload.value)
        return {"key": key, "value": payload.value}

    @app.get("/api/goals")
    def list_goals(request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            goals = load_goals(SettingsStore(conn))
        return {"goals": [goal.model_dump(by_alias=True) for goal in goals]}

    @app.put("/api/goals")
    def put_goals(payload: GoalsPayload, request: Request) -> Dict[str, Any]:
        names = [goal.category_name for goal in payload.goals]
        if len(names) != len(set(names)):
            raise HTTPException(status_code=400, detail="categoryName values must be unique")
        with database_connection(request.app.state.db_path) as conn:
            save_goals(SettingsStore(conn), payload.goals)
        return {"goals": [goal.model_dump(by_alias=True) for goal in payload.goals]}

    @app.post("/api/tracking/pause")
    def pause(request: Request) -> Dict[str, Any]:
        if not request.app.state.collector_runner.pause():
            raise HTTPException(status_code=409, detail="Collector is not running")
        return {"paused": True}

    @app.post("/api/tracking/resume")
    def resume(request: Request) -> Dict[str, Any]:
        if not request.app.state.collector_runner.resume():
            raise HTTPException(status_code=409, detail="Collector is not running")
        return {"paused": False}

    @app.post("/api/pomodoro")
    def pomodoro(payload: PomodoroPayload, request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            shown = notify_pomodoro_complete(
                NotificationPreferences(SettingsStore(conn)),
                request.app.state.sink,
                payload.type,
                payload.duration_ms,
                payload.label,
            )
        return {"notified": shown}

    return app


def _resolve_range(start: Optional[int], end: Optional[int]) -> tuple[int, int]:
    today_start, today_end = day_bounds(date.today())
    start_ms = today_start if start is None else start
    end_ms = today_end if end is None else end
    if end_ms < start_ms:
        raise HTTPException(status_code=400, detail="end must be on or after start")
    return start_ms, end_ms
