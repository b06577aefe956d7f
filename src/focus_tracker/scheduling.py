"""Cancellable delayed callbacks used by the notification timers."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


class ScheduledTask(Protocol):
    def cancel(self) -> None: ...


class TaskScheduler(Protocol):
    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> ScheduledTask: ...

    def shutdown(self) -> None: ...


class _JobTask:
    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False
        self.job = None

    def cancel(self) -> None:
        self.cancelled = True
        if self.job is None:
            return
        try:
            self.job.remove()
        except JobLookupError:
            # Already dispatched; the cancelled flag stops it under the lock.
            pass


class BackgroundTaskScheduler:
    """Runs each callback once as an APScheduler date-trigger job.

    Callbacks hold ``lock`` while they run, so sharing the lock with the
    collector keeps timer callbacks from interleaving with sampling. A task
    cancelled while its job waits for the lock does not run.
    """

    def __init__(self, lock: Optional[threading.RLock] = None) -> None:
        self._lock = lock or threading.RLock()
        self._scheduler = BackgroundScheduler(daemon=True, timezone=timezone.utc)
        self._scheduler.start()

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> ScheduledTask:
        run_date = datetime.now(timezone.utc) + max(delay, timedelta(0))
        task = _JobTask(callback)
        task.job = self._scheduler.add_job(
            self._run,
            trigger="date",
            run_date=run_date,
            args=[task],
            misfire_grace_time=None,
        )
        logger.debug("Scheduled %s for %s", getattr(callback, "__name__", callback), run_date)
        return task

    def _run(self, task: _JobTask) -> None:
        with self._lock:
            if task.cancelled:
                return
            task.callback()

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
