"""Background collector that turns window samples into sessions."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .classifier import Classifier
from .config import CollectorSettings
from .db import SettingsStore, open_database
from .models import Classification, Sample, to_millis
from .notifications import DesktopNotificationSink, NotificationScheduler, NotificationSink
from .probes import (
    IdleDetector,
    UnsupportedWindowSource,
    WindowSampleSource,
    create_idle_detector,
    create_window_source,
)
from .queries import AggregationQueries
from .scheduling import BackgroundTaskScheduler, TaskScheduler
from .sessions import SessionAggregator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OpenInterval:
    sample: Sample
    classification: Classification
    start: datetime
    end: datetime


class ActivityCollector:
    """Samples the focused window at a fixed interval and records activities.

    A run of samples showing the same window is one interval. The interval is
    written when the window changes, the user goes idle, tracking is paused,
    it reaches the flush interval, or the collector stops.
    """

    def __init__(
        self,
        db_path: Path,
        settings: CollectorSettings,
        *,
        source: Optional[WindowSampleSource] = None,
        idle_detector: Optional[IdleDetector] = None,
        classifier: Optional[Classifier] = None,
        sink: Optional[NotificationSink] = None,
        task_scheduler: Optional[TaskScheduler] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.db_path = Path(db_path)
        self.settings = settings
        self._clock = clock
        self._lock = threading.RLock()
        self._source = source or create_window_source(clock)
        self._idle_detector = idle_detector or create_idle_detector()
        self._classifier = classifier or Classifier()
        self._conn = open_database(self.db_path, check_same_thread=False)
        self.store = SettingsStore(self._conn)
        self.aggregator = SessionAggregator(self._conn)
        self.queries = AggregationQueries(self._conn, now_ms=lambda: to_millis(clock()))
        self._task_scheduler = task_scheduler or BackgroundTaskScheduler(self._lock)
        self.notifier = NotificationScheduler(
            self.store,
            self.queries,
            sink or DesktopNotificationSink(),
            self._task_scheduler,
            clock=clock,
        )
        self._current: Optional[OpenInterval] = None
        self._active = False
        self._paused = False

    @property
    def paused(self) -> bool:
        return self._paused

    def start(self) -> None:
        if isinstance(self._source, UnsupportedWindowSource):
            logger.warning("No window samples will be recorded: %s", self._source.reason)
        with self._lock:
            self.notifier.start()

    def run_forever(self) -> None:
        stop_event = threading.Event()
        try:
            self._run_loop(stop_event)
        except KeyboardInterrupt:
            logger.info("Collector interrupted; recording the open interval.")
        finally:
            self.shutdown()

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Run the collector until the provided event is set."""
        try:
            self._run_loop(stop_event)
        finally:
            self.shutdown()

    def sample_once(self) -> None:
        with self._lock:
            if self._paused:
                return
            now = self._clock()
            threshold = self.settings.idle_threshold
            if self._idle_detector.is_idle(int(threshold.total_seconds() * 1000)):
                # Input stopped one threshold ago; the interval ends there.
                self._go_idle(now - threshold)
                return

            sample = self._source.poll()
            if sample is None:
                self._finish_interval(now)
                return

            if not self._active:
                self._active = True
                self.notifier.on_activity_started()

            current = self._current
            if current is not None and current.sample.same_window(sample):
                current.end = now
                if now - current.start >= self.settings.flush_interval:
                    self._finish_interval(now)
                    self._current = OpenInterval(current.sample, current.classification, now, now)
                return

            self._finish_interval(now)
            if not self.notifier.break_pending:
                # The break task fires once; a focus change arms the next one.
                self.notifier.on_activity_started()
            classification = self._classifier.classify(sample)
            self._current = OpenInterval(sample, classification, now, now)
            logger.debug(
                "Focus changed: app=%s title=%s category=%s",
                sample.app_name,
                sample.window_title,
                classification.category,
            )

    def pause(self) -> None:
        """Stop recording until :meth:`resume`; closes the open session."""
        with self._lock:
            if self._paused:
                return
            self._finish_interval(self._clock())
            self.aggregator.close_current_session()
            self.notifier.on_paused()
            self._active = False
            self._paused = True
            logger.info("Tracking paused.")

    def resume(self) -> None:
        with self._lock:
            if self._paused:
                self._paused = False
                logger.info("Tracking resumed.")

    def _go_idle(self, idle_since: datetime) -> None:
        if not self._active and self._current is None:
            return
        self._finish_interval(idle_since)
        self.aggregator.close_current_session()
        self.notifier.on_idle()
        self._active = False
        logger.debug("User idle since %s", idle_since)

    def _finish_interval(self, end: datetime) -> None:
        current = self._current
        self._current = None
        if current is None:
            return
        current.end = max(end, current.start)
        start_ms = to_millis(current.start)
        end_ms = to_millis(current.end)
        if end_ms <= start_ms:
            return
        self.aggregator.on_sample(current.sample, current.classification, start_ms, end_ms)
        self.notifier.check_goals()

    def _run_loop(self, stop_event: threading.Event) -> None:
        logger.info("Starting collector; writing to %s", self.db_path)
        self.start()
        interval = self.settings.sample_interval.total_seconds()
        while not stop_event.is_set():
            self.sample_once()
            # Sleep in an interruptible manner.
            stop_event.wait(interval)

    def shutdown(self) -> None:
        with self._lock:
            try:
                self._finish_interval(self._clock())
                self.aggregator.close_current_session()
            finally:
                self.notifier.shutdown()
                self._task_scheduler.shutdown()
                self._conn.close()
        logger.info("Collector stopped.")
