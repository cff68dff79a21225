# src/istiqamah/practice/progress.py

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import date, tzinfo

from ..core.bus import ChangeBus, Channel
from ..core.errors import PersistenceError, ReadError
from ..core.ports import KeyValueStore
from .days import Clock, local_date, parse_date, today, utc_now, week_start
from .task_store import TasksChanged

logger = logging.getLogger(__name__)

WEEKLY_PROGRESS_KEY = "weekly_progress"


class WeeklyProgressTracker:
    """
    Completions per weekday (Mon..Sun) for the current week.

    Tasks only remember today's completion (the daily reset clears older
    ones), so past days of the week come from the stored snapshot and
    today's slot is recomputed on every tasks-changed event.
    """

    def __init__(
        self,
        bus: ChangeBus,
        kv: KeyValueStore | None = None,
        *,
        clock: Clock = utc_now,
        tz: tzinfo | None = None,
    ) -> None:
        self._bus = bus
        self._kv = kv
        self._clock = clock
        self._tz = tz
        self._lock = threading.Lock()
        self._week_start = week_start(today(clock, tz))
        self._counts = [0] * 7
        self._unsubscribe: Callable[[], None] | None = None
        self._restore()

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(Channel.TASKS_CHANGED, self._on_tasks_changed)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def week_start(self) -> date:
        with self._lock:
            return self._week_start

    @property
    def daily_counts(self) -> list[int]:
        with self._lock:
            self._roll_week_locked(today(self._clock, self._tz))
            return list(self._counts)

    @property
    def total(self) -> int:
        return sum(self.daily_counts)

    def _restore(self) -> None:
        if self._kv is None:
            return
        try:
            raw = self._kv.get_value(WEEKLY_PROGRESS_KEY)
        except ReadError:
            logger.warning("Weekly progress backup unreadable; starting from zeros.")
            return
        if not isinstance(raw, dict):
            return

        stored_start = parse_date(raw.get("week_start"))
        counts = raw.get("daily_counts")
        if stored_start != self._week_start or not isinstance(counts, list) or len(counts) != 7:
            return
        try:
            self._counts = [max(0, int(c)) for c in counts]
        except (TypeError, ValueError):
            logger.warning("Weekly progress backup malformed; ignored.")

    def _roll_week_locked(self, day: date) -> None:
        start = week_start(day)
        if start != self._week_start:
            self._week_start = start
            self._counts = [0] * 7

    def _on_tasks_changed(self, payload: TasksChanged) -> None:
        day = today(self._clock, self._tz)
        done_today = sum(
            1
            for t in payload.tasks
            if t.completed and t.completed_at is not None and local_date(t.completed_at, self._tz) == day
        )
        with self._lock:
            self._roll_week_locked(day)
            self._counts[day.weekday()] = done_today
            snapshot = {"week_start": self._week_start.isoformat(), "daily_counts": list(self._counts)}

        if self._kv is None:
            return
        try:
            self._kv.put_value(WEEKLY_PROGRESS_KEY, snapshot)
        except PersistenceError:
            logger.warning("Saving weekly progress failed.", exc_info=True)
