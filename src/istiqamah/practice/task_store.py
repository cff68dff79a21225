# src/istiqamah/practice/task_store.py

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, tzinfo

from ..core.bus import ChangeBus, Channel
from ..core.errors import ReadError, ValidationError
from ..core.ports import Identity, PracticeStorage
from .days import Clock, local_date, today, utc_now
from .models import Category, Priority, Task
from .writer import PersistWriter

logger = logging.getLogger(__name__)


DEFAULT_TASKS: tuple[Task, ...] = (
    Task("1", "Pray the five daily prayers on time", Category.WORSHIP, Priority.CRITICAL),
    Task("2", "Read one page of the Quran", Category.WORSHIP, Priority.CRITICAL),
    Task("3", "Morning and evening dhikr", Category.WORSHIP, Priority.IMPORTANT),
    Task("4", "Istighfar 100x", Category.WORSHIP, Priority.IMPORTANT),
    Task("5", "Be kind to your parents", Category.CHARACTER, Priority.CRITICAL),
    Task("6", "Avoid gossip and backbiting", Category.TRANSFORMATION, Priority.IMPORTANT),
    Task("7", "Read one hadith", Category.KNOWLEDGE, Priority.ROUTINE),
)


@dataclass(slots=True, frozen=True)
class TasksChanged:
    """Payload of Channel.TASKS_CHANGED."""

    tasks: tuple[Task, ...]
    has_uncompleted_tasks: bool


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Incomplete first, then by priority (critical first); stable otherwise."""
    return sorted(tasks, key=lambda t: (t.completed, t.priority.rank))


def is_stale(task: Task, day: date, tz: tzinfo | None = None) -> bool:
    return task.completed and task.completed_at is not None and local_date(task.completed_at, tz) != day


def reset_stale_tasks(tasks: Iterable[Task], day: date, tz: tzinfo | None = None) -> list[Task]:
    """
    Daily reset: un-complete every task whose completion is not dated `day`.

    Pure and idempotent: reset(reset(x)) == reset(x).
    """
    return [t.mark_undone() if is_stale(t, day, tz) else t for t in tasks]


class TaskStore:
    """
    Owns the user's task checklist.

    Mutations are optimistic: memory first, then a fire-and-forget write
    through PersistWriter. Write failures never reach the caller; load()
    is the only way to reconcile with the backend.
    """

    def __init__(
        self,
        storage: PracticeStorage,
        bus: ChangeBus,
        *,
        identity: Identity | None = None,
        writer: PersistWriter | None = None,
        clock: Clock = utc_now,
        tz: tzinfo | None = None,
    ) -> None:
        self._storage = storage
        self._bus = bus
        self._identity = identity or Identity.anonymous()
        self._writer = writer or PersistWriter(background=False)
        self._clock = clock
        self._tz = tz
        self._tasks: list[Task] = []
        self._lock = threading.RLock()

    # ---- queries ----

    @property
    def tasks(self) -> list[Task]:
        """Current collection in display order."""
        with self._lock:
            return sort_tasks(self._tasks)

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            for t in self._tasks:
                if t.id == task_id:
                    return t
        return None

    @property
    def total_count(self) -> int:
        with self._lock:
            return len(self._tasks)

    @property
    def completed_count(self) -> int:
        with self._lock:
            return sum(1 for t in self._tasks if t.completed)

    @property
    def progress_value(self) -> float:
        """Completed share in percent (0 when there are no tasks)."""
        with self._lock:
            total = len(self._tasks)
            done = sum(1 for t in self._tasks if t.completed)
        return (done / total) * 100.0 if total else 0.0

    @property
    def has_uncompleted_tasks(self) -> bool:
        with self._lock:
            return any(not t.completed for t in self._tasks)

    # ---- load / reset ----

    def load(self) -> list[Task]:
        """
        Read the collection for the active identity and apply the daily reset.

        - nothing stored yet -> seed defaults and persist them
        - read failure       -> seed defaults in memory only (backend untouched)
        - reset changed rows -> persist the rewritten collection
        """
        day = today(self._clock, self._tz)
        persist = False

        try:
            stored = self._storage.read_tasks(self._identity)
        except ReadError:
            logger.exception("Reading tasks failed; using default checklist in memory.")
            stored = list(DEFAULT_TASKS)
        else:
            if stored is None:
                logger.info("No stored tasks; seeding %d defaults.", len(DEFAULT_TASKS))
                stored = list(DEFAULT_TASKS)
                persist = True

        fresh = reset_stale_tasks(stored, day, self._tz)
        n_reset = sum(1 for before, after in zip(stored, fresh) if before != after)
        if n_reset:
            logger.info("Daily reset un-completed %d task(s) for %s", n_reset, day.isoformat())
            persist = True

        with self._lock:
            self._tasks = fresh
            if persist:
                self._persist_locked()

        self._publish()
        return self.tasks

    def reset_stale(self) -> int:
        """Run the daily reset on in-memory tasks; returns how many changed."""
        with self._lock:
            changed = self._reset_stale_locked()
            if changed:
                self._persist_locked()
        if changed:
            self._publish()
        return changed

    def _reset_stale_locked(self) -> int:
        # Runs before every mutation: earlier-day completions never count toward today.
        day = today(self._clock, self._tz)
        fresh = reset_stale_tasks(self._tasks, day, self._tz)
        changed = sum(1 for before, after in zip(self._tasks, fresh) if before != after)
        if changed:
            logger.info("Daily reset un-completed %d task(s) for %s", changed, day.isoformat())
            self._tasks = fresh
        return changed

    # ---- mutations ----

    def toggle(self, task_id: str) -> Task | None:
        with self._lock:
            rolled = self._reset_stale_locked()
            idx = self._index_locked(task_id)
            if idx is None:
                logger.debug("toggle: unknown task_id=%s", task_id)
                if rolled:
                    self._persist_locked()
            else:
                current = self._tasks[idx]
                updated = current.mark_undone() if current.completed else current.mark_done(self._clock())
                self._tasks[idx] = updated
                self._persist_locked()

        if idx is None:
            if rolled:
                self._publish()
            return None

        logger.debug("Task %s completed=%s", task_id, updated.completed)
        self._publish()
        return updated

    def add(self, title: str, category: Category, priority: Priority) -> Task:
        clean = (title or "").strip()
        if not clean:
            raise ValidationError("title is required")

        task = Task(
            id=uuid.uuid4().hex,
            title=clean,
            category=Category(category),
            priority=Priority(priority),
            is_custom=True,
        )
        with self._lock:
            self._reset_stale_locked()
            self._tasks.append(task)
            self._persist_locked()

        logger.info("Task added id=%s priority=%s", task.id, task.priority.value)
        self._publish()
        return task

    def remove(self, task_id: str, *, custom_only: bool = False) -> bool:
        """
        Delete a task. Unknown ids are a no-op (False).

        custom_only lets the caller refuse seeded tasks; the store itself
        does not enforce that policy.
        """
        with self._lock:
            rolled = self._reset_stale_locked()
            idx = self._index_locked(task_id)
            removable = idx is not None and (not custom_only or self._tasks[idx].is_custom)
            if removable:
                del self._tasks[idx]
            elif idx is not None:
                logger.debug("remove: task_id=%s is not custom; ignored", task_id)
            if removable or rolled:
                self._persist_locked()

        if not removable:
            if rolled:
                self._publish()
            return False

        logger.info("Task removed id=%s", task_id)
        self._publish()
        return True

    # ---- internals ----

    def _index_locked(self, task_id: str) -> int | None:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        return None

    def _persist_locked(self) -> None:
        snapshot = list(self._tasks)
        identity = self._identity
        self._writer.submit("tasks", lambda: self._storage.write_tasks(identity, snapshot))

    def _publish(self) -> None:
        with self._lock:
            snapshot = tuple(sort_tasks(self._tasks))
        self._bus.publish(
            Channel.TASKS_CHANGED,
            TasksChanged(tasks=snapshot, has_uncompleted_tasks=any(not t.completed for t in snapshot)),
        )
