# tests/fakes.py

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from istiqamah.core.errors import PersistenceError, ReadError
from istiqamah.core.ports import Identity
from istiqamah.practice.models import StreakState, Task


class FakeClock:
    """
    Settable clock for day-boundary tests.

    Stores call it like utc_now(); tests move it with advance().
    """

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


class MemoryStorage:
    """
    In-memory PracticeStorage (+ KeyValueStore) used for unit tests.

    Failure switches let tests exercise ReadError/PersistenceError paths
    without SQLite or HTTP.
    """

    def __init__(self, *, tasks: list[Task] | None = None, streak: StreakState | None = None) -> None:
        self.tasks = list(tasks) if tasks is not None else None
        self.streak = streak.copy() if streak is not None else None
        self.values: dict[str, Any] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.task_writes = 0
        self.streak_writes = 0

    def read_tasks(self, identity: Identity) -> list[Task] | None:
        if self.fail_reads:
            raise ReadError("boom")
        return list(self.tasks) if self.tasks is not None else None

    def write_tasks(self, identity: Identity, tasks: list[Task]) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        self.tasks = list(tasks)
        self.task_writes += 1

    def read_streak(self, identity: Identity) -> StreakState | None:
        if self.fail_reads:
            raise ReadError("boom")
        return self.streak.copy() if self.streak is not None else None

    def write_streak(self, identity: Identity, state: StreakState) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        self.streak = state.copy()
        self.streak_writes += 1

    def get_value(self, key: str) -> Any | None:
        return self.values.get(key)

    def put_value(self, key: str, value: Any) -> None:
        self.values[key] = value


class Recorder:
    """Bus subscriber that keeps every payload it receives."""

    def __init__(self) -> None:
        self.payloads: list[Any] = []

    def __call__(self, payload: Any) -> None:
        self.payloads.append(payload)

    @property
    def last(self) -> Any:
        return self.payloads[-1]
