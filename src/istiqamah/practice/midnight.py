# src/istiqamah/practice/midnight.py

from __future__ import annotations

"""
Midnight boundary watcher.

A small polling loop that:
- notices when the local calendar day rolls over,
- finalizes the elapsed day (yellow card if it was never completed),
- reloads tasks so the daily reset runs and today starts as pending.

Every step is idempotent, so a tick racing with a task toggle is harmless.
"""

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass
from datetime import date, timedelta, tzinfo
from typing import Any

from .days import Clock, previous_day, today, utc_now
from .streak_engine import StreakEngine
from .task_store import TaskStore

logger = logging.getLogger(__name__)


class MidnightWatcher:
    def __init__(
        self,
        engine: StreakEngine,
        task_store: TaskStore,
        *,
        clock: Clock = utc_now,
        tz: tzinfo | None = None,
    ) -> None:
        self._engine = engine
        self._task_store = task_store
        self._clock = clock
        self._tz = tz
        self._last_day: date | None = None

    @property
    def last_day(self) -> date | None:
        return self._last_day

    def tick(self) -> bool:
        """
        One poll. Returns True when a rollover was handled.

        First tick after startup: yesterday is checked only for users with
        some streak history, so nobody is carded for the day before they
        started using the app.
        """
        current = today(self._clock, self._tz)

        if self._last_day is None:
            self._last_day = current
            if self._engine.state.has_history():
                self._engine.check_midnight(previous_day(current))
            return False

        if current <= self._last_day:
            return False

        logger.info("Day rollover %s -> %s", self._last_day.isoformat(), current.isoformat())
        elapsed = self._last_day
        self._last_day = current

        # Every day since the last tick has ended, not only yesterday.
        while elapsed < current:
            self._engine.check_midnight(elapsed)
            elapsed += timedelta(days=1)
        self._task_store.load()
        return True


async def run_midnight_watcher(
    watcher: MidnightWatcher,
    *,
    interval_seconds: float = 30.0,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    Poll watcher.tick() every interval_seconds.

    To stop the loop, cancel the coroutine or set stop_event.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while stop_event is None or not stop_event.is_set():
        try:
            watcher.tick()
        except Exception:
            logger.exception("Midnight check failed")

        if stop_event is None:
            await asyncio.sleep(sleep_s)
            continue

        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)


@dataclass(slots=True)
class MidnightBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal midnight watcher stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_midnight_watcher_in_background(state: Any) -> MidnightBackgroundRunner | None:
    """
    Run the watcher on a daemon thread with its own event loop
    (the console REPL blocks the main thread on input()).
    """
    watcher = MidnightWatcher(
        state.streak_engine,
        state.task_store,
        clock=getattr(state, "clock", utc_now),
        tz=getattr(state, "tz", None),
    )
    interval = float(getattr(state.settings, "midnight_check_interval_seconds", 30.0))

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(
                run_midnight_watcher(watcher, interval_seconds=interval, stop_event=stop_event)
            )
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="midnight-watcher", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Midnight watcher thread did not initialize properly.")
        return None

    logger.info("Midnight watcher started (interval=%.0fs).", interval)
    return MidnightBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
