# src/istiqamah/core/bus.py

from __future__ import annotations

"""
In-process change notifications.

Publication is synchronous and fire-and-forget:
- handlers run in registration order,
- a failing handler is logged and does not stop the others,
- nothing survives a process restart.
"""

import logging
import threading
from collections.abc import Callable
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Channel(StrEnum):
    TASKS_CHANGED = "tasks-changed"
    STREAK_CHANGED = "streak-changed"


class ChangeBus:
    def __init__(self) -> None:
        self._handlers: dict[Channel, list[Handler]] = {ch: [] for ch in Channel}
        self._lock = threading.Lock()

    def subscribe(self, channel: Channel, handler: Handler) -> Callable[[], None]:
        """Register handler; returns a callable that removes it again."""
        ch = Channel(channel)
        with self._lock:
            self._handlers[ch].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                try:
                    self._handlers[ch].remove(handler)
                except ValueError:
                    pass

        return unsubscribe

    def publish(self, channel: Channel, payload: Any = None) -> None:
        ch = Channel(channel)
        with self._lock:
            handlers = list(self._handlers[ch])

        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Subscriber %r failed on %s", handler, ch.value)

    def subscriber_count(self, channel: Channel) -> int:
        with self._lock:
            return len(self._handlers[Channel(channel)])
