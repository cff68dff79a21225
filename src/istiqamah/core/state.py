# src/istiqamah/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import TYPE_CHECKING, Any

from .bus import ChangeBus
from .ports import Identity, PracticeStorage

if TYPE_CHECKING:
    from ..practice.days import Clock
    from ..practice.progress import WeeklyProgressTracker
    from ..practice.streak_engine import StreakEngine
    from ..practice.task_store import TaskStore
    from ..practice.writer import PersistWriter


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    identity: Identity
    storage: PracticeStorage
    bus: ChangeBus
    writer: PersistWriter
    task_store: TaskStore
    streak_engine: StreakEngine
    progress: WeeklyProgressTracker

    clock: Clock
    tz: tzinfo | None = None

    # Serializes front-end commands against each other (console, timers).
    lock: threading.RLock = field(default_factory=threading.RLock)
