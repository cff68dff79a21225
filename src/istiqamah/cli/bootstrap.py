# src/istiqamah/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the storage backend for the session (local vs remote),
- wires stores, engine and progress tracker onto one ChangeBus.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import get_settings
from ..core.bus import ChangeBus
from ..core.ports import Identity
from ..core.state import AppState
from ..practice.days import Clock, resolve_timezone, utc_now
from ..practice.progress import WeeklyProgressTracker
from ..practice.storage import LocalPracticeStorage, select_storage
from ..practice.streak_engine import StreakEngine, StreakPolicy
from ..practice.task_store import TaskStore
from ..practice.writer import PersistWriter

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.local_db_path.parent.mkdir(parents=True, exist_ok=True)


def identity_from_settings(settings) -> Identity:
    user_id = getattr(settings, "user_id", None)
    if not user_id:
        return Identity.anonymous()
    return Identity(user_id=user_id, access_token=getattr(settings, "access_token", None))


def create_initial_state(
    *,
    settings: Any = None,
    identity: Identity | None = None,
    clock: Clock = utc_now,
    transport: httpx.BaseTransport | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().

    Nothing is loaded here; call load_state() once subscribers are in place.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if identity is None:
        identity = identity_from_settings(settings)

    tz = resolve_timezone(getattr(settings, "timezone", ""))
    local = LocalPracticeStorage(settings.local_db_path)
    storage = select_storage(settings, identity, local=local, transport=transport)

    bus = ChangeBus()
    writer = PersistWriter(background=bool(getattr(settings, "write_behind", True)))

    task_store = TaskStore(storage, bus, identity=identity, writer=writer, clock=clock, tz=tz)
    engine = StreakEngine(
        storage,
        bus,
        identity=identity,
        writer=writer,
        policy=StreakPolicy.from_settings(settings),
        clock=clock,
        tz=tz,
    )
    # Weekly progress keeps a local backup in both modes.
    progress = WeeklyProgressTracker(bus, local, clock=clock, tz=tz)

    engine.attach()
    progress.attach()

    logger.info(
        "State ready mode=%s tz=%s",
        "remote" if identity.is_authenticated and storage is not local else "local",
        getattr(settings, "timezone", "") or "local",
    )

    return AppState(
        settings=settings,
        identity=identity,
        storage=storage,
        bus=bus,
        writer=writer,
        task_store=task_store,
        streak_engine=engine,
        progress=progress,
        clock=clock,
        tz=tz,
    )


def load_state(state: AppState) -> None:
    """
    Streak first, then tasks: loading tasks publishes tasks-changed,
    which lets the engine re-evaluate today against the loaded streak.
    """
    state.streak_engine.load()
    state.task_store.load()


def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.streak_engine.detach()
        state.progress.detach()
    except Exception:
        logger.debug("Detaching subscribers failed.", exc_info=True)

    try:
        state.writer.close()
    except Exception:
        logger.exception("Flushing pending writes failed.")

    close = getattr(state.storage, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.debug("Storage close failed.", exc_info=True)
