# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from istiqamah.cli.bootstrap import create_initial_state, load_state
from istiqamah.core.bus import ChangeBus
from istiqamah.core.state import AppState
from istiqamah.practice.streak_engine import StreakEngine
from istiqamah.practice.task_store import TaskStore
from istiqamah.practice.writer import PersistWriter

from .fakes import FakeClock, MemoryStorage

# Monday morning, UTC.
NOW = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def bus() -> ChangeBus:
    return ChangeBus()


@pytest.fixture()
def writer() -> PersistWriter:
    return PersistWriter(background=False)


@pytest.fixture()
def task_store(storage: MemoryStorage, bus: ChangeBus, writer: PersistWriter, clock: FakeClock) -> TaskStore:
    return TaskStore(storage, bus, writer=writer, clock=clock, tz=UTC)


@pytest.fixture()
def engine(storage: MemoryStorage, bus: ChangeBus, writer: PersistWriter, clock: FakeClock) -> StreakEngine:
    eng = StreakEngine(storage, bus, writer=writer, clock=clock, tz=UTC)
    eng.attach()
    return eng


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="istiqamah-test",
        data_dir=tmp_path,
        local_db_path=tmp_path / "practice.sqlite3",
        timezone="UTC",
        user_id=None,
        access_token=None,
        remote_url="",
        remote_api_key=None,
        remote_timeout_seconds=5.0,
        midnight_check_interval_seconds=1.0,
        yellow_card_retention_days=30,
        penalty_window_days=7,
        streak_reset_threshold=3,
        streak_risk_threshold=2,
        write_behind=False,
    )


@pytest.fixture()
def state(settings: SimpleNamespace, clock: FakeClock) -> AppState:
    """
    AppState wired with the real SQLite local store and a fixed clock.
    """
    st = create_initial_state(settings=settings, clock=clock)
    load_state(st)
    return st
