# tests/test_config.py

from __future__ import annotations

import os
from pathlib import Path

import pytest

from istiqamah.config import ENV_PREFIX, Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for key in list(os.environ):
        if key.startswith(f"{ENV_PREFIX}_"):
            monkeypatch.delenv(key, raising=False)


def test_defaults_need_no_configuration() -> None:
    s = Settings.from_env()

    assert s.app_name == "istiqamah"
    assert s.user_id is None
    assert s.remote_url == ""
    assert s.timezone == ""
    assert s.local_db_path == Path(".local/istiqamah") / "practice.sqlite3"
    assert s.penalty_window_days == 7
    assert s.streak_reset_threshold == 3
    assert s.streak_risk_threshold == 2
    assert s.yellow_card_retention_days == 30
    assert s.write_behind is True


def test_env_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("ISTIQAMAH_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("ISTIQAMAH_TIMEZONE", "Asia/Jakarta")
    monkeypatch.setenv("ISTIQAMAH_USER_ID", " u-42 ")
    monkeypatch.setenv("ISTIQAMAH_REMOTE_URL", "https://db.example.test")
    monkeypatch.setenv("ISTIQAMAH_WRITE_BEHIND", "off")
    monkeypatch.setenv("ISTIQAMAH_STREAK_RESET_THRESHOLD", "4")

    s = Settings.from_env()

    assert s.data_dir == tmp_path
    assert s.local_db_path == tmp_path / "practice.sqlite3"
    assert s.timezone == "Asia/Jakarta"
    assert s.user_id == "u-42"
    assert s.remote_url == "https://db.example.test"
    assert s.write_behind is False
    assert s.streak_reset_threshold == 4


def test_invalid_numbers_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("ISTIQAMAH_PENALTY_WINDOW_DAYS", "seven")
    monkeypatch.setenv("ISTIQAMAH_YELLOW_CARD_RETENTION_DAYS", "0")
    monkeypatch.setenv("ISTIQAMAH_MIDNIGHT_CHECK_INTERVAL_SECONDS", "0.1")

    s = Settings.from_env()

    assert s.penalty_window_days == 7
    assert s.yellow_card_retention_days == 30
    assert s.midnight_check_interval_seconds == 30.0
