# src/istiqamah/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Anonymous mode works with zero configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "ISTIQAMAH"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_float(name: str, default: float, *, minimum: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_opt(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    local_db_path: Path

    # ---- Calendar ----
    timezone: str  # IANA name; empty => system local time

    # ---- Identity / remote store ----
    user_id: str | None
    access_token: str | None
    remote_url: str
    remote_api_key: str | None
    remote_timeout_seconds: float

    # ---- Engine tuning ----
    midnight_check_interval_seconds: float
    yellow_card_retention_days: int
    penalty_window_days: int
    streak_reset_threshold: int
    streak_risk_threshold: int
    write_behind: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "istiqamah")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/istiqamah"))
        local_db_path = _env_path(_k("LOCAL_DB_PATH"), data_dir / "practice.sqlite3")

        timezone = _env(_k("TIMEZONE"), "").strip()

        user_id = _env_opt(_k("USER_ID"))
        access_token = _env_opt(_k("ACCESS_TOKEN"))
        remote_url = _env(_k("REMOTE_URL"), "").strip()
        remote_api_key = _env_opt(_k("REMOTE_API_KEY"))
        remote_timeout_seconds = _env_float(_k("REMOTE_TIMEOUT_SECONDS"), 10.0, minimum=1.0)

        midnight_check_interval_seconds = _env_float(
            _k("MIDNIGHT_CHECK_INTERVAL_SECONDS"), 30.0, minimum=1.0
        )
        yellow_card_retention_days = _env_int(_k("YELLOW_CARD_RETENTION_DAYS"), 30, minimum=1)
        penalty_window_days = _env_int(_k("PENALTY_WINDOW_DAYS"), 7, minimum=1)
        streak_reset_threshold = _env_int(_k("STREAK_RESET_THRESHOLD"), 3, minimum=1)
        streak_risk_threshold = _env_int(_k("STREAK_RISK_THRESHOLD"), 2, minimum=1)
        write_behind = _env_bool(_k("WRITE_BEHIND"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            local_db_path=local_db_path,
            timezone=timezone,
            user_id=user_id,
            access_token=access_token,
            remote_url=remote_url,
            remote_api_key=remote_api_key,
            remote_timeout_seconds=remote_timeout_seconds,
            midnight_check_interval_seconds=midnight_check_interval_seconds,
            yellow_card_retention_days=yellow_card_retention_days,
            penalty_window_days=penalty_window_days,
            streak_reset_threshold=streak_reset_threshold,
            streak_risk_threshold=streak_risk_threshold,
            write_behind=write_behind,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
