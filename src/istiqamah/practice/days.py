# src/istiqamah/practice/days.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def resolve_timezone(name: str | None) -> tzinfo | None:
    """
    IANA name -> tzinfo. Empty/unknown names return None, which means
    "system local time" for every helper below.
    """
    if not name or not name.strip():
        return None
    if name.strip().upper() in {"UTC", "Z"}:
        return UTC
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; using system local time.", name)
        return None


def local_date(ts: datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of an instant in the user's timezone."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(tz).date()


def today(clock: Clock = utc_now, tz: tzinfo | None = None) -> date:
    return local_date(clock(), tz)


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


def week_start(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())


def parse_date(raw: object) -> date | None:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not raw or not isinstance(raw, str):
        return None
    try:
        return date.fromisoformat(raw.strip()[:10])
    except ValueError:
        return None


def parse_timestamp(raw: object) -> datetime | None:
    """ISO-8601 (or epoch seconds) -> aware UTC datetime."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        ts = raw
    elif isinstance(raw, (int, float)):
        return datetime.fromtimestamp(float(raw), UTC)
    elif isinstance(raw, str):
        s = raw.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(s)
        except ValueError:
            return None
    else:
        return None

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)
