# src/istiqamah/practice/models.py

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from .days import parse_date, parse_timestamp


class Priority(StrEnum):
    """
    Task priority, ordered critical < important < routine.

    Notes:
    - older records use Indonesian names; they are accepted on read.
    """

    CRITICAL = "critical"
    IMPORTANT = "important"
    ROUTINE = "routine"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.ROUTINE
        key = str(raw).strip().lower()
        legacy = _LEGACY_PRIORITY.get(key)
        if legacy is not None:
            return legacy
        try:
            return cls(key)
        except ValueError:
            return cls.ROUTINE


_PRIORITY_RANK = {Priority.CRITICAL: 0, Priority.IMPORTANT: 1, Priority.ROUTINE: 2}
_LEGACY_PRIORITY = {
    "sangat_penting": Priority.CRITICAL,
    "penting": Priority.IMPORTANT,
    "rutin": Priority.ROUTINE,
}


class Category(StrEnum):
    WORSHIP = "worship"
    CHARACTER = "character"
    KNOWLEDGE = "knowledge"
    TRANSFORMATION = "transformation"

    @classmethod
    def from_db(cls, raw: str | None) -> Category:
        if not raw:
            return cls.WORSHIP
        key = str(raw).strip().lower()
        legacy = _LEGACY_CATEGORY.get(key)
        if legacy is not None:
            return legacy
        try:
            return cls(key)
        except ValueError:
            return cls.WORSHIP


_LEGACY_CATEGORY = {
    "ibadah": Category.WORSHIP,
    "akhlak": Category.CHARACTER,
    "ilmu": Category.KNOWLEDGE,
    "hijrah": Category.TRANSFORMATION,
}


class DayStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_db(cls, raw: str | None) -> DayStatus:
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.PENDING


class YellowCardReason(StrEnum):
    NO_TASK_COMPLETED = "no_task_completed"
    INCOMPLETE_CRITICAL = "incomplete_critical"

    @classmethod
    def from_db(cls, raw: str | None) -> YellowCardReason:
        key = str(raw or "").strip().lower()
        if key == "incomplete_sangat_penting":
            return cls.INCOMPLETE_CRITICAL
        try:
            return cls(key)
        except ValueError:
            return cls.NO_TASK_COMPLETED


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    title: str
    category: Category
    priority: Priority
    completed: bool = False
    completed_at: datetime | None = None
    is_custom: bool = False

    def __post_init__(self) -> None:
        # completed <=> completed_at is not None
        if self.completed and self.completed_at is None:
            object.__setattr__(self, "completed", False)
        elif not self.completed and self.completed_at is not None:
            object.__setattr__(self, "completed_at", None)

    def mark_done(self, at: datetime) -> Task:
        return replace(self, completed=True, completed_at=at)

    def mark_undone(self) -> Task:
        return replace(self, completed=False, completed_at=None)


@dataclass(slots=True, frozen=True)
class YellowCard:
    date: date
    reason: YellowCardReason = YellowCardReason.NO_TASK_COMPLETED


@dataclass(slots=True)
class StreakState:
    streak_count: int = 0
    last_completed_date: date | None = None
    yellow_cards: list[YellowCard] = field(default_factory=list)
    today_status: DayStatus = DayStatus.PENDING

    def copy(self) -> StreakState:
        return StreakState(
            streak_count=self.streak_count,
            last_completed_date=self.last_completed_date,
            yellow_cards=list(self.yellow_cards),
            today_status=self.today_status,
        )

    def has_card_for(self, day: date) -> bool:
        return any(card.date == day for card in self.yellow_cards)

    def has_history(self) -> bool:
        return bool(self.streak_count or self.last_completed_date or self.yellow_cards)


# ---- record (de)serialization, shared by local and remote storage ----


def task_to_record(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "category": task.category.value,
        "priority": task.priority.value,
        "completed": bool(task.completed),
        "completed_at": task.completed_at.isoformat() if task.completed_at else None,
        "is_custom": bool(task.is_custom),
    }


def task_from_record(rec: dict[str, Any]) -> Task | None:
    """Decode one stored task; rows without an id are skipped (None)."""
    raw_id = rec.get("id")
    if raw_id is None or str(raw_id).strip() == "":
        return None
    return Task(
        id=str(raw_id),
        title=str(rec.get("title") or "").strip(),
        category=Category.from_db(rec.get("category")),
        priority=Priority.from_db(rec.get("priority")),
        completed=bool(rec.get("completed", False)),
        completed_at=parse_timestamp(rec.get("completed_at", rec.get("completedAt"))),
        is_custom=bool(rec.get("is_custom", rec.get("isCustom", False))),
    )


def tasks_from_records(rows: list[Any]) -> list[Task]:
    out: list[Task] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        task = task_from_record(row)
        if task is not None:
            out.append(task)
    return out


def streak_to_record(state: StreakState) -> dict[str, Any]:
    return {
        "streak_count": int(state.streak_count),
        "last_completed_date": (
            state.last_completed_date.isoformat() if state.last_completed_date else None
        ),
        "yellow_cards": [
            {"date": card.date.isoformat(), "reason": card.reason.value}
            for card in state.yellow_cards
        ],
        "today_status": state.today_status.value,
    }


def streak_from_record(rec: dict[str, Any]) -> StreakState:
    cards: list[YellowCard] = []
    seen: set[date] = set()
    raw_cards = rec.get("yellow_cards")
    if not isinstance(raw_cards, list):
        # Older rows only kept a list of dates.
        raw_cards = [{"date": d} for d in (rec.get("yellow_card_dates") or [])]

    for raw in raw_cards:
        if not isinstance(raw, dict):
            continue
        day = parse_date(raw.get("date"))
        if day is None or day in seen:
            continue
        seen.add(day)
        cards.append(YellowCard(date=day, reason=YellowCardReason.from_db(raw.get("reason"))))

    try:
        count = max(0, int(rec.get("streak_count") or 0))
    except (TypeError, ValueError):
        count = 0

    return StreakState(
        streak_count=count,
        last_completed_date=parse_date(rec.get("last_completed_date")),
        yellow_cards=cards,
        today_status=DayStatus.from_db(rec.get("today_status")),
    )
