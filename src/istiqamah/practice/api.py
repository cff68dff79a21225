# src/istiqamah/practice/api.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.errors import ValidationError
from ..core.state import AppState
from .models import Category, Priority, Task

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ReminderContext:
    """What the notification scheduler needs to word its reminders."""

    has_uncompleted_tasks: bool
    streak_count: int
    yellow_cards_this_week_count: int


def reminder_context(state: AppState) -> ReminderContext:
    return ReminderContext(
        has_uncompleted_tasks=state.task_store.has_uncompleted_tasks,
        streak_count=state.streak_engine.streak_count,
        yellow_cards_this_week_count=len(state.streak_engine.yellow_cards_this_week()),
    )


def resolve_task(state: AppState, ref: str) -> Task | None:
    """
    Find a task by id or by its 1-based position in display order.
    """
    ref = (ref or "").strip()
    if not ref:
        return None

    task = state.task_store.get(ref)
    if task is not None:
        return task

    if ref.isdigit():
        tasks = state.task_store.tasks
        pos = int(ref)
        if 1 <= pos <= len(tasks):
            return tasks[pos - 1]
    return None


def add_custom_task(state: AppState, title: str, *, category: str, priority: str) -> Task:
    """
    Convenience helper for front-ends that deal in plain strings.
    Raises ValidationError for unknown category/priority names or an empty title.
    """
    try:
        cat = Category(category.strip().lower())
    except ValueError as e:
        raise ValidationError(f"unknown category: {category}") from e
    try:
        pri = Priority(priority.strip().lower())
    except ValueError as e:
        raise ValidationError(f"unknown priority: {priority}") from e

    return state.task_store.add(title, cat, pri)
