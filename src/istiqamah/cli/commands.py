# src/istiqamah/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import timedelta
from typing import cast

from ..core.errors import ValidationError
from ..core.state import AppState
from ..practice.api import add_custom_task, reminder_context, resolve_task
from ..practice.days import today
from ..practice.models import Category, DayStatus, Priority, Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _format_task(pos: int, task: Task) -> str:
    mark = "x" if task.completed else " "
    custom = " *" if task.is_custom else ""
    return f"{pos:>2}. [{mark}] {task.title} ({task.priority.value}, {task.category.value}){custom}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    ctx = reminder_context(state)
    mode = f"synced as {state.identity.user_id}" if state.identity.is_authenticated else "local only"
    tz = getattr(state.settings, "timezone", "") or "system local"
    return (
        "Status:\n"
        f"  Storage: {mode}\n"
        f"  Timezone: {tz}\n"
        f"  Tasks left today: {'yes' if ctx.has_uncompleted_tasks else 'no'}\n"
        f"  Streak: {ctx.streak_count} (yellow cards this week: {ctx.yellow_cards_this_week_count})"
    )


def cmd_tasks(state: AppState, args: list[str]) -> str:
    store = state.task_store
    store.reset_stale()
    tasks = store.tasks
    if not tasks:
        return "No tasks. Add one with /add <priority> <category> <title>."
    lines = [f"Today's tasks ({store.completed_count}/{store.total_count}, {store.progress_value:.0f}%):"]
    lines.extend(_format_task(i, t) for i, t in enumerate(tasks, start=1))
    return "\n".join(lines)


def cmd_done(state: AppState, args: list[str]) -> str:
    """
    /done <n|id>  -> toggle a task (n = position in /tasks)
    """
    if not args:
        return "Usage: /done <n|id>"
    task = resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"
    updated = state.task_store.toggle(task.id)
    if updated is None:
        return f"No such task: {args[0]}"
    verb = "Done" if updated.completed else "Undone"
    return f"{verb}: {updated.title} (today: {state.streak_engine.today_status.value})"


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <priority> <category> <title...>
    """
    if len(args) < 3:
        return (
            "Usage: /add <priority> <category> <title>\n"
            f"  priority: {' | '.join(p.value for p in Priority)}\n"
            f"  category: {' | '.join(c.value for c in Category)}"
        )
    title = " ".join(args[2:])
    try:
        task = add_custom_task(state, title, priority=args[0], category=args[1])
    except ValidationError as e:
        return f"Cannot add task: {e}"
    return f"Added: {task.title}"


def cmd_rm(state: AppState, args: list[str]) -> str:
    """
    /rm <n|id>  -> delete a custom task (default tasks stay)
    """
    if not args:
        return "Usage: /rm <n|id>"
    task = resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"
    if not state.task_store.remove(task.id, custom_only=True):
        return f"Only your own tasks can be removed: {task.title}"
    return f"Removed: {task.title}"


def cmd_streak(state: AppState, args: list[str]) -> str:
    engine = state.streak_engine
    st = engine.state
    cards = engine.yellow_cards_this_week()
    lines = [
        f"Streak: {st.streak_count} day(s)",
        f"  Last completed: {st.last_completed_date.isoformat() if st.last_completed_date else '-'}",
        f"  Today: {st.today_status.value}",
        f"  Yellow cards this week: {len(cards)}",
    ]
    for card in cards:
        lines.append(f"    {card.date.isoformat()} {card.reason.value}")
    if engine.should_reset_streak():
        lines.append("  Too many yellow cards this week: the streak was reset.")
    elif engine.is_streak_at_risk():
        lines.append("  Careful: one more yellow card this week resets the streak.")
    return "\n".join(lines)


def cmd_week(state: AppState, args: list[str]) -> str:
    start = state.progress.week_start
    counts = state.progress.daily_counts
    current = today(state.clock, state.tz)
    lines = [f"Week of {start.isoformat()} ({sum(counts)} completions):"]
    for i, n in enumerate(counts):
        day = start + timedelta(days=i)
        status = state.streak_engine.status_for(day) if day <= current else DayStatus.PENDING
        lines.append(f"  {_WEEKDAYS[i]} {day.isoformat()} {'#' * n:<10} {n} ({status.value})")
    return "\n".join(lines)


def cmd_reload(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    if emit:
        emit("[SYNC] Reloading from storage...")
    state.writer.flush()
    state.streak_engine.load()
    state.task_store.load()
    return f"Reloaded {state.task_store.total_count} task(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show storage mode, timezone and today's summary.")
registry.register("tasks", cmd_tasks, help_text="List today's tasks.", aliases=["ls"])
registry.register("done", cmd_done, help_text="Toggle a task: /done <n|id>.", aliases=["toggle"])
registry.register("add", cmd_add, help_text="Add a task: /add <priority> <category> <title>.")
registry.register("rm", cmd_rm, help_text="Remove one of your tasks: /rm <n|id>.")
registry.register("streak", cmd_streak, help_text="Show streak and yellow cards.")
registry.register("week", cmd_week, help_text="Show this week's completions.")
registry.register("reload", cmd_reload, help_text="Re-read tasks and streak from storage.")
