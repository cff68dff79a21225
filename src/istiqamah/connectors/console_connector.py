# src/istiqamah/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.bus import Channel
from ..core.state import AppState
from ..practice.models import DayStatus
from ..practice.streak_engine import StreakChanged

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (user=%s).", state.identity.user_id or "anonymous")
    _print_ts("[CONSOLE] Use /tasks to see today's checklist, /help for commands, /exit to quit.\n")

    last_status: dict[str, DayStatus] = {"status": state.streak_engine.today_status}

    def on_streak_changed(payload: StreakChanged) -> None:
        # Announce transitions only; the engine republishes on every mutation.
        status = payload.state.today_status
        if status == last_status["status"]:
            return
        last_status["status"] = status
        if status == DayStatus.COMPLETED:
            _print_ts(f"[STREAK] Today counts! Streak: {payload.state.streak_count}")
        elif status == DayStatus.FAILED:
            _print_ts(f"[STREAK] Yellow card issued ({payload.yellow_cards_this_week_count} this week).")

    unsubscribe = state.bus.subscribe(Channel.STREAK_CHANGED, on_streak_changed)

    def emit(text: str) -> None:
        _print_ts(text)

    try:
        while True:
            try:
                user_input = input(">>> ").strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            if not user_input.startswith("/"):
                _print_ts("Commands start with '/'. Use /help to list them.")
                continue

            try:
                with state.lock:
                    reply = command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is not None:
                _print_ts(reply)
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
