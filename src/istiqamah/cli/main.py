# src/istiqamah/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads tasks and streak, then starts:
- the midnight watcher in a background thread,
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state, load_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from ..practice.midnight import MidnightBackgroundRunner, start_midnight_watcher_in_background

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    load_state(state)

    watcher: MidnightBackgroundRunner | None = start_midnight_watcher_in_background(state)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
        if not settings.console_enabled:
            signal.signal(signal.SIGINT, _handle_signal)
    except (ValueError, OSError):
        # Some platforms may not support SIGTERM, etc.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running the midnight watcher only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        if watcher is not None:
            watcher.stop()
            watcher.join(timeout=10.0)

        shutdown_state(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
