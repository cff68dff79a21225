# src/istiqamah/practice/writer.py

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait

logger = logging.getLogger(__name__)


class PersistWriter:
    """
    Fire-and-forget persistence.

    - background=True: writes run on one worker thread, in submission order.
    - background=False: writes run inline (deterministic, used by tests).

    A failed write is logged and counted; it is never retried and never
    raised to the caller. Reconciliation is the caller's job (reload).
    """

    def __init__(self, *, background: bool = True) -> None:
        self._background = background
        self._executor: ThreadPoolExecutor | None = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="persist") if background else None
        )
        self._pending: set[Future[None]] = set()
        self._lock = threading.Lock()
        self.failures = 0

    def submit(self, what: str, fn: Callable[[], None]) -> None:
        if self._executor is None:
            self._run(what, fn)
            return

        try:
            fut = self._executor.submit(self._run, what, fn)
        except RuntimeError:
            # Executor already shut down (process teardown): write inline.
            self._run(what, fn)
            return

        with self._lock:
            self._pending.add(fut)
        fut.add_done_callback(self._forget)

    def _forget(self, fut: Future[None]) -> None:
        with self._lock:
            self._pending.discard(fut)

    def _run(self, what: str, fn: Callable[[], None]) -> None:
        try:
            fn()
            logger.debug("Persisted %s", what)
        except Exception:
            with self._lock:
                self.failures += 1
            logger.exception("Persisting %s failed; in-memory state kept.", what)

    def flush(self, timeout: float | None = 10.0) -> bool:
        """Wait for queued writes. Returns False on timeout."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
