# src/istiqamah/practice/streak_engine.py

from __future__ import annotations

"""
Streak engine.

Per calendar day the status moves pending -> completed when every critical
task and at least one task are done. A day only becomes failed through the
midnight check, which issues a yellow card for an elapsed day that was never
completed. Three cards inside the trailing week reset the streak.

The engine observes tasks (via the bus or evaluate()) and never mutates them.
"""

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, timedelta, tzinfo

from ..core.bus import ChangeBus, Channel
from ..core.errors import ReadError
from ..core.ports import Identity, PracticeStorage
from .days import Clock, local_date, previous_day, today, utc_now
from .models import DayStatus, Priority, StreakState, Task, YellowCard, YellowCardReason
from .task_store import TasksChanged
from .writer import PersistWriter

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StreakChanged:
    """Payload of Channel.STREAK_CHANGED."""

    state: StreakState
    yellow_cards_this_week_count: int


@dataclass(slots=True, frozen=True)
class StreakPolicy:
    penalty_window_days: int = 7
    reset_threshold: int = 3
    risk_threshold: int = 2
    retention_days: int = 30

    @classmethod
    def from_settings(cls, settings: object) -> StreakPolicy:
        return cls(
            penalty_window_days=int(getattr(settings, "penalty_window_days", 7)),
            reset_threshold=int(getattr(settings, "streak_reset_threshold", 3)),
            risk_threshold=int(getattr(settings, "streak_risk_threshold", 2)),
            retention_days=int(getattr(settings, "yellow_card_retention_days", 30)),
        )


def day_succeeded(tasks: Iterable[Task], day: date | None = None, tz: tzinfo | None = None) -> bool:
    """
    All critical tasks done (vacuously true) and at least one task done.

    With `day` given, only completions dated that day (in tz) count.
    """
    critical_done = True
    any_done = False
    for t in tasks:
        done = t.completed and (
            day is None or (t.completed_at is not None and local_date(t.completed_at, tz) == day)
        )
        if done:
            any_done = True
        elif t.priority == Priority.CRITICAL:
            critical_done = False
    return critical_done and any_done


def cards_in_window(cards: Iterable[YellowCard], day: date, window_days: int) -> list[YellowCard]:
    """Cards dated within [day - window_days, day]."""
    cutoff = day - timedelta(days=window_days)
    return [c for c in cards if cutoff <= c.date <= day]


class StreakEngine:
    def __init__(
        self,
        storage: PracticeStorage,
        bus: ChangeBus,
        *,
        identity: Identity | None = None,
        writer: PersistWriter | None = None,
        policy: StreakPolicy | None = None,
        clock: Clock = utc_now,
        tz: tzinfo | None = None,
    ) -> None:
        self._storage = storage
        self._bus = bus
        self._identity = identity or Identity.anonymous()
        self._writer = writer or PersistWriter(background=False)
        self._policy = policy or StreakPolicy()
        self._clock = clock
        self._tz = tz
        self._state = StreakState()
        self._lock = threading.RLock()
        self._unsubscribe: Callable[[], None] | None = None

    # ---- wiring ----

    def attach(self) -> None:
        """Re-evaluate today whenever the task collection changes."""
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(Channel.TASKS_CHANGED, self._on_tasks_changed)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_tasks_changed(self, payload: TasksChanged) -> None:
        self.evaluate(payload.tasks)

    # ---- queries ----

    @property
    def state(self) -> StreakState:
        with self._lock:
            return self._state.copy()

    @property
    def streak_count(self) -> int:
        with self._lock:
            return self._state.streak_count

    @property
    def today_status(self) -> DayStatus:
        with self._lock:
            return self._state.today_status

    def _today(self) -> date:
        return today(self._clock, self._tz)

    def yellow_cards_this_week(self) -> list[YellowCard]:
        with self._lock:
            return cards_in_window(self._state.yellow_cards, self._today(), self._policy.penalty_window_days)

    def is_streak_at_risk(self) -> bool:
        return len(self.yellow_cards_this_week()) >= self._policy.risk_threshold

    def should_reset_streak(self) -> bool:
        return len(self.yellow_cards_this_week()) >= self._policy.reset_threshold

    def status_for(self, day: date) -> DayStatus:
        """Outcome of a calendar day as far as the stored state can tell."""
        with self._lock:
            if self._state.has_card_for(day):
                return DayStatus.FAILED
            if self._state.last_completed_date == day:
                return DayStatus.COMPLETED
            if day == self._today():
                return self._state.today_status
        return DayStatus.PENDING

    # ---- load ----

    def load(self) -> StreakState:
        """
        Read the streak for the active identity.

        - nothing stored yet -> zero state, persisted
        - read failure       -> zero state in memory only
        - cards older than retention_days are pruned (and persisted)
        """
        day = self._today()
        persist = False

        try:
            stored = self._storage.read_streak(self._identity)
        except ReadError:
            logger.exception("Reading streak failed; starting from zero state in memory.")
            stored = StreakState()
        else:
            if stored is None:
                stored = StreakState()
                persist = True

        cutoff = day - timedelta(days=self._policy.retention_days)
        kept = [c for c in stored.yellow_cards if c.date >= cutoff]
        if len(kept) != len(stored.yellow_cards):
            logger.info("Pruned %d yellow card(s) older than %s", len(stored.yellow_cards) - len(kept), cutoff)
            stored.yellow_cards = kept
            persist = True

        status = DayStatus.COMPLETED if stored.last_completed_date == day else DayStatus.PENDING
        if stored.today_status != status:
            stored.today_status = status

        with self._lock:
            self._state = stored
            if persist:
                self._persist_locked()

        self._publish()
        return self.state

    # ---- transitions ----

    def evaluate(self, tasks: Iterable[Task]) -> DayStatus:
        """Live transition for today; never yields failed."""
        day = self._today()
        succeeded = day_succeeded(tasks, day, self._tz)
        changed = False

        with self._lock:
            st = self._state
            if succeeded:
                if st.today_status != DayStatus.COMPLETED:
                    st.today_status = DayStatus.COMPLETED
                    changed = True
                if st.last_completed_date != day:
                    if st.last_completed_date == previous_day(day) or st.streak_count == 0:
                        st.streak_count += 1
                    else:
                        st.streak_count = 1
                    st.last_completed_date = day
                    changed = True
                    logger.info("Day %s completed; streak=%d", day.isoformat(), st.streak_count)
            elif st.today_status != DayStatus.PENDING:
                st.today_status = DayStatus.PENDING
                changed = True

            status = st.today_status
            if changed:
                self._persist_locked()

        if changed:
            self._publish()
        return status

    def check_midnight(self, day: date | None = None) -> bool:
        """
        Finalize an elapsed day (default: yesterday).

        Issues a no_task_completed card when the day was never completed.
        Idempotent: returns True only when a new card was added.
        """
        elapsed = day or previous_day(self._today())
        with self._lock:
            if self._state.last_completed_date == elapsed:
                return False
            return self.add_yellow_card(elapsed, YellowCardReason.NO_TASK_COMPLETED)

    def add_yellow_card(self, day: date, reason: YellowCardReason = YellowCardReason.NO_TASK_COMPLETED) -> bool:
        """Add one card for `day` (at most one per date) and apply the penalty rule."""
        with self._lock:
            st = self._state
            if st.has_card_for(day):
                return False

            st.yellow_cards.append(YellowCard(date=day, reason=YellowCardReason(reason)))
            st.today_status = DayStatus.FAILED

            recent = cards_in_window(st.yellow_cards, self._today(), self._policy.penalty_window_days)
            logger.info(
                "Yellow card for %s (%s); %d this week",
                day.isoformat(),
                YellowCardReason(reason).value,
                len(recent),
            )
            if len(recent) >= self._policy.reset_threshold:
                logger.info("Yellow card threshold reached; streak reset (was %d)", st.streak_count)
                st.streak_count = 0
                st.last_completed_date = None

            self._persist_locked()

        self._publish()
        return True

    # ---- internals ----

    def _persist_locked(self) -> None:
        snapshot = self._state.copy()
        identity = self._identity
        self._writer.submit("streak", lambda: self._storage.write_streak(identity, snapshot))

    def _publish(self) -> None:
        with self._lock:
            snapshot = self._state.copy()
            n_week = len(cards_in_window(snapshot.yellow_cards, self._today(), self._policy.penalty_window_days))
        self._bus.publish(Channel.STREAK_CHANGED, StreakChanged(state=snapshot, yellow_cards_this_week_count=n_week))
