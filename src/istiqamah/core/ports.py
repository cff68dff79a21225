# src/istiqamah/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the practice engine.

The stores depend on Protocols instead of concrete backends.
This keeps local/remote storage swappable and makes testing easier.
"""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(slots=True, frozen=True)
class Identity:
    """
    Who the session belongs to.

    user_id is None for the anonymous (local-only) mode.
    """

    user_id: str | None = None
    access_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @classmethod
    def anonymous(cls) -> Identity:
        return cls()


class PracticeStorage(Protocol):
    """
    Uniform read/write of Task and Streak records.

    Reads return None when nothing was stored yet and raise ReadError on failure.
    Writes raise PersistenceError on failure.
    """

    def read_tasks(self, identity: Identity) -> list[Any] | None: ...
    def write_tasks(self, identity: Identity, tasks: list[Any]) -> None: ...
    def read_streak(self, identity: Identity) -> Any | None: ...
    def write_streak(self, identity: Identity, state: Any) -> None: ...


class KeyValueStore(Protocol):
    """Small JSON side-store (weekly progress backup)."""

    def get_value(self, key: str) -> Any | None: ...
    def put_value(self, key: str, value: Any) -> None: ...
