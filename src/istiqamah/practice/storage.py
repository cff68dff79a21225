# src/istiqamah/practice/storage.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

import httpx

from ..core.errors import PersistenceError, ReadError
from ..core.ports import Identity, PracticeStorage
from .models import (
    StreakState,
    Task,
    streak_from_record,
    streak_to_record,
    task_to_record,
    tasks_from_records,
)

logger = logging.getLogger(__name__)

LOCAL_NAMESPACE = "istiqamah"
TASKS_KEY = "tasks"
STREAK_KEY = "streak"


class LocalPracticeStorage:
    """
    SQLite key-value store for the anonymous (offline) mode.

    Every value lives under a fixed namespace as a JSON document:
    - "tasks"  -> list of task records
    - "streak" -> streak record
    - anything else (e.g. "weekly_progress") via get_value/put_value

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "practice.sqlite3", *, namespace: str = LOCAL_NAMESPACE) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._namespace = namespace
        self._ensure_schema()
        logger.info("LocalPracticeStorage ready db=%s namespace=%s", self._db_path, namespace)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get_value(self, key: str) -> Any | None:
        try:
            conn = self._get_conn()
            try:
                row = conn.execute(
                    "SELECT value FROM kv WHERE namespace = ? AND key = ?",
                    (self._namespace, key),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ReadError(f"local read failed key={key}: {e}") from e

        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except ValueError as e:
            raise ReadError(f"corrupt local value key={key}") from e

    def put_value(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"value for key={key} is not JSON-serializable") from e

        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO kv(namespace, key, value) VALUES (?, ?, ?)
                    ON CONFLICT(namespace, key) DO UPDATE SET value = excluded.value
                    """,
                    (self._namespace, key, payload),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"local write failed key={key}: {e}") from e

    # ---- PracticeStorage ----

    def read_tasks(self, identity: Identity) -> list[Task] | None:
        raw = self.get_value(TASKS_KEY)
        if raw is None:
            return None
        if not isinstance(raw, list):
            raise ReadError("stored tasks are not a list")
        return tasks_from_records(raw)

    def write_tasks(self, identity: Identity, tasks: list[Task]) -> None:
        self.put_value(TASKS_KEY, [task_to_record(t) for t in tasks])

    def read_streak(self, identity: Identity) -> StreakState | None:
        raw = self.get_value(STREAK_KEY)
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise ReadError("stored streak is not an object")
        return streak_from_record(raw)

    def write_streak(self, identity: Identity, state: StreakState) -> None:
        self.put_value(STREAK_KEY, streak_to_record(state))


class RemotePracticeStorage:
    """
    Remote record store (PostgREST-style HTTP API) for authenticated users.

    Tables:
    - user_tasks      (one row per task, key: (user_id, id))
    - user_task_lists (one row per user, key: user_id; marks a written collection)
    - user_streaks    (one row per user, key: user_id)

    Task ids are only unique within one user's collection (the seed ids
    repeat for everyone), so every task write targets the composite key.
    The task-list row tells "emptied by the user" apart from "never seeded".

    Rows carry the same logical schema as the local store plus user_id.
    """

    TASKS_TABLE = "user_tasks"
    TASK_LIST_TABLE = "user_task_lists"
    STREAK_TABLE = "user_streaks"

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise ValueError("base_url is required")
        self._api_key = api_key
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + "/rest/v1",
            timeout=max(1.0, float(timeout_seconds)),
            transport=transport,
        )
        logger.info("RemotePracticeStorage ready url=%s", base_url)

    def close(self) -> None:
        self._client.close()

    # ---- low-level helpers ----

    def _headers(self, identity: Identity, *, prefer: str | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
        token = identity.access_token or self._api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _user_id(identity: Identity) -> str:
        if not identity.user_id:
            raise ValueError("remote storage needs an authenticated identity")
        return identity.user_id

    def _select(self, table: str, identity: Identity) -> list[Any]:
        try:
            uid = self._user_id(identity)
            resp = self._client.get(
                f"/{table}",
                params={"user_id": f"eq.{uid}", "select": "*"},
                headers=self._headers(identity),
            )
            resp.raise_for_status()
            rows = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ReadError(f"remote read failed table={table}: {e}") from e

        if not isinstance(rows, list):
            raise ReadError(f"unexpected payload from table={table}")
        return rows

    def _upsert(self, table: str, identity: Identity, rows: list[dict[str, Any]], *, on_conflict: str) -> None:
        if not rows:
            return
        resp = self._client.post(
            f"/{table}",
            params={"on_conflict": on_conflict},
            json=rows,
            headers=self._headers(identity, prefer="resolution=merge-duplicates,return=minimal"),
        )
        resp.raise_for_status()

    # ---- PracticeStorage ----

    def read_tasks(self, identity: Identity) -> list[Task] | None:
        rows = self._select(self.TASKS_TABLE, identity)
        if rows:
            return tasks_from_records(rows)
        if self._select(self.TASK_LIST_TABLE, identity):
            return []
        return None

    def write_tasks(self, identity: Identity, tasks: list[Task]) -> None:
        try:
            uid = self._user_id(identity)
            rows = [{**task_to_record(t), "user_id": uid} for t in tasks]
            self._upsert(self.TASKS_TABLE, identity, rows, on_conflict="user_id,id")

            # Drop rows that are no longer part of the collection.
            params = {"user_id": f"eq.{uid}"}
            if tasks:
                kept = ",".join(json.dumps(t.id) for t in tasks)
                params["id"] = f"not.in.({kept})"
            resp = self._client.delete(
                f"/{self.TASKS_TABLE}",
                params=params,
                headers=self._headers(identity, prefer="return=minimal"),
            )
            resp.raise_for_status()

            self._upsert(
                self.TASK_LIST_TABLE,
                identity,
                [{"user_id": uid, "task_count": len(tasks)}],
                on_conflict="user_id",
            )
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"remote task write failed: {e}") from e

    def read_streak(self, identity: Identity) -> StreakState | None:
        rows = self._select(self.STREAK_TABLE, identity)
        if not rows:
            return None
        first = rows[0]
        if not isinstance(first, dict):
            raise ReadError("unexpected streak row")
        return streak_from_record(first)

    def write_streak(self, identity: Identity, state: StreakState) -> None:
        try:
            uid = self._user_id(identity)
            row = {**streak_to_record(state), "user_id": uid}
            self._upsert(self.STREAK_TABLE, identity, [row], on_conflict="user_id")
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"remote streak write failed: {e}") from e


def select_storage(
    settings: Any,
    identity: Identity,
    *,
    local: LocalPracticeStorage | None = None,
    transport: httpx.BaseTransport | None = None,
) -> PracticeStorage:
    """
    Pick the backend once per session.

    Authenticated identity + configured remote URL -> RemotePracticeStorage.
    Anything else -> LocalPracticeStorage.

    Local data is never migrated into the remote store.
    """
    remote_url = str(getattr(settings, "remote_url", "") or "").strip()
    if identity.is_authenticated and remote_url:
        logger.info("Using remote storage for user_id=%s", identity.user_id)
        return RemotePracticeStorage(
            remote_url,
            api_key=getattr(settings, "remote_api_key", None),
            timeout_seconds=float(getattr(settings, "remote_timeout_seconds", 10.0)),
            transport=transport,
        )

    if identity.is_authenticated:
        logger.warning("Authenticated identity but no remote URL configured; using local storage.")
    if local is not None:
        return local
    return LocalPracticeStorage(settings.local_db_path)
