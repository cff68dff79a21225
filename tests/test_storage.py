# tests/test_storage.py

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, date, datetime
from types import SimpleNamespace

import httpx
import pytest

from istiqamah.core.bus import ChangeBus
from istiqamah.core.errors import PersistenceError, ReadError
from istiqamah.core.ports import Identity
from istiqamah.practice.models import (
    Category,
    DayStatus,
    Priority,
    StreakState,
    Task,
    YellowCard,
    YellowCardReason,
)
from istiqamah.practice.storage import LocalPracticeStorage, RemotePracticeStorage, select_storage
from istiqamah.practice.task_store import DEFAULT_TASKS, TaskStore

USER = Identity(user_id="u-1", access_token="tok")
ANON = Identity.anonymous()


def _tasks() -> list[Task]:
    return [
        Task(
            id="1",
            title="Subuh on time",
            category=Category.WORSHIP,
            priority=Priority.CRITICAL,
            completed=True,
            completed_at=datetime(2026, 10, 19, 4, 30, tzinfo=UTC),
        ),
        Task(id="2", title="Read Quran", category=Category.KNOWLEDGE, priority=Priority.IMPORTANT, is_custom=True),
    ]


# ---- local ----


def test_local_returns_none_before_first_write(tmp_path) -> None:
    store = LocalPracticeStorage(tmp_path / "p.sqlite3")
    assert store.read_tasks(ANON) is None
    assert store.read_streak(ANON) is None
    assert store.get_value("weekly_progress") is None


def test_local_round_trip(tmp_path) -> None:
    store = LocalPracticeStorage(tmp_path / "p.sqlite3")
    streak = StreakState(
        streak_count=3,
        last_completed_date=date(2026, 10, 18),
        yellow_cards=[YellowCard(date(2026, 10, 15), YellowCardReason.INCOMPLETE_CRITICAL)],
        today_status=DayStatus.COMPLETED,
    )

    store.write_tasks(ANON, _tasks())
    store.write_streak(ANON, streak)

    reopened = LocalPracticeStorage(tmp_path / "p.sqlite3")
    assert reopened.read_tasks(ANON) == _tasks()
    assert reopened.read_streak(ANON) == streak


def test_local_namespaces_are_isolated(tmp_path) -> None:
    db = tmp_path / "p.sqlite3"
    LocalPracticeStorage(db, namespace="a").put_value("k", {"x": 1})
    assert LocalPracticeStorage(db, namespace="b").get_value("k") is None


def test_local_corrupt_value_raises_read_error(tmp_path) -> None:
    db = tmp_path / "p.sqlite3"
    store = LocalPracticeStorage(db)
    conn = sqlite3.connect(str(db))
    conn.execute("INSERT INTO kv(namespace, key, value) VALUES ('istiqamah', 'tasks', '{not json')")
    conn.commit()
    conn.close()

    with pytest.raises(ReadError):
        store.read_tasks(ANON)


def test_local_wrong_shape_raises_read_error(tmp_path) -> None:
    store = LocalPracticeStorage(tmp_path / "p.sqlite3")
    store.put_value("streak", [1, 2])
    with pytest.raises(ReadError):
        store.read_streak(ANON)


def test_local_rejects_unserializable_value(tmp_path) -> None:
    store = LocalPracticeStorage(tmp_path / "p.sqlite3")
    with pytest.raises(PersistenceError):
        store.put_value("bad", {"x": object()})


# ---- remote ----


class FakeRemote:
    """Records requests and answers like a PostgREST endpoint."""

    def __init__(self, rows: dict[str, list[dict]] | None = None, *, status: int = 200) -> None:
        self.rows = rows or {}
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status >= 400:
            return httpx.Response(self.status, json={"message": "nope"})
        table = request.url.path.rsplit("/", 1)[-1]
        if request.method == "GET":
            return httpx.Response(200, json=self.rows.get(table, []))
        return httpx.Response(201 if request.method == "POST" else 204)


def _remote(fake: FakeRemote) -> RemotePracticeStorage:
    return RemotePracticeStorage(
        "https://db.example.test",
        api_key="anon-key",
        transport=httpx.MockTransport(fake),
    )


def test_remote_read_sends_filter_and_auth_headers() -> None:
    fake = FakeRemote(
        {
            "user_tasks": [
                {
                    "id": "1",
                    "user_id": "u-1",
                    "title": "Subuh",
                    "category": "ibadah",
                    "priority": "sangat_penting",
                    "completed": True,
                    "completed_at": "2026-10-19T04:30:00Z",
                    "is_custom": False,
                }
            ]
        }
    )
    tasks = _remote(fake).read_tasks(USER)

    assert tasks is not None and len(tasks) == 1
    assert tasks[0].priority == Priority.CRITICAL
    assert tasks[0].category == Category.WORSHIP
    assert tasks[0].completed_at == datetime(2026, 10, 19, 4, 30, tzinfo=UTC)

    req = fake.requests[0]
    assert req.url.path == "/rest/v1/user_tasks"
    assert req.url.params["user_id"] == "eq.u-1"
    assert req.headers["apikey"] == "anon-key"
    assert req.headers["authorization"] == "Bearer tok"


def test_remote_empty_means_nothing_stored() -> None:
    remote = _remote(FakeRemote())
    assert remote.read_tasks(USER) is None
    assert remote.read_streak(USER) is None


def test_remote_write_tasks_upserts_then_deletes_the_rest() -> None:
    fake = FakeRemote()
    _remote(fake).write_tasks(USER, _tasks())

    post, delete, marker = fake.requests
    assert post.method == "POST"
    assert post.url.params["on_conflict"] == "user_id,id"
    assert "merge-duplicates" in post.headers["prefer"]
    body = json.loads(post.content)
    assert [r["id"] for r in body] == ["1", "2"]
    assert all(r["user_id"] == "u-1" for r in body)

    assert delete.method == "DELETE"
    assert delete.url.params["user_id"] == "eq.u-1"
    assert delete.url.params["id"] == 'not.in.("1","2")'

    assert marker.url.path == "/rest/v1/user_task_lists"
    assert marker.url.params["on_conflict"] == "user_id"
    assert json.loads(marker.content) == [{"user_id": "u-1", "task_count": 2}]


class TableRemote:
    """Keeps PostgREST tables in memory; upserts replace rows matching the conflict columns."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        rows = self.tables.setdefault(table, [])
        params = request.url.params
        owner = params.get("user_id", "").removeprefix("eq.")

        if request.method == "GET":
            return httpx.Response(200, json=[r for r in rows if r["user_id"] == owner])
        if request.method == "POST":
            keys = params["on_conflict"].split(",")
            for new in json.loads(request.content):
                rows[:] = [r for r in rows if any(r[k] != new[k] for k in keys)]
                rows.append(new)
            return httpx.Response(201)
        if request.method == "DELETE":
            raw = params.get("id")
            keep = set(json.loads("[" + raw.removeprefix("not.in.(").removesuffix(")") + "]")) if raw else set()
            rows[:] = [r for r in rows if r["user_id"] != owner or r["id"] in keep]
            return httpx.Response(204)
        return httpx.Response(405)


def test_seed_ids_stay_separate_per_user() -> None:
    server = TableRemote()
    remote = RemotePracticeStorage("https://db.example.test", transport=httpx.MockTransport(server))
    alice = Identity(user_id="alice", access_token="a")
    bob = Identity(user_id="bob", access_token="b")

    remote.write_tasks(alice, _tasks())
    bobs = [Task(id="1", title="Bob's own", category=Category.WORSHIP, priority=Priority.ROUTINE)]
    remote.write_tasks(bob, bobs)

    assert remote.read_tasks(alice) == _tasks()
    assert remote.read_tasks(bob) == bobs


@pytest.fixture(params=["local", "remote"])
def backend(request, tmp_path):
    if request.param == "local":
        return LocalPracticeStorage(tmp_path / "p.sqlite3"), ANON
    remote = RemotePracticeStorage("https://db.example.test", transport=httpx.MockTransport(TableRemote()))
    return remote, USER


def test_emptied_task_list_is_not_reseeded(backend, clock) -> None:
    storage, identity = backend
    store = TaskStore(storage, ChangeBus(), identity=identity, clock=clock, tz=UTC)
    for task in store.load():
        store.remove(task.id)
    assert store.total_count == 0

    again = TaskStore(storage, ChangeBus(), identity=identity, clock=clock, tz=UTC)
    assert again.load() == []


def test_first_use_is_seeded_on_both_backends(backend, clock) -> None:
    storage, identity = backend
    store = TaskStore(storage, ChangeBus(), identity=identity, clock=clock, tz=UTC)
    assert len(store.load()) == len(DEFAULT_TASKS)
    assert len(storage.read_tasks(identity) or []) == len(DEFAULT_TASKS)


def test_remote_write_streak_upserts_on_user_id() -> None:
    fake = FakeRemote()
    _remote(fake).write_streak(USER, StreakState(streak_count=2, last_completed_date=date(2026, 10, 19)))

    (post,) = fake.requests
    assert post.url.path == "/rest/v1/user_streaks"
    assert post.url.params["on_conflict"] == "user_id"
    row = json.loads(post.content)[0]
    assert row["streak_count"] == 2
    assert row["last_completed_date"] == "2026-10-19"


def test_remote_errors_are_wrapped() -> None:
    remote = _remote(FakeRemote(status=500))
    with pytest.raises(ReadError):
        remote.read_streak(USER)
    with pytest.raises(PersistenceError):
        remote.write_tasks(USER, _tasks())
    with pytest.raises(PersistenceError):
        remote.write_streak(USER, StreakState())


def test_remote_needs_an_authenticated_identity() -> None:
    remote = _remote(FakeRemote())
    with pytest.raises(ReadError):
        remote.read_tasks(ANON)
    with pytest.raises(PersistenceError):
        remote.write_streak(ANON, StreakState())


# ---- backend selection ----


def test_select_storage(tmp_path) -> None:
    local = LocalPracticeStorage(tmp_path / "p.sqlite3")
    settings = SimpleNamespace(remote_url="https://db.example.test", remote_api_key=None, local_db_path=tmp_path / "x")
    transport = httpx.MockTransport(FakeRemote())

    assert select_storage(settings, ANON, local=local) is local
    assert isinstance(select_storage(settings, USER, local=local, transport=transport), RemotePracticeStorage)

    settings.remote_url = ""
    assert select_storage(settings, USER, local=local) is local


def test_authenticated_session_does_not_see_or_touch_local_data(tmp_path) -> None:
    local = LocalPracticeStorage(tmp_path / "p.sqlite3")
    local.write_tasks(ANON, _tasks())

    settings = SimpleNamespace(remote_url="https://db.example.test", remote_api_key=None, remote_timeout_seconds=5)
    remote = select_storage(settings, USER, local=local, transport=httpx.MockTransport(FakeRemote()))

    assert remote.read_tasks(USER) is None
    assert [t.id for t in local.read_tasks(ANON) or []] == ["1", "2"]
