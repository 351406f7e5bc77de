"""
Tests for record stores and the version guard.
"""
import pytest

from pkg.taskboard.errors import HasActivitiesError, StaleWriteError
from pkg.taskboard.guard import Change, VersionGuard
from pkg.taskboard.store import ACTIVITIES, PROJECTS, MemoryStore, SqliteStore, Write, open_store


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Store Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_store_replace_and_get(store):
    store.replace([Write(PROJECTS, "p1", {"id": "p1", "name": "Board", "version": 1})])
    assert store.get(PROJECTS, "p1")["name"] == "Board"
    assert store.get(PROJECTS, "missing") is None


def test_store_scan_by_project(store):
    store.replace([
        Write(ACTIVITIES, "a1", {"id": "a1", "projectId": "p1"}),
        Write(ACTIVITIES, "a2", {"id": "a2", "projectId": "p2"}),
        Write(ACTIVITIES, "a3", {"id": "a3", "projectId": "p1"}),
    ])
    assert {a["id"] for a in store.scan(ACTIVITIES, project_id="p1")} == {"a1", "a3"}
    assert len(store.scan(ACTIVITIES)) == 3


def test_store_delete(store):
    store.replace([Write(ACTIVITIES, "a1", {"id": "a1", "projectId": "p1"})])
    store.replace([Write(ACTIVITIES, "a1", None)])
    assert store.get(ACTIVITIES, "a1") is None


def test_store_returns_copies(store):
    store.replace([Write(PROJECTS, "p1", {"id": "p1", "members": ["1"]})])
    store.get(PROJECTS, "p1")["members"].append("2")
    assert store.get(PROJECTS, "p1")["members"] == ["1"]


def test_sqlite_store_persists(tmp_path):
    db_path = str(tmp_path / "board.db")
    SqliteStore(db_path).replace([Write(PROJECTS, "p1", {"id": "p1", "name": "Board"})])
    assert SqliteStore(db_path).get(PROJECTS, "p1") == {"id": "p1", "name": "Board"}


def test_open_store(tmp_path):
    assert isinstance(open_store(""), MemoryStore)
    assert isinstance(open_store(str(tmp_path / "b.db")), SqliteStore)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Version Guard Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_commit_assigns_versions(store):
    guard = VersionGuard(store)
    created = guard.commit([Change.create(PROJECTS, {"id": "p1", "name": "Board"})])
    assert created[0]["version"] == 1

    updated = guard.commit([Change.update(PROJECTS, {"id": "p1", "name": "Renamed"}, 1)])
    assert updated[0]["version"] == 2
    assert store.get(PROJECTS, "p1")["name"] == "Renamed"


def test_stale_commit_is_rejected(store):
    """Two writers read version 1; the second commit loses"""
    guard = VersionGuard(store)
    guard.commit([Change.create(PROJECTS, {"id": "p1", "name": "Board"})])
    guard.commit([Change.update(PROJECTS, {"id": "p1", "name": "First"}, 1)])
    with pytest.raises(StaleWriteError):
        guard.commit([Change.update(PROJECTS, {"id": "p1", "name": "Second"}, 1)])
    assert store.get(PROJECTS, "p1")["name"] == "First"


def test_create_existing_record_is_stale(store):
    guard = VersionGuard(store)
    guard.commit([Change.create(PROJECTS, {"id": "p1"})])
    with pytest.raises(StaleWriteError):
        guard.commit([Change.create(PROJECTS, {"id": "p1"})])


def test_stale_message_names_the_record(store):
    guard = VersionGuard(store)
    guard.commit([Change.create(ACTIVITIES, {"id": "a1", "projectId": "p1"})])
    with pytest.raises(StaleWriteError) as exc:
        guard.commit([Change.update(ACTIVITIES, {"id": "a1", "projectId": "p1"}, 7)])
    assert str(exc.value).startswith("Activity a1 was modified")
    with pytest.raises(StaleWriteError) as exc:
        guard.commit([Change.delete(PROJECTS, "p9", 3)])
    assert str(exc.value).startswith("Project p9 was modified")


def test_batch_is_all_or_nothing(store):
    guard = VersionGuard(store)
    guard.commit([Change.create(PROJECTS, {"id": "p1", "name": "Board"})])
    with pytest.raises(StaleWriteError):
        guard.commit([
            Change.create(ACTIVITIES, {"id": "a1", "projectId": "p1"}),
            Change.update(PROJECTS, {"id": "p1", "name": "Renamed"}, 7),
        ])
    assert store.get(ACTIVITIES, "a1") is None
    assert store.get(PROJECTS, "p1")["name"] == "Board"


def test_failing_check_blocks_commit(store):
    guard = VersionGuard(store)

    def refuse(_store):
        raise HasActivitiesError("busy")

    with pytest.raises(HasActivitiesError):
        guard.commit([Change.create(PROJECTS, {"id": "p1"})], checks=[refuse])
    assert store.get(PROJECTS, "p1") is None


def test_retrying_repeats_after_stale_write():
    guard = VersionGuard(MemoryStore(), max_retries=3)
    calls = []

    def operation():
        calls.append(1)
        if len(calls) == 1:
            raise StaleWriteError("moved on")
        return "done"

    assert guard.retrying(operation) == "done"
    assert len(calls) == 2


def test_retrying_gives_up_after_bound():
    guard = VersionGuard(MemoryStore(), max_retries=3)
    calls = []

    def operation():
        calls.append(1)
        raise StaleWriteError("moved on")

    with pytest.raises(StaleWriteError):
        guard.retrying(operation)
    assert len(calls) == 3


def test_guard_requires_positive_retries():
    with pytest.raises(ValueError):
        VersionGuard(MemoryStore(), max_retries=0)
