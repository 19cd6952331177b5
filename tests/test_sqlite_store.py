# tests/test_sqlite_store.py

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from study_tracker.core.errors import RecordStoreError
from study_tracker.storage.push_ids import PushIdGenerator
from study_tracker.storage.sqlite_store import SqliteRecordStore
from study_tracker.tasks.task_store import TaskStore


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def test_push_ids_are_unique_and_ordered() -> None:
    gen = PushIdGenerator()
    ids = [gen() for _ in range(500)]

    assert all(len(i) == 20 for i in ids)
    assert len(set(ids)) == len(ids)
    assert ids == sorted(ids)


@pytest.mark.asyncio
async def test_subscription_gets_initial_and_updated_snapshots(tmp_path: Path) -> None:
    store = SqliteRecordStore(tmp_path / "records.sqlite3")
    snapshots: list[list[dict]] = []
    try:
        await store.create_record("tasks", "b", {"task_id": "b", "user_id": "u1", "title": "B"})
        await store.create_record("tasks", "x", {"task_id": "x", "user_id": "u2", "title": "X"})

        store.subscribe("tasks", "user_id", "u1", snapshots.append, lambda exc: None)
        await wait_for(lambda: len(snapshots) >= 1)
        assert [r["task_id"] for r in snapshots[-1]] == ["b"]

        await store.create_record("tasks", "a", {"task_id": "a", "user_id": "u1", "title": "A"})
        await wait_for(lambda: len(snapshots[-1]) == 2)
        # Ordered by key, like a realtime database orders children.
        assert [r["task_id"] for r in snapshots[-1]] == ["a", "b"]
    finally:
        await store.aclose()


@pytest.mark.asyncio
async def test_field_writes_merge_and_missing_records_fail(tmp_path: Path) -> None:
    store = SqliteRecordStore(tmp_path / "records.sqlite3")
    try:
        await store.create_record("tasks", "t1", {"task_id": "t1", "title": "A", "is_completed": False})
        await store.set_field("tasks", "t1", "is_completed", True)
        await store.update_fields("tasks", "t1", {"title": "B"})

        assert store.get_record("tasks", "t1") == {"task_id": "t1", "title": "B", "is_completed": True}

        with pytest.raises(RecordStoreError):
            await store.set_field("tasks", "missing", "is_completed", True)

        # Deleting a missing record is not an error.
        await store.delete_record("tasks", "missing")
        await store.delete_record("tasks", "t1")
        assert store.get_record("tasks", "t1") is None
        assert store.count_records("tasks") == 0
    finally:
        await store.aclose()


@pytest.mark.asyncio
async def test_unsubscribe_stops_deliveries(tmp_path: Path) -> None:
    store = SqliteRecordStore(tmp_path / "records.sqlite3")
    snapshots: list[list[dict]] = []
    try:
        handle = store.subscribe("tasks", "user_id", "u1", snapshots.append, lambda exc: None)
        await wait_for(lambda: len(snapshots) == 1)
        store.unsubscribe(handle)

        await store.create_record("tasks", "t1", {"task_id": "t1", "user_id": "u1"})
        await asyncio.sleep(0.1)
        assert len(snapshots) == 1
    finally:
        await store.aclose()


@pytest.mark.asyncio
async def test_task_store_end_to_end(tmp_path: Path) -> None:
    records = SqliteRecordStore(tmp_path / "records.sqlite3")
    tasks = TaskStore(records)
    try:
        tasks.load("u1")
        result = await tasks.add("u1", title="Essay", subject_id="S1", due_date="Oct 20, 2026")
        assert result.success and result.record_id

        await wait_for(lambda: tasks.get(result.record_id) is not None)

        toggled = await tasks.toggle_completion(result.record_id, True)
        assert toggled.success
        assert records.get_record("tasks", result.record_id)["is_completed"] is True
        await wait_for(lambda: not tasks.has_override(result.record_id))
        assert tasks.get(result.record_id).is_completed is True

        missing = await tasks.toggle_completion("nope", True)
        assert not missing.success
        assert "Record not found" in missing.message
    finally:
        tasks.close()
        await records.aclose()


@pytest.mark.asyncio
async def test_older_query_result_never_overwrites_newer_snapshot(tmp_path: Path, monkeypatch) -> None:
    store = SqliteRecordStore(tmp_path / "records.sqlite3")
    gates: list[asyncio.Event] = []
    snapshots: list[list[dict]] = []

    async def gated_run(fn, *args):
        # Every live query waits for the test to release it and reports its call order.
        gate = asyncio.Event()
        gates.append(gate)
        call = len(gates)
        await gate.wait()
        return [{"call": call}]

    monkeypatch.setattr(store, "_run", gated_run)
    try:
        store.subscribe("tasks", "user_id", "u1", snapshots.append, lambda exc: None)
        store._notify("tasks")
        await wait_for(lambda: len(gates) == 2)

        gates[1].set()
        await wait_for(lambda: len(snapshots) == 1)
        gates[0].set()
        await asyncio.sleep(0.05)

        assert snapshots == [[{"call": 2}]]
    finally:
        for gate in gates:
            gate.set()
        await store.aclose()
