# tests/test_subscription.py

from __future__ import annotations

import pytest

from study_tracker.sync.subscription import CollectionSubscription

from .fakes import FakeRecordStore, task_record


class Recorder:
    def __init__(self) -> None:
        self.snapshots: list[list[dict]] = []
        self.errors: list[Exception] = []

    def on_snapshot(self, records: list[dict]) -> None:
        self.snapshots.append(records)

    def on_error(self, exc: Exception) -> None:
        self.errors.append(exc)


def make(store: FakeRecordStore, rec: Recorder) -> CollectionSubscription:
    return CollectionSubscription(store, "tasks", rec.on_snapshot, rec.on_error)


def test_delivers_owner_scoped_full_sets() -> None:
    store = FakeRecordStore()
    store.seed("tasks", [task_record("T1"), task_record("T2", user_id="u2")])
    rec = Recorder()
    sub = make(store, rec)

    sub.start("u1")
    store.deliver("tasks")

    assert sub.active and sub.owner_id == "u1"
    assert [[r["task_id"] for r in snap] for snap in rec.snapshots] == [["T1"]]


def test_empty_match_is_an_empty_snapshot_not_an_error() -> None:
    store = FakeRecordStore()
    rec = Recorder()
    make(store, rec).start("nobody")
    store.deliver("tasks")

    assert rec.snapshots == [[]]
    assert rec.errors == []


def test_same_owner_is_noop_and_new_owner_resubscribes() -> None:
    store = FakeRecordStore()
    rec = Recorder()
    sub = make(store, rec)

    sub.start("u1")
    first_handle = next(iter(store.subscriptions))
    sub.start("u1")
    assert list(store.subscriptions) == [first_handle]

    sub.start("u2")
    assert first_handle not in store.subscriptions
    assert len(store.subscriptions) == 1
    assert sub.owner_id == "u2"


def test_cancel_drops_late_callbacks_from_old_handle() -> None:
    store = FakeRecordStore()
    rec = Recorder()
    sub = make(store, rec)
    sub.start("u1")
    old = next(iter(store.subscriptions.values()))

    sub.cancel()
    # A delivery the backend had already queued before unsubscribe.
    old.on_snapshot([task_record("T1")])
    old.on_error(RuntimeError("late"))

    assert not sub.active
    assert sub.owner_id is None
    assert rec.snapshots == [] and rec.errors == []


def test_errors_are_forwarded() -> None:
    store = FakeRecordStore()
    rec = Recorder()
    make(store, rec).start("u1")

    store.fail_subscriptions("tasks", RuntimeError("Permission denied"))
    assert [str(e) for e in rec.errors] == ["Permission denied"]


def test_owner_is_required() -> None:
    sub = make(FakeRecordStore(), Recorder())
    with pytest.raises(ValueError):
        sub.start("")
