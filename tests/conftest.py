# tests/conftest.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from study_tracker.core.state import AppState
from study_tracker.subjects.subject_store import SubjectStore
from study_tracker.tasks.task_store import TaskStore

from .fakes import FakeRecordStore, task_record

FIXED_NOW_MS = 1_760_000_000_000


@pytest.fixture()
def record_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture()
def task_store(record_store: FakeRecordStore) -> TaskStore:
    """
    TaskStore for user u1 with T1 (open) and T2 (done) already visible.

    The fake store keeps writes pending until the test settles them.
    """
    record_store.seed("tasks", [task_record("T1"), task_record("T2", is_completed=True)])
    store = TaskStore(record_store, clock=lambda: FIXED_NOW_MS)
    store.load("u1")
    record_store.deliver("tasks")
    return store


@pytest.fixture()
def settings() -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="study-tracker-test",
        user_id="",
        due_date_format="%b %d, %Y",
        default_priority="Imp",
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """AppState over an auto-settling, auto-delivering fake record store."""
    store = FakeRecordStore(auto_settle=True, auto_deliver=True)
    return AppState(
        settings=settings,
        record_store=store,
        task_store=TaskStore(store),
        subject_store=SubjectStore(store),
    )
