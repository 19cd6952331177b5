# src/study_tracker/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the record store and the per-collection stores into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import RecordStore
from ..core.state import AppState
from ..storage.sqlite_store import SqliteRecordStore
from ..subjects.subject_store import SubjectStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, record_store: RecordStore | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Settings and the record store are injectable for tests; by default the local
    SQLite store at settings.store_db_path is used. Must run inside the event loop
    when settings.user_id is set, because loading subscribes right away.
    """
    if settings is None:
        settings = get_settings()

    if record_store is None:
        _ensure_local_dirs(settings)
        record_store = SqliteRecordStore(settings.store_db_path)

    state = AppState(
        settings=settings,
        record_store=record_store,
        task_store=TaskStore(record_store),
        subject_store=SubjectStore(record_store),
    )

    user_id = getattr(settings, "user_id", "") or ""
    if user_id:
        state.switch_user(user_id)
        logger.info("Session started for user=%s", user_id)
    return state
