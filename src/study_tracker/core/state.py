# src/study_tracker/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..subjects.subject_store import SubjectStore
from ..tasks.task_store import TaskStore
from .ports import RecordStore


@dataclass
class AppState:
    """
    Everything a front-end session needs.

    One TaskStore and one SubjectStore per session: two stores on the same owner and
    collection would apply the same optimistic write twice.
    """

    settings: Any
    record_store: RecordStore
    task_store: TaskStore
    subject_store: SubjectStore

    user_id: str | None = None

    def switch_user(self, user_id: str) -> None:
        """Point both stores at another owner (resubscribes, drops the previous owner's view)."""
        self.user_id = user_id
        self.subject_store.load(user_id)
        self.task_store.load(user_id)

    def close(self) -> None:
        self.task_store.close()
        self.subject_store.close()
