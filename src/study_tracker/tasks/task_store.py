# src/study_tracker/tasks/task_store.py

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..sync.reconciling_store import ReconcilingStore
from .task_models import Priority, Task


class TaskStore(ReconcilingStore[Task]):
    """
    Visible task list for one user.

    Completion toggles are protected by overrides; title/subject/date edits go through
    update() as plain full-field writes.
    """

    entity_type = Task
    entity_name = "Task"
    collection = "tasks"
    id_attr = "task_id"
    completion_attr = "is_completed"

    def tasks_for_subject(self, subject_id: str) -> list[Task]:
        return [t for t in self._items if t.subject_id == subject_id]

    def _normalize(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(fields)
        if "priority" in out:
            out["priority"] = Priority.parse(out["priority"])
        for key in ("title", "note", "subject_name"):
            if isinstance(out.get(key), str):
                out[key] = out[key].strip()
        return out
