# src/study_tracker/tasks/task_models.py

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError

DUE_DATE_FORMAT = "%b %d, %Y"
# e.g. "Oct 19, 2026"; stored as text in the record store.


class Priority(StrEnum):
    """Task priority as shown on the task card."""

    IMPORTANT = "Imp"
    MEDIUM = "Med"
    LOW = "Low"

    @classmethod
    def parse(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.IMPORTANT
        needle = str(raw).strip().lower()
        for p in cls:
            if needle in (p.value.lower(), p.name.lower()):
                return p
        return cls.IMPORTANT


@dataclass(slots=True, frozen=True)
class Task:
    task_id: str
    user_id: str
    created_at: int

    subject_id: str = ""
    subject_name: str = ""
    title: str = ""
    note: str = ""
    due_date: str = ""
    priority: Priority = Priority.IMPORTANT
    is_completed: bool = False

    def validate(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError("Please enter task title")
        if not self.subject_id:
            raise ValidationError("Please select a subject")

    def to_record(self) -> dict[str, Any]:
        rec = asdict(self)
        rec["priority"] = self.priority.value
        return rec

    @classmethod
    def from_record(cls, raw: dict[str, Any]) -> Task:
        return cls(
            task_id=str(raw["task_id"]),
            user_id=str(raw.get("user_id") or ""),
            subject_id=str(raw.get("subject_id") or ""),
            subject_name=str(raw.get("subject_name") or ""),
            title=str(raw.get("title") or ""),
            note=str(raw.get("note") or ""),
            due_date=str(raw.get("due_date") or ""),
            priority=Priority.parse(raw.get("priority")),
            is_completed=bool(raw.get("is_completed", False)),
            created_at=int(raw.get("created_at") or 0),
        )
