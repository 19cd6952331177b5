# src/study_tracker/subjects/subject_models.py

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from ..core.errors import ValidationError


@dataclass(slots=True, frozen=True)
class Subject:
    subject_id: str
    user_id: str
    created_at: int
    name: str = ""

    def validate(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Please enter subject name")

    def to_record(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, raw: dict[str, Any]) -> Subject:
        return cls(
            subject_id=str(raw["subject_id"]),
            user_id=str(raw.get("user_id") or ""),
            name=str(raw.get("name") or ""),
            created_at=int(raw.get("created_at") or 0),
        )
