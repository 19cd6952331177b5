# src/study_tracker/subjects/subject_store.py

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..sync.reconciling_store import ReconcilingStore
from .subject_models import Subject


class SubjectStore(ReconcilingStore[Subject]):
    """Visible subject list for one user. Subjects have no completion flag, hence no overrides."""

    entity_type = Subject
    entity_name = "Subject"
    collection = "subjects"
    id_attr = "subject_id"

    def _normalize(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(fields)
        if isinstance(out.get("name"), str):
            out["name"] = out["name"].strip()
        return out
