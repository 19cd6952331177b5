# src/study_tracker/core/results.py

from __future__ import annotations

from typing import NamedTuple


class OpResult(NamedTuple):
    """
    Outcome of a store operation, in the (success, message[, id]) shape the UI expects.

    record_id is only set by successful creates.
    """

    success: bool
    message: str
    record_id: str | None = None

    @classmethod
    def ok(cls, message: str, record_id: str | None = None) -> OpResult:
        return cls(True, message, record_id)

    @classmethod
    def fail(cls, message: str) -> OpResult:
        return cls(False, message, None)
