# src/study_tracker/core/errors.py

from __future__ import annotations


class StudyTrackerError(Exception):
    """Base class for errors raised by study_tracker."""


class RecordStoreError(StudyTrackerError):
    """A write or query against the record store failed."""


class ValidationError(StudyTrackerError, ValueError):
    """User input rejected before anything is sent to the record store."""
