# src/study_tracker/tasks/task_api.py

"""
Read-side helpers for the task list and the home dashboard.

Everything here is pure: it works on plain Task/Subject lists (usually TaskStore.items)
and never talks to the record store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime

from ..subjects.subject_models import Subject
from .task_models import DUE_DATE_FORMAT, Task

logger = logging.getLogger(__name__)


def format_due_date(day: date, fmt: str = DUE_DATE_FORMAT) -> str:
    return day.strftime(fmt)


def parse_due_date(text: str | None, *, today: date | None = None, fmt: str = DUE_DATE_FORMAT) -> date:
    """Parse a stored due date. Empty or unparseable values count as due today."""
    today = today or date.today()
    if not text:
        return today
    try:
        return datetime.strptime(text.strip(), fmt).date()
    except ValueError:
        logger.debug("Unparseable due date %r; treating as today", text)
        return today


def is_due_today(task: Task, today: date, fmt: str = DUE_DATE_FORMAT) -> bool:
    return task.due_date == format_due_date(today, fmt) or "Today" in task.due_date


def is_overdue(task: Task, today: date, fmt: str = DUE_DATE_FORMAT) -> bool:
    if task.is_completed:
        return False
    return parse_due_date(task.due_date, today=today, fmt=fmt) < today


@dataclass(slots=True, frozen=True)
class TaskGroups:
    today: list[Task]
    upcoming: list[Task]
    completed: list[Task]


def group_tasks(tasks: Iterable[Task], today: date | None = None, fmt: str = DUE_DATE_FORMAT) -> TaskGroups:
    """
    Split tasks the way the task screen lists them.

    Open tasks first, each group ordered by due date:
    - today: open and due today
    - upcoming: every other open task (overdue ones included)
    - completed
    """
    today = today or date.today()
    ordered = sorted(
        tasks, key=lambda t: (t.is_completed, parse_due_date(t.due_date, today=today, fmt=fmt))
    )

    due_today: list[Task] = []
    upcoming: list[Task] = []
    completed: list[Task] = []
    for t in ordered:
        if t.is_completed:
            completed.append(t)
        elif is_due_today(t, today, fmt):
            due_today.append(t)
        else:
            upcoming.append(t)
    return TaskGroups(today=due_today, upcoming=upcoming, completed=completed)


@dataclass(slots=True, frozen=True)
class SubjectProgress:
    subject_id: str
    name: str
    total: int
    completed: int

    @property
    def ratio(self) -> float:
        return self.completed / self.total if self.total else 0.0


@dataclass(slots=True, frozen=True)
class DashboardSummary:
    total: int
    completed: int
    pending: int
    overdue: int
    subjects: list[SubjectProgress] = field(default_factory=list)

    @property
    def completion_ratio(self) -> float:
        return self.completed / self.total if self.total else 0.0


def dashboard_summary(
    tasks: Iterable[Task],
    subjects: Iterable[Subject],
    today: date | None = None,
    fmt: str = DUE_DATE_FORMAT,
) -> DashboardSummary:
    """Counts for the home screen plus per-subject progress (subjects without tasks included)."""
    today = today or date.today()
    task_list = list(tasks)

    done = sum(1 for t in task_list if t.is_completed)
    overdue = sum(1 for t in task_list if is_overdue(t, today, fmt))

    per_subject: list[SubjectProgress] = []
    for s in sorted(subjects, key=lambda s: s.created_at):
        mine = [t for t in task_list if t.subject_id == s.subject_id]
        per_subject.append(
            SubjectProgress(
                subject_id=s.subject_id,
                name=s.name,
                total=len(mine),
                completed=sum(1 for t in mine if t.is_completed),
            )
        )

    return DashboardSummary(
        total=len(task_list),
        completed=done,
        pending=len(task_list) - done,
        overdue=overdue,
        subjects=per_subject,
    )
