# tests/test_task_api.py

from __future__ import annotations

from datetime import date

from study_tracker.subjects.subject_models import Subject
from study_tracker.tasks.task_api import (
    dashboard_summary,
    format_due_date,
    group_tasks,
    is_overdue,
    parse_due_date,
)
from study_tracker.tasks.task_models import Priority, Task

TODAY = date(2026, 10, 19)


def make_task(task_id: str, due: str, *, done: bool = False, subject_id: str = "S1") -> Task:
    return Task(
        task_id=task_id,
        user_id="u1",
        created_at=0,
        subject_id=subject_id,
        title=task_id,
        due_date=due,
        is_completed=done,
    )


def test_due_date_format_and_fallback() -> None:
    assert format_due_date(TODAY) == "Oct 19, 2026"
    assert parse_due_date("Nov 02, 2026", today=TODAY) == date(2026, 11, 2)
    assert parse_due_date("", today=TODAY) == TODAY
    assert parse_due_date("someday", today=TODAY) == TODAY


def test_overdue_only_for_open_tasks_before_today() -> None:
    assert is_overdue(make_task("a", "Oct 18, 2026"), TODAY)
    assert not is_overdue(make_task("b", "Oct 18, 2026", done=True), TODAY)
    assert not is_overdue(make_task("c", "Oct 19, 2026"), TODAY)
    assert not is_overdue(make_task("d", "garbage"), TODAY)


def test_group_tasks_splits_and_orders_by_due_date() -> None:
    tasks = [
        make_task("later", "Oct 25, 2026"),
        make_task("done", "Oct 01, 2026", done=True),
        make_task("now", "Oct 19, 2026"),
        make_task("late", "Oct 10, 2026"),
        make_task("label", "Today"),
    ]

    groups = group_tasks(tasks, TODAY)

    assert [t.task_id for t in groups.today] == ["now", "label"]
    assert [t.task_id for t in groups.upcoming] == ["late", "later"]
    assert [t.task_id for t in groups.completed] == ["done"]


def test_dashboard_summary_counts_and_subject_progress() -> None:
    subjects = [
        Subject(subject_id="S1", user_id="u1", name="Maths", created_at=1),
        Subject(subject_id="S2", user_id="u1", name="Physics", created_at=2),
        Subject(subject_id="S3", user_id="u1", name="Empty", created_at=3),
    ]
    tasks = [
        make_task("a", "Oct 10, 2026", subject_id="S1"),
        make_task("b", "Oct 10, 2026", subject_id="S1", done=True),
        make_task("c", "Oct 30, 2026", subject_id="S2", done=True),
        make_task("orphan", "Oct 30, 2026", subject_id="gone"),
    ]

    summary = dashboard_summary(tasks, subjects, TODAY)

    assert (summary.total, summary.completed, summary.pending, summary.overdue) == (4, 2, 2, 1)
    assert summary.completion_ratio == 0.5
    assert [(p.name, p.completed, p.total) for p in summary.subjects] == [
        ("Maths", 1, 2),
        ("Physics", 1, 1),
        ("Empty", 0, 0),
    ]
    assert summary.subjects[2].ratio == 0.0


def test_dashboard_summary_empty() -> None:
    summary = dashboard_summary([], [], TODAY)
    assert summary.total == 0
    assert summary.completion_ratio == 0.0


def test_priority_parse_and_record_defaults() -> None:
    assert Priority.parse("med") is Priority.MEDIUM
    assert Priority.parse("LOW") is Priority.LOW
    assert Priority.parse("urgent") is Priority.IMPORTANT
    assert Priority.parse(None) is Priority.IMPORTANT

    task = Task.from_record({"task_id": "t1", "priority": "whatever"})
    assert task.priority is Priority.IMPORTANT
    assert task.is_completed is False
    assert task.to_record()["priority"] == "Imp"
