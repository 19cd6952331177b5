# src/study_tracker/subjects/subject_api.py

from __future__ import annotations

import logging

from ..core.results import OpResult
from ..tasks.task_store import TaskStore
from .subject_store import SubjectStore

logger = logging.getLogger(__name__)


async def delete_subject(subjects: SubjectStore, tasks: TaskStore, subject_id: str) -> OpResult:
    """
    Delete a subject unless tasks still reference it.

    Deletion never cascades, so it is refused while the visible task list holds tasks
    of this subject; the user deletes or moves them first.
    """
    linked = tasks.tasks_for_subject(subject_id)
    if linked:
        logger.info("Refusing to delete subject %s: %d task(s) linked", subject_id, len(linked))
        return OpResult.fail(
            f"Subject has {len(linked)} task(s); delete or move them before deleting the subject"
        )
    return await subjects.delete(subject_id)


async def rename_subject(
    subjects: SubjectStore, tasks: TaskStore, subject_id: str, name: str
) -> OpResult:
    """
    Rename a subject and refresh the subject_name copy stored on its tasks.

    Task updates are best-effort: the rename result is returned even if some of them fail.
    """
    result = await subjects.update(subject_id, name=name)
    if not result.success:
        return result

    new_name = name.strip()
    failed = 0
    for task in tasks.tasks_for_subject(subject_id):
        if task.subject_name == new_name:
            continue
        res = await tasks.update(task.task_id, subject_name=new_name)
        if not res.success:
            failed += 1

    if failed:
        logger.warning("Subject %s renamed but %d task(s) kept the old name", subject_id, failed)
    return result
