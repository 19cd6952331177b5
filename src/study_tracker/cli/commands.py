# src/study_tracker/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, datetime, timedelta
from typing import Any, TypeVar, cast

from ..core.state import AppState
from ..subjects.subject_api import delete_subject, rename_subject
from ..subjects.subject_models import Subject
from ..tasks.task_api import dashboard_summary, format_due_date, group_tasks, is_overdue
from ..tasks.task_models import Task

CommandEmitter = Callable[[str], None]
CommandReply = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandReply]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandReply]
CommandHandler = CommandHandler2 | CommandHandler3

E = TypeVar("E")

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as exc:
            return f"Could not parse command: {exc}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            reply = cast(CommandHandler3, handler)(state, args, emit)
        else:
            reply = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(reply):
            reply = await reply
        return cast(str, reply)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----

def _short(record_id: str) -> str:
    # Push ids share their timestamp prefix; the random tail is what tells them apart.
    return record_id[-6:]


def _resolve(items: Sequence[E], key: Callable[[E], str], token: str) -> E | None:
    """Find one item by full id or unique id suffix."""
    exact = [i for i in items if key(i) == token]
    if exact:
        return exact[0]
    matches = [i for i in items if key(i).endswith(token)]
    return matches[0] if len(matches) == 1 else None


def _resolve_subject(state: AppState, token: str) -> Subject | None:
    subjects = state.subject_store.items
    found = _resolve(subjects, lambda s: s.subject_id, token)
    if found is not None:
        return found
    by_name = [s for s in subjects if s.name.lower() == token.lower()]
    return by_name[0] if len(by_name) == 1 else None


def _resolve_task(state: AppState, token: str) -> Task | None:
    return _resolve(state.task_store.items, lambda t: t.task_id, token)


def _split_options(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Split ["a", "b", "due=Oct 20, 2026"] into positionals and key=value options."""
    positional: list[str] = []
    options: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key.isidentifier():
            options[key.lower()] = value
        else:
            positional.append(a)
    return positional, options


def _parse_due(raw: str, fmt: str, today: date | None = None) -> str:
    today = today or date.today()
    lowered = raw.strip().lower()
    if lowered in ("", "today"):
        return format_due_date(today, fmt)
    if lowered == "tomorrow":
        return format_due_date(today + timedelta(days=1), fmt)
    # Validate but keep the canonical spelling.
    return format_due_date(datetime.strptime(raw.strip(), fmt).date(), fmt)


def _due_format(state: AppState) -> str:
    return str(getattr(state.settings, "due_date_format", "%b %d, %Y"))


def _need_user(state: AppState) -> str | None:
    if not state.user_id:
        return "No user selected. Use /user <id> first."
    return None


def _task_line(task: Task, today: date, fmt: str) -> str:
    mark = "[x]" if task.is_completed else "[ ]"
    flags = " OVERDUE" if is_overdue(task, today, fmt) else ""
    subject = f" ({task.subject_name})" if task.subject_name else ""
    return f"  {mark} {_short(task.task_id)} {task.title}{subject} - {task.due_date} [{task.priority.value}]{flags}"


# ---- commands ----

def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    tasks = state.task_store
    lines = [
        "Status:",
        f"  user: {state.user_id or '-'}",
        f"  subjects: {len(state.subject_store.items)}",
        f"  tasks: {len(tasks.items)}",
        f"  pending toggles: {len(tasks.pending_overrides)}",
    ]
    for store in (state.subject_store, tasks):
        if store.last_error is not None:
            lines.append(f"  {store.collection} sync error: {store.last_error}")
    return "\n".join(lines)


def cmd_user(state: AppState, args: list[str]) -> str:
    if not args:
        return f"Current user: {state.user_id or '-'}. Usage: /user <id>"
    user_id = args[0].strip()
    state.switch_user(user_id)
    logger.info("Switched user to %s", user_id)
    return f"Now tracking user {user_id}."


def cmd_subjects(state: AppState, args: list[str]) -> str:
    if err := _need_user(state):
        return err
    subjects = sorted(state.subject_store.items, key=lambda s: s.created_at)
    if not subjects:
        return "No subjects yet. Add one with /subject add <name>."
    lines = ["Subjects:"]
    for s in subjects:
        tasks = state.task_store.tasks_for_subject(s.subject_id)
        done = sum(1 for t in tasks if t.is_completed)
        lines.append(f"  {_short(s.subject_id)} {s.name} ({done}/{len(tasks)} done)")
    return "\n".join(lines)


async def cmd_subject(state: AppState, args: list[str]) -> str:
    if err := _need_user(state):
        return err
    usage = "Usage: /subject add <name> | rename <subject> <name> | rm <subject>"
    if not args:
        return usage

    action, rest = args[0].lower(), args[1:]
    if action == "add":
        res = await state.subject_store.add(state.user_id or "", name=" ".join(rest))
        return res.message if not res.record_id else f"{res.message} ({_short(res.record_id)})"

    if action in ("rename", "rm") and rest:
        subject = _resolve_subject(state, rest[0])
        if subject is None:
            return f"No such subject: {rest[0]}"
        if action == "rename":
            res = await rename_subject(
                state.subject_store, state.task_store, subject.subject_id, " ".join(rest[1:])
            )
        else:
            res = await delete_subject(state.subject_store, state.task_store, subject.subject_id)
        return res.message

    return usage


def cmd_tasks(state: AppState, args: list[str]) -> str:
    if err := _need_user(state):
        return err
    tasks = state.task_store.items
    if args:
        subject = _resolve_subject(state, args[0])
        if subject is None:
            return f"No such subject: {args[0]}"
        tasks = [t for t in tasks if t.subject_id == subject.subject_id]
    if not tasks:
        return "No tasks found."

    fmt = _due_format(state)
    today = date.today()
    groups = group_tasks(tasks, today, fmt)
    lines: list[str] = []
    for title, items in (("Today", groups.today), ("Upcoming", groups.upcoming), ("Completed", groups.completed)):
        if items:
            lines.append(f"{title}:")
            lines.extend(_task_line(t, today, fmt) for t in items)
    return "\n".join(lines)


async def cmd_task(state: AppState, args: list[str]) -> str:
    if err := _need_user(state):
        return err
    usage = (
        "Usage: /task add <subject> <title> [due=..] [priority=Imp|Med|Low] [note=..]"
        " | edit <task> key=value.. | rm <task>"
    )
    if not args:
        return usage

    action = args[0].lower()
    positional, options = _split_options(args[1:])
    fmt = _due_format(state)

    if action == "add":
        if len(positional) < 2:
            return usage
        subject = _resolve_subject(state, positional[0])
        if subject is None:
            return f"No such subject: {positional[0]}"
        try:
            due = _parse_due(options.get("due", ""), fmt)
        except ValueError:
            return f"Bad due date; expected e.g. {format_due_date(date.today(), fmt)}"
        res = await state.task_store.add(
            state.user_id or "",
            subject_id=subject.subject_id,
            subject_name=subject.name,
            title=" ".join(positional[1:]),
            note=options.get("note", ""),
            due_date=due,
            priority=options.get("priority") or getattr(state.settings, "default_priority", "Imp"),
        )
        return res.message if not res.record_id else f"{res.message} ({_short(res.record_id)})"

    if action in ("edit", "rm") and positional:
        task = _resolve_task(state, positional[0])
        if task is None:
            return f"No such task: {positional[0]}"
        if action == "rm":
            return (await state.task_store.delete(task.task_id)).message

        changes: dict[str, Any] = {}
        for key in ("title", "note", "priority"):
            if key in options:
                changes[key] = options[key]
        if "due" in options:
            try:
                changes["due_date"] = _parse_due(options["due"], fmt)
            except ValueError:
                return f"Bad due date; expected e.g. {format_due_date(date.today(), fmt)}"
        if "subject" in options:
            subject = _resolve_subject(state, options["subject"])
            if subject is None:
                return f"No such subject: {options['subject']}"
            changes["subject_id"] = subject.subject_id
            changes["subject_name"] = subject.name
        if not changes:
            return "Nothing to change. Use title=, note=, due=, priority= or subject=."
        return (await state.task_store.update(task.task_id, **changes)).message

    return usage


async def cmd_toggle(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _need_user(state):
        return err
    if not args:
        return "Usage: /toggle <task>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"

    new_value = not task.is_completed
    pending = asyncio.ensure_future(state.task_store.toggle_completion(task.task_id, new_value))
    # Let the optimistic update land before the write settles.
    await asyncio.sleep(0)
    if emit is not None:
        emit(f"'{task.title}' marked {'done' if new_value else 'not done'} (saving...)")

    res = await pending
    if not res.success:
        return f"Could not update '{task.title}': {res.message}"
    return res.message


def cmd_dashboard(state: AppState, args: list[str]) -> str:
    if err := _need_user(state):
        return err
    summary = dashboard_summary(
        state.task_store.items, state.subject_store.items, date.today(), _due_format(state)
    )
    lines = [
        "Dashboard:",
        f"  total tasks: {summary.total}",
        f"  completed:   {summary.completed}",
        f"  pending:     {summary.pending}",
        f"  overdue:     {summary.overdue}",
        f"  progress:    {summary.completion_ratio:.0%}",
    ]
    if summary.subjects:
        lines.append("  by subject:")
        for p in summary.subjects:
            lines.append(f"    {p.name}: {p.completed}/{p.total} ({p.ratio:.0%})")
    return "\n".join(lines)


registry.register("help", cmd_help, "Show this help message.", aliases=["h", "?"])
registry.register("status", cmd_status, "Show session and sync status.")
registry.register("user", cmd_user, "Switch the tracked user: /user <id>.")
registry.register("subjects", cmd_subjects, "List subjects with progress.")
registry.register("subject", cmd_subject, "Add, rename or delete a subject.")
registry.register("tasks", cmd_tasks, "List tasks (optionally of one subject).")
registry.register("task", cmd_task, "Add, edit or delete a task.")
registry.register("toggle", cmd_toggle, "Toggle a task's completion.", aliases=["done"])
registry.register("dashboard", cmd_dashboard, "Show completion stats.", aliases=["home"])
