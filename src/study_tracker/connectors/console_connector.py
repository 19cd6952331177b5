# src/study_tracker/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _read_lines(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None], ready: threading.Event) -> None:
    """Blocking stdin reader (daemon thread). Prompts only when the loop asks for the next line."""
    while True:
        ready.wait()
        ready.clear()
        try:
            line: str | None = input(">>> ")
        except (EOFError, KeyboardInterrupt):
            line = None
        with contextlib.suppress(RuntimeError):
            # Loop already closed: nobody is listening any more.
            loop.call_soon_threadsafe(lines.put_nowait, line)
        if line is None:
            return


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL on top of the running event loop.

    stdin is read in a daemon thread, so snapshots and write acknowledgements keep being
    processed while the user types, and shutdown never waits on a pending input().
    """
    logger.info("Console connector started (user=%s).", state.user_id or "-")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate feedback while a write is still in flight.
        print(f"[{_ts_local()}] {text}", flush=True)

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    ready = threading.Event()
    reader = threading.Thread(
        target=_read_lines,
        args=(asyncio.get_running_loop(), lines, ready),
        name="console-stdin",
        daemon=True,
    )
    reader.start()

    while True:
        ready.set()
        raw = await lines.get()
        if raw is None:
            logger.info("Console EOF received, exiting.")
            print()
            break

        user_input = raw.strip()
        _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Try /help.")
            continue

        try:
            reply = await command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command failed: %s", user_input)
            _print_ts("Command failed; see the log for details.")
            continue

        if reply:
            _print_ts(reply)
