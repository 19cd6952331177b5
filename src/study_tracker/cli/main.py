# src/study_tracker/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState on the local SQLite record store, then runs the
console REPL on the asyncio event loop until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import Settings, get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from ..storage.sqlite_store import SqliteRecordStore

logger = logging.getLogger(__name__)


async def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.close()
    except Exception:
        logger.exception("Failed to close stores.")

    try:
        store = getattr(state, "record_store", None)
        if isinstance(store, SqliteRecordStore):
            await store.aclose()
    except Exception:
        logger.debug("Record store close failed.", exc_info=True)


async def run(settings: Settings) -> None:
    state = create_initial_state(settings=settings)
    try:
        await run_console_loop(state)
    finally:
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = settings.data_dir if settings.log_to_file else None
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
