# src/study_tracker/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

_STORAGE_LOGGER = "study_tracker.storage."


class _ConsoleNoiseFilter(logging.Filter):
    """Console gate: app records pass, per-write storage records need WARNING, the rest ERROR."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(_STORAGE_LOGGER):
            return record.levelno >= logging.WARNING
        if name.startswith("study_tracker."):
            return True
        # py.warnings and third-party libraries.
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path | None = ".local/study",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Install the process-wide handlers.

    stderr gets the filtered console view; `<log_dir>/study.log` gets every record at
    `file_level` (skipped when log_dir is None). Replaces whatever handlers the root
    logger had, so calling it twice does not duplicate output.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_path / "study.log"), encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    logging.captureWarnings(True)
