# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

from study_tracker.logging_setup import _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_levels() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("study_tracker.sync.reconciling_store", logging.DEBUG))
    assert not f.filter(_record("study_tracker.storage.sqlite_store", logging.INFO))
    assert f.filter(_record("study_tracker.storage.sqlite_store", logging.WARNING))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert f.filter(_record("asyncio", logging.ERROR))


def test_setup_logging_replaces_handlers_and_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = list(root.handlers)
    try:
        setup_logging(log_dir=tmp_path)
        setup_logging(log_dir=tmp_path)
        assert len(root.handlers) == 2

        logging.getLogger("study_tracker.test").debug("hello file")
        for handler in root.handlers:
            handler.flush()
        assert "hello file" in (tmp_path / "study.log").read_text(encoding="utf-8")
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved:
            root.addHandler(handler)
        logging.captureWarnings(False)
