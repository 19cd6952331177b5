# src/study_tracker/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing secret is needed at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "STUDY"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    log_to_file: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    store_db_path: Path

    # ---- Session ----
    user_id: str

    # ---- Task defaults ----
    due_date_format: str
    default_priority: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "study-tracker").strip() or "study-tracker"
        log_level = _env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO"
        log_to_file = _env_bool(_k("LOG_TO_FILE"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/study"))
        store_db_path = _env_path(_k("STORE_DB_PATH"), data_dir / "records.sqlite3")

        user_id = _env(_k("USER_ID"), "").strip()

        due_date_format = _env(_k("DUE_DATE_FORMAT"), "%b %d, %Y") or "%b %d, %Y"
        default_priority = _env(_k("DEFAULT_PRIORITY"), "Imp").strip() or "Imp"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            log_to_file=log_to_file,
            data_dir=data_dir,
            store_db_path=store_db_path,
            user_id=user_id,
            due_date_format=due_date_format,
            default_priority=default_priority,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
