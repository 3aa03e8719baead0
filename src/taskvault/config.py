# src/taskvault/config.py

"""Settings for taskvault, read from TASKVAULT_* environment variables.

A `.env` file in the working directory is loaded first; real environment
variables win over it. Every value has a default, so importing this module
never fails and tests can build their own settings object instead.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKVAULT"

_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}
_TRUE = frozenset({"1", "true", "yes", "y", "on"})


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _raw(name: str) -> str | None:
    """The variable's value, or None when it is unset or blank."""
    v = os.getenv(name)
    if v is None or not v.strip():
        return None
    return v


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = _raw(name)
    return default if raw is None else raw.strip().lower() in _TRUE


def _env_int(name: str, default: int) -> int:
    raw = _raw(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    # comma separated only: labels like "In Progress" contain spaces
    raw = _raw(name)
    if raw is None:
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = _raw(name)
    return default if raw is None else Path(raw.strip()).expanduser()


def _env_weekday(name: str, default: int) -> int:
    raw = (_raw(name) or "").strip().lower()
    if raw in _WEEKDAYS:
        return _WEEKDAYS[raw]
    if raw.isdigit() and int(raw) <= 6:
        return int(raw)
    return default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Vault layout ----
    vault_root: Path
    task_folder: str
    cr_folder: str
    subtask_heading: str | None
    filename_format: str

    # ---- Board ----
    statuses: list[str]
    completed_pattern: str
    in_progress_pattern: str

    # ---- Reload reconciliation ----
    debounce_ms: int
    suppress_ms: int
    watch_enabled: bool

    # ---- Calendar ----
    calendar_first_weekday: int
    calendar_days: int
    calendar_max_lanes: int
    calendar_row_height: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    statuses_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskvault")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        vault_root = _env_path(_k("VAULT"), Path("."))
        task_folder = _env(_k("TASK_FOLDER"), "Tasks").strip("/") or "Tasks"
        cr_folder = _env(_k("CR_FOLDER"), "Change Requests").strip("/") or "Change Requests"
        # empty heading -> scan the whole body for checklist lines
        subtask_heading = _env(_k("SUBTASK_HEADING"), "### Subtasks").strip() or None
        filename_format = _env(
            _k("FILENAME_FORMAT"), "{{crNumber}} {{taskNumber}} - {{service}}.md"
        )

        statuses = _env_list(
            _k("STATUSES"), ["Backlog", "In Progress", "Blocked", "Review", "Done"]
        )
        completed_pattern = _env(_k("COMPLETED_PATTERN"), r"^(completed|done)$")
        in_progress_pattern = _env(_k("IN_PROGRESS_PATTERN"), r"in\s*progress")

        debounce_ms = _env_int(_k("DEBOUNCE_MS"), 300)
        suppress_ms = _env_int(_k("SUPPRESS_MS"), 1000)
        watch_enabled = _env_bool(_k("WATCH"), True)

        calendar_first_weekday = _env_weekday(_k("WEEK_START"), _WEEKDAYS["sunday"])
        calendar_days = _env_int(_k("CALENDAR_DAYS"), 5)
        calendar_max_lanes = _env_int(_k("CALENDAR_MAX_LANES"), 20)
        calendar_row_height = _env_int(_k("CALENDAR_ROW_HEIGHT"), 725)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskvault"))
        statuses_path = _env_path(_k("STATUSES_PATH"), data_dir / "statuses.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            vault_root=vault_root,
            task_folder=task_folder,
            cr_folder=cr_folder,
            subtask_heading=subtask_heading,
            filename_format=filename_format,
            statuses=statuses,
            completed_pattern=completed_pattern,
            in_progress_pattern=in_progress_pattern,
            debounce_ms=debounce_ms,
            suppress_ms=suppress_ms,
            watch_enabled=watch_enabled,
            calendar_first_weekday=calendar_first_weekday,
            calendar_days=calendar_days,
            calendar_max_lanes=calendar_max_lanes,
            calendar_row_height=calendar_row_height,
            data_dir=data_dir,
            statuses_path=statuses_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
