# tests/conftest.py

from __future__ import annotations

from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskvault.board.engine import BoardEngine
from taskvault.board.statuses import StatusSet
from taskvault.cli.bootstrap import create_initial_state
from taskvault.core.state import AppState
from taskvault.metadata.cache import FrontMatterCache
from taskvault.sync.projection import Projection
from taskvault.sync.reconciler import ChangeReconciler
from taskvault.tasks.repository import TaskRepository

from .fakes import FailingStore, RecordingNotifier, ReloadCounter

FIXED_TODAY = date(2024, 3, 6)


@pytest.fixture()
def vault(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    (root / "Tasks").mkdir(parents=True)
    (root / "Change Requests").mkdir(parents=True)
    return root


@pytest.fixture()
def settings(tmp_path: Path, vault: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment and .env files.
    """
    data_dir = tmp_path / "data"
    return SimpleNamespace(
        app_name="taskvault-test",
        log_level="DEBUG",
        vault_root=vault,
        task_folder="Tasks",
        cr_folder="Change Requests",
        subtask_heading="### Subtasks",
        filename_format="{{crNumber}} {{taskNumber}} - {{service}}.md",
        statuses=["Backlog", "In Progress", "Review", "Done"],
        completed_pattern=r"^(completed|done)$",
        in_progress_pattern=r"in\s*progress",
        debounce_ms=20,
        suppress_ms=50,
        watch_enabled=False,
        calendar_first_weekday=6,
        calendar_days=5,
        calendar_max_lanes=20,
        calendar_row_height=725,
        data_dir=data_dir,
        statuses_path=data_dir / "statuses.json",
    )


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def state(settings: SimpleNamespace, notifier: RecordingNotifier) -> AppState:
    """AppState wired exactly like the CLI, over a temporary vault."""
    return create_initial_state(settings=settings, notifier=notifier)


@pytest.fixture()
def board_env(vault: Path, notifier: RecordingNotifier) -> SimpleNamespace:
    """
    Board engine over a real vault, with a store that can be told to fail writes.

    The reconciler reload is a counter, so tests can assert "exactly one reload"
    without a real reload mutating the projection under them.
    """
    store = FailingStore(vault)
    cache = FrontMatterCache(vault)
    repo = TaskRepository(store, cache)
    projection = Projection()
    reloads = ReloadCounter()
    reconciler = ChangeReconciler(reloads, debounce_ms=20, default_suppress_ms=50)
    statuses = StatusSet(["Backlog", "In Progress", "Review", "Done"])
    engine = BoardEngine(
        repo,
        projection,
        reconciler,
        statuses,
        notifier,
        task_folder="Tasks",
        suppress_ms=50,
        today=lambda: FIXED_TODAY,
    )
    return SimpleNamespace(
        vault=vault,
        store=store,
        cache=cache,
        repo=repo,
        projection=projection,
        reloads=reloads,
        reconciler=reconciler,
        statuses=statuses,
        engine=engine,
        notifier=notifier,
    )
