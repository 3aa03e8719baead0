# src/taskvault/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/cache/engines),
- persists the board's status labels as JSON.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from pathlib import Path

from ..board.engine import BoardEngine
from ..board.statuses import StatusSet
from ..calendar.planner import CalendarPlanner
from ..config import get_settings
from ..core.notices import LogNotifier
from ..core.ports import Notifier
from ..core.state import AppState
from ..metadata.cache import FrontMatterCache
from ..storage.documents import FileSystemDocumentStore
from ..sync.projection import Projection
from ..sync.reconciler import ChangeReconciler
from ..sync.watcher import VaultWatcher
from ..tasks.repository import TaskRepository
from ..tasks.service import TaskService

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.statuses_path.parent.mkdir(parents=True, exist_ok=True)


def load_statuses(path: Path, default: list[str]) -> list[str]:
    """Load persisted status labels (best-effort, falls back to `default`)."""
    if not path.exists():
        return list(default)
    try:
        data = json.loads(path.read_text("utf-8"))
        if not isinstance(data, list):
            return list(default)
        labels = [str(x).strip() for x in data if str(x).strip()]
        logger.info("Loaded %d status labels from %s", len(labels), path)
        return labels or list(default)
    except Exception:
        logger.exception("Failed to load status labels from %s", path)
        return list(default)


def save_statuses(path: Path, labels: list[str]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(labels, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, path)
        logger.info("Saved %d status labels to %s", len(labels), path)
    except Exception:
        logger.exception("Failed to save status labels to %s", path)


def create_initial_state(*, settings=None, notifier: Notifier | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    notifier = notifier or LogNotifier()
    store = FileSystemDocumentStore(settings.vault_root)
    cache = FrontMatterCache(settings.vault_root)
    repository = TaskRepository(store, cache, subtask_heading=settings.subtask_heading)
    projection = Projection()

    statuses_path = Path(settings.statuses_path)
    statuses = StatusSet(
        load_statuses(statuses_path, list(settings.statuses)),
        on_change=lambda labels: save_statuses(statuses_path, labels),
    )

    # The reconciler needs the state's reload; the state needs the reconciler.
    state: AppState | None = None

    async def _reload() -> None:
        if state is not None:
            await state.reload()

    reconciler = ChangeReconciler(
        _reload,
        debounce_ms=settings.debounce_ms,
        default_suppress_ms=settings.suppress_ms,
    )

    board = BoardEngine(
        repository,
        projection,
        reconciler,
        statuses,
        notifier,
        task_folder=settings.task_folder,
        completed_pattern=settings.completed_pattern,
        in_progress_pattern=settings.in_progress_pattern,
        suppress_ms=settings.suppress_ms,
    )
    planner = CalendarPlanner(
        repository, projection, reconciler, notifier, suppress_ms=settings.suppress_ms
    )
    service = TaskService(
        repository,
        projection,
        reconciler,
        notifier,
        task_folder=settings.task_folder,
        cr_folder=settings.cr_folder,
        default_status=lambda: statuses.first,
        in_progress_pattern=settings.in_progress_pattern,
        filename_format=settings.filename_format,
        suppress_ms=settings.suppress_ms,
    )

    state = AppState(
        settings=settings,
        store=store,
        cache=cache,
        repository=repository,
        projection=projection,
        reconciler=reconciler,
        statuses=statuses,
        board=board,
        planner=planner,
        service=service,
        notifier=notifier,
    )
    return state


def start_watching(state: AppState, loop: asyncio.AbstractEventLoop) -> VaultWatcher:
    """Start the filesystem watcher thread feeding the reconciler."""
    state.reconciler.attach(loop)
    watcher = VaultWatcher(
        state.settings.vault_root,
        state.folders,
        on_change=state.reconciler.notify_threadsafe,
        on_invalidate=state.cache.invalidate,
    )
    watcher.start()
    state.watcher = watcher
    return watcher


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if state.watcher is not None:
        with contextlib.suppress(Exception):
            state.watcher.stop()
        state.watcher = None
    try:
        await state.reconciler.aclose()
    except Exception:
        logger.exception("Failed to close reconciler.")
