# src/taskvault/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..board.engine import BoardEngine
    from ..board.statuses import StatusSet
    from ..calendar.planner import CalendarPlanner
    from ..sync.projection import Projection
    from ..sync.reconciler import ChangeReconciler
    from ..sync.watcher import VaultWatcher
    from ..tasks.repository import TaskRepository
    from ..tasks.service import TaskService
    from .ports import DocumentStore, MetadataCache, Notifier


@dataclass
class AppState:
    # Settings live on the state so every layer reads the same object.
    settings: Any

    store: DocumentStore
    cache: MetadataCache
    repository: TaskRepository
    projection: Projection
    reconciler: ChangeReconciler
    statuses: StatusSet
    board: BoardEngine
    planner: CalendarPlanner
    service: TaskService
    notifier: Notifier

    watcher: VaultWatcher | None = None

    @property
    def folders(self) -> list[str]:
        return [self.settings.task_folder, self.settings.cr_folder]

    async def reload(self) -> None:
        """Rebuild the projection from storage (versioned commit)."""
        await self.projection.refresh(lambda: self.repository.list_all(self.folders))
