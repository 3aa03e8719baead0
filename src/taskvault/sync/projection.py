# src/taskvault/sync/projection.py

"""
Shared in-memory projection of task items.

Every mutation (full reload or optimistic update) advances `version`. A reload
captures the version before it starts loading and commits only if nothing
advanced it in the meantime, so a slow reload can never overwrite a newer
optimistic update with data read before that update was written.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from ..tasks.models import TaskItem

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[list[TaskItem]]]


class Projection:
    def __init__(self, items: Iterable[TaskItem] = ()) -> None:
        self._items: dict[str, TaskItem] = {it.path: it for it in items}
        self.version = 0
        self._listeners: list[Callable[[Projection], None]] = []

    # ---- reads ----

    @property
    def items(self) -> list[TaskItem]:
        return list(self._items.values())

    def get(self, path: str) -> TaskItem | None:
        return self._items.get(path)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, path: object) -> bool:
        return path in self._items

    # ---- writes ----

    def subscribe(self, listener: Callable[[Projection], None]) -> None:
        self._listeners.append(listener)

    def _bump(self) -> None:
        self.version += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Projection listener failed.")

    def replace_all(self, items: Iterable[TaskItem]) -> None:
        self._items = {it.path: it for it in items}
        self._bump()

    def upsert(self, item: TaskItem) -> None:
        self._items[item.path] = item
        self._bump()

    def remove(self, path: str) -> None:
        if self._items.pop(path, None) is not None:
            self._bump()

    def apply_patches(self, patches: Iterable[tuple[str, dict[str, Any]]]) -> None:
        """Optimistic update: apply already-written patches in place, one version step."""
        touched = 0
        for path, patch in patches:
            item = self._items.get(path)
            if item is None:
                continue
            item.apply_patch(patch)
            touched += 1
        if touched:
            self._bump()

    async def refresh(self, loader: Loader, *, max_attempts: int = 3) -> bool:
        """
        Reload via `loader` and commit if no other mutation happened meanwhile.

        Returns True if the committed data came from an uncontested attempt.
        The last attempt commits unconditionally.
        """
        for attempt in range(1, max_attempts + 1):
            seen = self.version
            items = await loader()
            if self.version == seen:
                self.replace_all(items)
                return True
            if attempt == max_attempts:
                logger.warning(
                    "Projection changed during reload %d times; committing latest read.",
                    max_attempts,
                )
                self.replace_all(items)
                return False
            logger.debug(
                "Projection advanced during reload (v%d -> v%d), retrying.", seen, self.version
            )
        return False
