# src/taskvault/board/engine.py

from __future__ import annotations

"""
Board engine: status buckets, drop placement and move transactions.

Invariant: inside every status bucket the `order` values of the items are
exactly 0..n-1 after a successful move.

A move is not atomic. It is a batch of independent metadata patches; on any
failure the user gets one notice and the projection is rebuilt from storage.
"""

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from functools import cmp_to_key
from pathlib import PurePosixPath
from typing import Any

from ..core.errors import PartialBatchFailure
from ..core.ports import Notifier
from ..sync.projection import Projection
from ..sync.reconciler import ChangeReconciler
from ..tasks.models import TaskItem
from ..tasks.repository import TaskRepository
from .batch import BatchOutcome, WriteBatch
from .statuses import StatusSet

logger = logging.getLogger(__name__)

DEFAULT_COMPLETED_PATTERN = r"^(completed|done)$"
DEFAULT_IN_PROGRESS_PATTERN = r"in\s*progress"

# Drop-zone geometry (pixels).
GAP_BEFORE_FIRST = 20.0
GAP_INSIDE_FIRST = 10.0
GAP_HALF_BETWEEN = 10.0
GAP_INSIDE_LAST = 10.0
GAP_AFTER_LAST = 20.0


@dataclass(frozen=True, slots=True)
class CardExtent:
    """Vertical extent of a rendered card."""

    top: float
    bottom: float

    @property
    def mid(self) -> float:
        return (self.top + self.bottom) / 2.0


def resolve_drop_index(extents: Sequence[CardExtent], pointer_y: float) -> int:
    """
    Map a pointer position to an insertion index in a rendered column.

    Gap bands take priority: around the first card's top edge -> 0, around
    the middle of the gap between cards i and i+1 -> i+1, around the last
    card's bottom edge -> n. Otherwise the first card whose midpoint lies below
    the pointer; past every card, or in an empty column, append.
    """
    n = len(extents)
    if n == 0:
        return 0

    first, last = extents[0], extents[-1]
    if first.top - GAP_BEFORE_FIRST <= pointer_y <= first.top + GAP_INSIDE_FIRST:
        return 0

    for i in range(n - 1):
        gap_mid = (extents[i].bottom + extents[i + 1].top) / 2.0
        if gap_mid - GAP_HALF_BETWEEN <= pointer_y <= gap_mid + GAP_HALF_BETWEEN:
            return i + 1

    if last.bottom - GAP_INSIDE_LAST <= pointer_y <= last.bottom + GAP_AFTER_LAST:
        return n

    for i, ext in enumerate(extents):
        if pointer_y < ext.mid:
            return i
    return n


def _compare_items(a: TaskItem, b: TaskItem) -> int:
    oa, ob = a.order, b.order
    if oa is not None and ob is not None and oa != ob:
        return -1 if oa < ob else 1
    ca, cb = a.created_at, b.created_at
    return (ca > cb) - (ca < cb)


def sort_bucket(items: Iterable[TaskItem]) -> list[TaskItem]:
    """Numeric `order` first; ties and missing orders fall back to createdAt."""
    return sorted(items, key=cmp_to_key(_compare_items))


def in_folder(path: str, folder: str | None) -> bool:
    if folder is None:
        return True
    parent = str(PurePosixPath(path).parent)
    return (parent if parent != "." else "") == folder.strip("/")


def bucket_items(
    items: Iterable[TaskItem],
    statuses: StatusSet,
    *,
    folder: str | None = None,
) -> dict[str, list[TaskItem]]:
    """Group non-archived items by status label; unknown labels land in the first column."""
    buckets: dict[str, list[TaskItem]] = {label: [] for label in statuses}
    for item in items:
        if item.archived or not in_folder(item.path, folder):
            continue
        label = statuses.bucket_for(item.status)
        if label is None:
            continue
        buckets[label].append(item)
    return {label: sort_bucket(members) for label, members in buckets.items()}


@dataclass(slots=True)
class MoveResult:
    path: str
    from_status: str
    to_status: str
    index: int
    noop: bool = False
    outcome: BatchOutcome | None = None

    @property
    def writes(self) -> int:
        return 0 if self.outcome is None else self.outcome.total

    @property
    def ok(self) -> bool:
        return self.outcome is None or self.outcome.ok


class BoardEngine:
    def __init__(
        self,
        repository: TaskRepository,
        projection: Projection,
        reconciler: ChangeReconciler,
        statuses: StatusSet,
        notifier: Notifier,
        *,
        task_folder: str | None = None,
        completed_pattern: str = DEFAULT_COMPLETED_PATTERN,
        in_progress_pattern: str = DEFAULT_IN_PROGRESS_PATTERN,
        suppress_ms: int | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.repository = repository
        self.projection = projection
        self.reconciler = reconciler
        self.statuses = statuses
        self.notifier = notifier
        self.task_folder = task_folder
        self.completed_re = re.compile(completed_pattern, re.IGNORECASE)
        self.in_progress_re = re.compile(in_progress_pattern, re.IGNORECASE)
        self.suppress_ms = suppress_ms
        self._today = today

    # ---- views ----

    def buckets(self) -> dict[str, list[TaskItem]]:
        return bucket_items(self.projection.items, self.statuses, folder=self.task_folder)

    def is_completed(self, status: str) -> bool:
        return bool(self.completed_re.search(status or ""))

    def is_in_progress(self, status: str) -> bool:
        return bool(self.in_progress_re.search(status or ""))

    def status_side_effects(self, item: TaskItem, to_status: str) -> dict[str, Any]:
        """
        Date fields set by a transition into `to_status`.

        Completion always stamps endDate; an in-progress status only fills an empty startDate.
        """
        today = self._today().isoformat()
        extra: dict[str, Any] = {}
        if self.is_completed(to_status):
            extra["endDate"] = today
        if self.is_in_progress(to_status) and not item.start_date:
            extra["startDate"] = today
        return extra

    # ---- moves ----

    async def move_item(
        self,
        path: str,
        from_status: str,
        to_status: str,
        *,
        pointer_y: float | None = None,
        extents: Sequence[CardExtent] = (),
        index: int | None = None,
    ) -> MoveResult:
        """
        Move an item to position `index` (or the pointer's drop position) of `to_status`.

        Rewrites `order` for every item in the destination column and, for a
        cross-column move, for every item left in the source column.
        """
        buckets = self.buckets()
        src_label = self.statuses.bucket_for(from_status) or from_status
        dst_label = to_status
        if dst_label not in buckets:
            raise ValueError(f"unknown status: {to_status!r}")

        src = buckets.get(src_label, [])
        dst = buckets[dst_label]
        same = src_label == dst_label

        if index is not None:
            target = index
        elif pointer_y is not None:
            target = resolve_drop_index(extents, pointer_y)
        else:
            target = len(dst)
        target = max(0, min(target, len(dst)))

        cur = next((i for i, it in enumerate(src) if it.path == path), -1)

        if same and cur != -1 and target in (cur, cur + 1):
            logger.debug("Move of %s is a no-op (index %d -> %d)", path, cur, target)
            return MoveResult(path, from_status, to_status, cur, noop=True)

        materialized = False
        if cur != -1:
            moving = src.pop(cur)
            if same and cur < target:
                target -= 1
        else:
            # caller's from_status was stale; never list the item twice
            dup = next((i for i, it in enumerate(dst) if it.path == path), -1)
            if dup != -1:
                dst.pop(dup)
                if dup < target:
                    target -= 1
            existing = self.projection.get(path)
            if existing is not None:
                moving = existing
            else:
                moving = TaskItem(
                    path=path,
                    name=PurePosixPath(path).stem,
                    metadata=self.repository.metadata_for(path),
                )
                materialized = True
                logger.debug("Materialized %s from the metadata cache", path)

        target = max(0, min(target, len(dst)))
        dst.insert(target, moving)

        status_changed = moving.status != to_status
        batch = WriteBatch(self.repository.patch)
        for i, it in enumerate(dst):
            patch: dict[str, Any] = {"order": i}
            if it.path == path and status_changed:
                patch["status"] = to_status
                patch.update(self.status_side_effects(it, to_status))
            batch.add(it.path, patch)
        if not same:
            for i, it in enumerate(src):
                batch.add(it.path, {"order": i})

        self.reconciler.suppress_reloads(self.suppress_ms)
        outcome = await batch.run()
        result = MoveResult(path, from_status, to_status, target, outcome=outcome)

        try:
            outcome.raise_for_failures()
        except PartialBatchFailure as e:
            self.notifier.notice(f"Failed to move: {e.failures[0][1]}")
            logger.warning("Move of %s failed: %s", path, e)
            await self.reconciler.reload_now()
            return result

        if materialized:
            self.projection.upsert(moving)
        self.projection.apply_patches(batch.patches)
        self.notifier.notice("Moved")
        logger.info("Moved %s: %s -> %s @%d (%d writes)", path, from_status, to_status, target, outcome.total)
        return result

    # ---- column operations ----

    async def rename_status(self, old: str, new: str) -> BatchOutcome:
        """Rename a column and cascade the new label to every item shown under it."""
        members = self.buckets().get(old, [])
        self.statuses.rename(old, new)
        if old == new.strip():
            return BatchOutcome()

        batch = WriteBatch(self.repository.patch)
        for it in members:
            batch.add(it.path, {"status": new.strip()})
        if not len(batch):
            return BatchOutcome()

        self.reconciler.suppress_reloads(self.suppress_ms)
        outcome = await batch.run()
        try:
            outcome.raise_for_failures()
        except PartialBatchFailure as e:
            self.notifier.notice(f"Failed to update some tasks: {e.failures[0][1]}")
            logger.warning("Rename %r -> %r: %s", old, new, e)
            await self.reconciler.reload_now()
            return outcome

        self.projection.apply_patches(batch.patches)
        logger.info("Renamed status %r -> %r (%d items)", old, new, outcome.total)
        return outcome

    def add_status(self, label: str) -> None:
        self.statuses.add(label)

    def remove_status(self, label: str) -> None:
        # items keep their stale label and show up in the first column
        self.statuses.remove(label)

    def move_status(self, from_index: int, to_index: int) -> None:
        self.statuses.move(from_index, to_index)

    def shift_status(self, label: str, delta: int) -> None:
        self.statuses.shift(label, delta)
