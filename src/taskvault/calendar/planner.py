# src/taskvault/calendar/planner.py

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Literal

from ..core.ports import Notifier
from ..sync.projection import Projection
from ..sync.reconciler import ChangeReconciler
from ..tasks.repository import TaskRepository
from .slots import END_KEY, START_KEY, parse_day

logger = logging.getLogger(__name__)

SCHEDULED_STATUS = "In Progress"

Edge = Literal["start", "end"]


class CalendarPlanner:
    """Date-range edits coming from the calendar (drop from backlog, edge resize)."""

    def __init__(
        self,
        repository: TaskRepository,
        projection: Projection,
        reconciler: ChangeReconciler,
        notifier: Notifier,
        *,
        scheduled_status: str = SCHEDULED_STATUS,
        suppress_ms: int | None = None,
    ) -> None:
        self.repository = repository
        self.projection = projection
        self.reconciler = reconciler
        self.notifier = notifier
        self.scheduled_status = scheduled_status
        self.suppress_ms = suppress_ms

    async def _write(self, path: str, patch: dict[str, Any], action: str) -> bool:
        self.reconciler.suppress_reloads(self.suppress_ms)
        try:
            await self.repository.patch(path, patch)
        except Exception as e:
            logger.warning("%s failed for %s: %r", action, path, e)
            self.notifier.notice(f"Failed to {action}: {e}")
            await self.reconciler.reload_now()
            return False
        self.projection.apply_patches([(path, patch)])
        return True

    async def schedule_on(self, path: str, day: date) -> bool:
        """Put an unscheduled item on the calendar as a one-day range starting work."""
        if self.projection.get(path) is None:
            logger.debug("schedule_on: %s is not tracked", path)
            return False
        iso = day.isoformat()
        patch = {"status": self.scheduled_status, START_KEY: iso, END_KEY: iso}
        return await self._write(path, patch, "schedule")

    async def resize(self, path: str, edge: Edge, day: date) -> bool:
        """Move one edge of an item's planned range; the range may not invert."""
        item = self.projection.get(path)
        if item is None:
            return False
        start = parse_day(item.metadata.get(START_KEY))
        end = parse_day(item.metadata.get(END_KEY))
        if start is None or end is None:
            return False

        if edge == "start":
            if day > end:
                self.notifier.notice("Start date cannot be after end date")
                return False
            start = day
        elif edge == "end":
            if day < start:
                self.notifier.notice("End date cannot be before start date")
                return False
            end = day
        else:
            raise ValueError(f"unknown edge: {edge!r}")

        patch = {START_KEY: start.isoformat(), END_KEY: end.isoformat()}
        return await self._write(path, patch, "resize")
