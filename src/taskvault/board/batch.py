# src/taskvault/board/batch.py

from __future__ import annotations

"""
Batch of independent metadata patches.

The writes are issued concurrently with no ordering guarantee between them.
There is no rollback: a failure leaves the successful writes in place, and the
aggregate outcome tells the caller which paths did not make it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import PartialBatchFailure

logger = logging.getLogger(__name__)

PatchWriter = Callable[[str, dict[str, Any]], Awaitable[None]]


@dataclass(slots=True)
class BatchOutcome:
    total: int = 0
    succeeded: list[str] = field(default_factory=list)
    failures: list[tuple[str, BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            raise PartialBatchFailure(list(self.failures), self.total)


class WriteBatch:
    def __init__(self, writer: PatchWriter) -> None:
        self._writer = writer
        self._patches: dict[str, dict[str, Any]] = {}

    def add(self, path: str, patch: dict[str, Any]) -> None:
        """Queue a patch. Patches for the same path are merged (later keys win)."""
        self._patches.setdefault(path, {}).update(patch)

    @property
    def patches(self) -> list[tuple[str, dict[str, Any]]]:
        return [(p, dict(v)) for p, v in self._patches.items()]

    def __len__(self) -> int:
        return len(self._patches)

    async def run(self) -> BatchOutcome:
        items = list(self._patches.items())
        outcome = BatchOutcome(total=len(items))
        if not items:
            return outcome

        results = await asyncio.gather(
            *(self._writer(path, patch) for path, patch in items),
            return_exceptions=True,
        )
        for (path, _), result in zip(items, results):
            if isinstance(result, BaseException):
                logger.warning("Batch write failed path=%s err=%r", path, result)
                outcome.failures.append((path, result))
            else:
                outcome.succeeded.append(path)

        logger.debug("Batch finished: %d ok, %d failed", len(outcome.succeeded), len(outcome.failures))
        return outcome
