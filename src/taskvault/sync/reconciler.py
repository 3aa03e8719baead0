# src/taskvault/sync/reconciler.py

from __future__ import annotations

"""
Change reconciliation.

Decides when the projection must be reloaded from storage:

- change notifications are debounced (one reload after a quiet interval),
- while a suppression window is active a debounced notification only marks a
  reload as pending (our own writes echo back as change notifications),
- a one-shot release timer at window + grace runs at most one deferred reload.

Timers are event-loop timers; everything here runs on the loop thread except
notify_threadsafe(), which is the entry point for watcher threads.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 300
RELEASE_GRACE_MS = 50
DEFAULT_SUPPRESS_MS = 1000


class ChangeReconciler:
    def __init__(
        self,
        reload: Callable[[], Awaitable[Any]],
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        grace_ms: int = RELEASE_GRACE_MS,
        default_suppress_ms: int = DEFAULT_SUPPRESS_MS,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._reload = reload
        self.debounce_ms = debounce_ms
        self.grace_ms = grace_ms
        self.default_suppress_ms = default_suppress_ms

        self.suppress_until = 0.0
        self.pending_reload = False
        self.ignore_pending = False
        self.reload_count = 0

        self._loop = loop
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._release_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Bind to `loop` so other threads can use notify_threadsafe()."""
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _now(self) -> float:
        return self._get_loop().time()

    @property
    def is_suppressed(self) -> bool:
        return self._now() < self.suppress_until

    # ---- notifications ----

    def notify_changed(self, path: str | None = None) -> None:
        """Restart the debounce timer. Must be called on the loop thread."""
        loop = self._get_loop()
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = loop.call_later(self.debounce_ms / 1000.0, self._on_debounced)
        logger.debug("Change notification path=%s", path)

    def notify_threadsafe(self, path: str | None = None) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.notify_changed, path)

    def _on_debounced(self) -> None:
        self._debounce_handle = None
        if self._now() < self.suppress_until:
            self.pending_reload = True
            logger.debug("Reload deferred: inside suppression window.")
            return
        self.pending_reload = False
        self.ignore_pending = False
        self._spawn_reload("change")

    # ---- suppression ----

    def suppress_reloads(self, duration_ms: int | None = None, ignore_pending: bool = False) -> None:
        """
        Open (or extend) a suppression window.

        With ignore_pending=True, a reload that is pending when the window ends
        is dropped instead of being run. The flag applies to the latest call only.
        """
        duration = self.default_suppress_ms if duration_ms is None else duration_ms
        loop = self._get_loop()
        self.suppress_until = loop.time() + duration / 1000.0
        # per call: re-arming without the flag restores the deferred reload
        self.ignore_pending = ignore_pending

        if self._release_handle is not None:
            self._release_handle.cancel()
        self._release_handle = loop.call_later(
            (duration + self.grace_ms) / 1000.0, self._on_release
        )
        logger.debug("Reloads suppressed for %dms (ignore_pending=%s)", duration, ignore_pending)

    def _on_release(self) -> None:
        self._release_handle = None
        run = self.pending_reload and not self.ignore_pending
        self.pending_reload = False
        self.ignore_pending = False
        if run:
            self._spawn_reload("deferred")

    # ---- reloads ----

    def _spawn_reload(self, reason: str) -> None:
        task = self._get_loop().create_task(self._run_reload(reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_reload(self, reason: str) -> None:
        self.reload_count += 1
        logger.debug("Reloading projection (%s)", reason)
        try:
            await self._reload()
        except Exception:
            logger.exception("Projection reload failed (%s).", reason)

    async def reload_now(self) -> None:
        """Unconditional reload, used to recover after failed writes."""
        await self._run_reload("forced")

    async def aclose(self) -> None:
        for handle in (self._debounce_handle, self._release_handle):
            if handle is not None:
                handle.cancel()
        self._debounce_handle = None
        self._release_handle = None

        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
