# src/taskvault/sync/watcher.py

"""
Filesystem change source.

A watchdog observer thread watches the vault and forwards changes to task
documents into the reconciler. Nothing here touches the projection directly:
events are handed over to the event loop with call_soon_threadsafe().
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from ..storage.documents import DOCUMENT_SUFFIX

logger = logging.getLogger(__name__)

# opened / closed_no_write come from our own reads during a reload
_CHANGE_EVENTS = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED, EVENT_TYPE_DELETED})


class VaultEventHandler(FileSystemEventHandler):
    """Routes document events below the watched folders to a callback."""

    def __init__(
        self,
        root: Path,
        folders: Iterable[str],
        on_change: Callable[[str], None],
        on_invalidate: Callable[[str], None] | None = None,
    ) -> None:
        self.root = root.resolve()
        self.folders = tuple(f.strip("/") for f in folders)
        self.on_change = on_change
        self.on_invalidate = on_invalidate

    def _relative(self, raw: str | bytes) -> str | None:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", "replace")
        try:
            rel = Path(raw).resolve().relative_to(self.root)
        except ValueError:
            return None
        if not rel.name.lower().endswith(DOCUMENT_SUFFIX):
            return None
        rel_posix = rel.as_posix()
        folder = rel.parent.as_posix()
        folder = "" if folder == "." else folder
        if self.folders and folder not in self.folders:
            return None
        return rel_posix

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", None)
        if dest:
            paths.append(dest)

        for raw in paths:
            rel = self._relative(raw)
            if rel is None:
                continue
            if self.on_invalidate is not None:
                self.on_invalidate(rel)
            self.on_change(rel)


class VaultWatcher:
    """Owns the watchdog observer thread."""

    def __init__(
        self,
        root: str | Path,
        folders: Iterable[str],
        on_change: Callable[[str], None],
        on_invalidate: Callable[[str], None] | None = None,
    ) -> None:
        self.root = Path(root)
        self.folders = list(folders)
        self.handler = VaultEventHandler(self.root, self.folders, on_change, on_invalidate)
        self._observer: Observer | None = None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.daemon = True
        observer.schedule(self.handler, str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s (folders=%s)", self.root, ", ".join(self.folders) or "*")

    def stop(self, timeout: float = 5.0) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        observer.stop()
        observer.join(timeout=timeout)
        logger.info("Watcher stopped.")
