# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from taskvault.metadata.codec import serialize_block
from taskvault.storage.documents import FileSystemDocumentStore


@dataclass(slots=True)
class RecordingNotifier:
    """Notifier that only remembers what it was asked to show."""

    messages: list[str] = field(default_factory=list)

    def notice(self, message: str) -> None:
        self.messages.append(message)


class FailingStore:
    """
    FileSystemDocumentStore wrapper used by failure-path tests.

    - Records every write (path) for assertions
    - Raises OSError for writes to paths listed in `fail_paths`
    """

    def __init__(self, root: Path, fail_paths: set[str] | None = None) -> None:
        self.inner = FileSystemDocumentStore(root)
        self.fail_paths = set(fail_paths or ())
        self.writes: list[str] = []

    async def write(self, path: str, text: str) -> None:
        self.writes.append(path)
        if path in self.fail_paths:
            raise OSError(f"disk refused {path}")
        await self.inner.write(path, text)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)


class ReloadCounter:
    """Reload callable for ChangeReconciler that records when it ran."""

    def __init__(self, loop_time=None) -> None:
        self.calls = 0
        self.times: list[float] = []
        self._loop_time = loop_time

    async def __call__(self) -> None:
        self.calls += 1
        if self._loop_time is not None:
            self.times.append(self._loop_time())


def write_doc(root: Path, rel: str, metadata: dict[str, Any] | None = None, body: str = "") -> str:
    """Create a vault document directly on disk and return its vault path."""
    target = root / rel
    target.parent.mkdir(parents=True, exist_ok=True)
    text = body
    if metadata is not None:
        text = serialize_block(metadata) + "\n\n" + body
    target.write_text(text, "utf-8")
    return rel
