# src/taskvault/storage/documents.py

"""
Filesystem DocumentStore.

All paths crossing this boundary are vault-relative POSIX strings. Blocking
file I/O runs in a worker thread so the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from ..core.errors import MissingDocument

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"


@dataclass(frozen=True, slots=True)
class DocumentRef:
    path: str  # vault-relative, e.g. "Tasks/Fix login.md"

    @property
    def filename(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def name(self) -> str:
        """Filename without the document suffix."""
        fn = self.filename
        if fn.lower().endswith(DOCUMENT_SUFFIX):
            return fn[: -len(DOCUMENT_SUFFIX)]
        return fn

    @property
    def folder(self) -> str:
        parent = str(PurePosixPath(self.path).parent)
        return "" if parent == "." else parent


def join_path(folder: str, filename: str) -> str:
    folder = folder.strip("/")
    return f"{folder}/{filename}" if folder else filename


class FileSystemDocumentStore:
    """DocumentStore over a directory tree (the vault)."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()

    def _abs(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"path escapes the vault: {path!r}")
        return self.root.joinpath(*rel.parts)

    # ---- enumeration ----

    def _list_sync(self, folder: str) -> list[DocumentRef]:
        base = self._abs(folder) if folder else self.root
        if not base.is_dir():
            return []
        out: list[DocumentRef] = []
        for entry in sorted(base.iterdir(), key=lambda p: p.name):
            if entry.is_file() and entry.name.lower().endswith(DOCUMENT_SUFFIX):
                out.append(DocumentRef(join_path(folder, entry.name)))
        return out

    async def list_documents(self, folder: str) -> list[DocumentRef]:
        """Documents directly inside `folder` (no recursion), sorted by filename."""
        return await asyncio.to_thread(self._list_sync, folder)

    # ---- CRUD ----

    def _read_sync(self, path: str) -> str:
        try:
            return self._abs(path).read_text("utf-8")
        except FileNotFoundError as e:
            raise MissingDocument(path) from e

    async def read(self, path: str) -> str:
        return await asyncio.to_thread(self._read_sync, path)

    def _write_sync(self, path: str, text: str) -> None:
        target = self._abs(path)
        if not target.is_file():
            raise MissingDocument(path)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_text(text, "utf-8")
        os.replace(tmp, target)

    async def write(self, path: str, text: str) -> None:
        """Overwrite an existing document. Raises MissingDocument if it is gone."""
        await asyncio.to_thread(self._write_sync, path, text)

    def _create_sync(self, path: str, text: str) -> None:
        target = self._abs(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("x", encoding="utf-8") as f:
            f.write(text)

    async def create(self, path: str, text: str) -> DocumentRef:
        """Create a new document. Raises FileExistsError if the path is taken."""
        await asyncio.to_thread(self._create_sync, path, text)
        logger.debug("Created document %s", path)
        return DocumentRef(path)

    def _delete_sync(self, path: str) -> None:
        try:
            self._abs(path).unlink()
        except FileNotFoundError as e:
            raise MissingDocument(path) from e

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(self._delete_sync, path)
        logger.debug("Deleted document %s", path)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._abs(path).exists)

    async def ensure_folder(self, folder: str) -> None:
        if not folder:
            return
        await asyncio.to_thread(self._abs(folder).mkdir, parents=True, exist_ok=True)
