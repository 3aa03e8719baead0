# src/taskvault/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/parsing/notification swappable and makes testing easier.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..metadata.cache import CachedMetadata
    from ..storage.documents import DocumentRef


class DocumentStore(Protocol):
    """Folder enumeration and document CRUD. Paths are vault-relative."""

    async def list_documents(self, folder: str) -> list[DocumentRef]: ...
    async def read(self, path: str) -> str: ...
    async def write(self, path: str, text: str) -> None: ...
    async def create(self, path: str, text: str) -> DocumentRef: ...
    async def delete(self, path: str) -> None: ...
    async def exists(self, path: str) -> bool: ...
    async def ensure_folder(self, folder: str) -> None: ...


class MetadataCache(Protocol):
    """
    Parsed metadata block + block offsets for a document.

    Returns None when the document does not exist. An unparseable block is
    reported as an empty mapping (never raises).
    """

    def get_file_cache(self, path: str) -> CachedMetadata | None: ...
    def invalidate(self, path: str | None = None) -> None: ...


class Notifier(Protocol):
    """User-facing notices ("Moved", "Failed to move: ...")."""

    def notice(self, message: str) -> None: ...
