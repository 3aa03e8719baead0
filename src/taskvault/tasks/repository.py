# src/taskvault/tasks/repository.py

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable
from typing import Any

from ..core.errors import MissingDocument
from ..core.ports import DocumentStore, MetadataCache
from ..metadata.cache import CachedMetadata, parse_or_empty
from ..metadata.codec import merge_document, serialize_block
from ..metadata.fields import FieldRegistry, default_registry
from ..storage.documents import DocumentRef
from .models import DEFAULT_SUBTASK_HEADING, TaskItem, as_str_list, parse_subtasks, split_body

logger = logging.getLogger(__name__)


class TaskRepository:
    """
    Task documents on top of a DocumentStore and a MetadataCache.

    Properties:
    - items are materialized from documents directly inside a folder (no recursion)
    - metadata comes from the cache; an unparseable block reads as {}
    - every write is merge-then-rewrite of the metadata block only
    """

    def __init__(
        self,
        store: DocumentStore,
        cache: MetadataCache,
        *,
        fields: FieldRegistry | None = None,
        subtask_heading: str | None = DEFAULT_SUBTASK_HEADING,
    ) -> None:
        self.store = store
        self.cache = cache
        self.fields = fields or default_registry()
        self.subtask_heading = subtask_heading

    # ---- reading ----

    def metadata_for(self, path: str) -> dict[str, Any]:
        meta = self.cache.get_file_cache(path)
        return dict(meta.mapping) if meta is not None else {}

    async def _materialize(self, ref: DocumentRef) -> TaskItem | None:
        try:
            text = await self.store.read(ref.path)
        except MissingDocument:
            logger.debug("Document vanished while listing: %s", ref.path)
            return None

        meta = self.cache.get_file_cache(ref.path)
        if meta is None:
            return None

        body = split_body(text, meta.position.end if meta.position else None)
        return TaskItem(
            path=ref.path,
            name=ref.name,
            metadata=dict(meta.mapping),
            subtasks=parse_subtasks(body, self.subtask_heading),
        )

    async def load_item(self, path: str) -> TaskItem | None:
        return await self._materialize(DocumentRef(path))

    async def list_items(self, location: str) -> list[TaskItem]:
        """All task items directly inside `location`, in enumeration order."""
        refs = await self.store.list_documents(location)
        items = await asyncio.gather(*(self._materialize(r) for r in refs))
        out = [it for it in items if it is not None]
        logger.debug("Listed %d items in %s", len(out), location or "<root>")
        return out

    async def list_all(self, locations: Iterable[str]) -> list[TaskItem]:
        out: list[TaskItem] = []
        seen: set[str] = set()
        for loc in locations:
            for it in await self.list_items(loc):
                if it.path not in seen:
                    seen.add(it.path)
                    out.append(it)
        return out

    async def all_tags(self, location: str) -> list[str]:
        """Union of every item's tags: trimmed, deduplicated, sorted."""
        tags: set[str] = set()
        for ref in await self.store.list_documents(location):
            tags.update(as_str_list(self.metadata_for(ref.path).get("tags")))
        return sorted(tags)

    async def find_by_number(self, location: str, field: str, value: str) -> DocumentRef | None:
        """
        Resolve a document by its number.

        A case-insensitive match on `field` anywhere in the folder wins over a
        filename that starts with "<value> ".
        """
        needle = (value or "").strip().lower()
        if not needle:
            return None

        refs = await self.store.list_documents(location)
        for ref in refs:
            raw = self.metadata_for(ref.path).get(field)
            if raw is not None and str(raw).strip().lower() == needle:
                return ref

        prefix = needle + " "
        for ref in refs:
            if ref.filename.lower().startswith(prefix):
                return ref
        return None

    async def next_number(self, location: str, prefix: str, field: str = "number") -> str:
        """Next free "<prefix>-<n>", scanning both the number field and filenames."""
        rx = re.compile(rf"^{re.escape(prefix)}-(\d+)", re.IGNORECASE)
        highest = 0
        for ref in await self.store.list_documents(location):
            candidates = [ref.name]
            raw = self.metadata_for(ref.path).get(field)
            if raw is not None:
                candidates.append(str(raw).strip())
            for c in candidates:
                m = rx.match(c)
                if m:
                    highest = max(highest, int(m.group(1)))
        return f"{prefix}-{highest + 1}"

    # ---- writing ----

    async def read_document(self, path: str) -> tuple[str, CachedMetadata]:
        """
        Read a document and parse its block from that same text.

        Offsets always match the text being rewritten, even if the file
        changed after the cache last saw it. Raises MissingDocument.
        """
        text = await self.store.read(path)
        return text, parse_or_empty(text, path=path)

    async def patch(self, path: str, patch: dict[str, Any]) -> None:
        """
        Merge `patch` into the document's metadata block and rewrite the document.

        Raises MissingDocument if the path no longer resolves.
        """
        text, meta = await self.read_document(path)
        new_text = merge_document(text, meta.position, meta.mapping, patch, self.fields.date_keys)
        await self.store.write(path, new_text)
        self.cache.invalidate(path)
        logger.debug("Patched %s keys=%s", path, sorted(patch))

    async def rewrite_body(self, path: str, body: str) -> None:
        """Replace everything after the metadata block, keeping the block as is."""
        text, meta = await self.read_document(path)
        head = text[: meta.position.end] if meta.position else ""
        sep = "\n" if head and not body.startswith("\n") else ""
        await self.store.write(path, head + sep + body)
        self.cache.invalidate(path)

    async def create(self, path: str, mapping: dict[str, Any], body: str = "") -> DocumentRef:
        """Create a document: metadata block, a blank line, then `body`."""
        text = serialize_block(mapping, self.fields.date_keys) + "\n\n" + body
        ref = await self.store.create(path, text)
        self.cache.invalidate(path)
        logger.info("Created %s", path)
        return ref

    async def delete(self, path: str) -> None:
        await self.store.delete(path)
        self.cache.invalidate(path)
        logger.info("Deleted %s", path)
