# src/taskvault/metadata/cache.py

"""
Front matter parsing and a small per-file metadata cache.

The cache answers "what is the parsed block of this document and where does it
sit in the text". Entries are keyed by path and refreshed whenever the file's
mtime/size changes or a writer invalidates them explicitly.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..core.errors import UnparseableMetadata
from .codec import DELIMITER, BlockPosition

logger = logging.getLogger(__name__)


class _FrontMatterLoader(yaml.SafeLoader):
    """SafeLoader that keeps dates and timestamps as plain strings."""


_FrontMatterLoader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass(slots=True)
class CachedMetadata:
    mapping: dict[str, Any] = field(default_factory=dict)
    position: BlockPosition | None = None
    error: str | None = None


def locate_block(text: str) -> BlockPosition | None:
    """Find the leading metadata block, or None if the document has none."""
    if not (text.startswith(DELIMITER + "\n") or text.startswith(DELIMITER + "\r\n")):
        return None

    pos = text.index("\n") + 1
    while pos <= len(text):
        nl = text.find("\n", pos)
        line_end = len(text) if nl == -1 else nl
        if text[pos:line_end].rstrip("\r") == DELIMITER:
            return BlockPosition(0, pos + len(DELIMITER))
        if nl == -1:
            return None
        pos = nl + 1
    return None


def parse_front_matter(text: str, *, path: str | None = None) -> CachedMetadata:
    """
    Parse the metadata block of a document.

    Raises UnparseableMetadata if the block is not valid YAML or not a mapping.
    The exception carries the block position so callers can still rewrite the block.
    """
    position = locate_block(text)
    if position is None:
        return CachedMetadata()

    first_nl = text.index("\n") + 1
    inner = text[first_nl : position.end - len(DELIMITER)]
    try:
        data = yaml.load(inner, Loader=_FrontMatterLoader)
    except yaml.YAMLError as e:
        reason = str(e).splitlines()[0] if str(e) else "invalid YAML"
        raise UnparseableMetadata(path, reason, position) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise UnparseableMetadata(path, f"expected a mapping, got {type(data).__name__}", position)

    return CachedMetadata(mapping={str(k): v for k, v in data.items()}, position=position)


def parse_or_empty(text: str, *, path: str | None = None) -> CachedMetadata:
    """Like parse_front_matter(), but an unparseable block degrades to an empty mapping."""
    try:
        return parse_front_matter(text, path=path)
    except UnparseableMetadata as e:
        logger.warning("%s", e)
        return CachedMetadata(position=e.position, error=e.reason)


class FrontMatterCache:
    """
    MetadataCache over files below a vault root.

    Paths are vault-relative POSIX strings ("Tasks/foo.md").
    Thread-safe: the watcher thread may invalidate entries.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._entries: dict[str, tuple[int, int, CachedMetadata]] = {}
        self._lock = threading.Lock()

    def get_file_cache(self, path: str) -> CachedMetadata | None:
        fs_path = self.root / path
        try:
            st = fs_path.stat()
        except FileNotFoundError:
            self.invalidate(path)
            return None

        with self._lock:
            hit = self._entries.get(path)
        if hit is not None and hit[0] == st.st_mtime_ns and hit[1] == st.st_size:
            return hit[2]

        try:
            text = fs_path.read_text("utf-8")
        except FileNotFoundError:
            self.invalidate(path)
            return None

        meta = parse_or_empty(text, path=path)
        with self._lock:
            self._entries[path] = (st.st_mtime_ns, st.st_size, meta)
        return meta

    def invalidate(self, path: str | None = None) -> None:
        with self._lock:
            if path is None:
                self._entries.clear()
            else:
                self._entries.pop(path, None)
