# src/taskvault/metadata/codec.py

"""
Metadata block codec.

Serialization produces the canonical text of a document's metadata block:

    ---
    key: value
    ---

Merging applies a partial patch on top of the current mapping and rewrites only
the block region of a document, leaving the body untouched.

Rules (in order, per key):
- None            -> key omitted (this is how a patch deletes a field)
- []              -> key: []
- list of scalars -> key: [a, b]   (elements quoted only when needed)
- "" / "   "      -> key: ""       (dropped entirely for date-kind keys)
- multiline str   -> key: |-       (literal block, lines indented two spaces)
- str with : # -  -> JSON-style double quotes
- anything else   -> plain text
"""

from __future__ import annotations

import json
import re
from collections.abc import Collection, Mapping
from dataclasses import dataclass
from typing import Any

import yaml

_PLAIN_NEEDS_QUOTES = re.compile(r"[:#\-]|^\s|\s$")
_INLINE_NEEDS_QUOTES = re.compile(r"[\",\[\]:\n#]|^\s|\s$")
# Leading characters that make a plain YAML scalar mean something else.
_INDICATORS = frozenset("[]{}!&*|>'\"%@`,?")

_RESOLVER = yaml.resolver.Resolver()
_STR_TAG = "tag:yaml.org,2002:str"

DELIMITER = "---"


@dataclass(frozen=True, slots=True)
class BlockPosition:
    """Character offsets of the metadata block: text[start:end] is the block."""

    start: int
    end: int

    @property
    def is_valid(self) -> bool:
        return self.start >= 0 and self.end > self.start


def _would_retype(s: str) -> bool:
    """True if a YAML reader would not load `s` back as the same string."""
    if not s:
        return False
    if s[0] in _INDICATORS:
        return True
    return _RESOLVER.resolve(yaml.ScalarNode, s, (True, False)) != _STR_TAG


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Mapping):
        return json.dumps(dict(value), ensure_ascii=False)
    return str(value)


def escape_plain(value: Any) -> str:
    """Render a single-line scalar."""
    if not isinstance(value, str):
        return _scalar_text(value)
    if _PLAIN_NEEDS_QUOTES.search(value) or _would_retype(value):
        return json.dumps(value, ensure_ascii=False)
    return value


def escape_inline(value: Any) -> str:
    """Render one element of an inline [a, b] list."""
    if value is None:
        return '""'
    if not isinstance(value, str):
        return _scalar_text(value)
    if value == "" or _INLINE_NEEDS_QUOTES.search(value) or _would_retype(value):
        return json.dumps(value, ensure_ascii=False)
    return value


def _literal_block(key: str, value: str) -> list[str]:
    if value.endswith("\n\n"):
        chomp = "+"
    elif value.endswith("\n"):
        chomp = ""
    else:
        chomp = "-"
    content = value[:-1] if value.endswith("\n") else value
    # an indentation indicator is required when the first line starts with a space
    first = next((ln for ln in content.split("\n") if ln.strip()), "")
    indent = "2" if first.startswith(" ") else ""
    lines = [f"{key}: |{indent}{chomp}"]
    lines.extend(f"  {ln}" for ln in content.split("\n"))
    return lines


def _render_list(key: str, values: list[Any]) -> list[str]:
    if not values:
        return [f"{key}: []"]
    if any(isinstance(v, str) and "\n" in v for v in values):
        out = [f"{key}:"]
        out.extend(f"  - {json.dumps(v, ensure_ascii=False)}" for v in values)
        return out
    return [f"{key}: [" + ", ".join(escape_inline(v) for v in values) + "]"]


def serialize_block(mapping: Mapping[str, Any], date_keys: Collection[str] = ()) -> str:
    """Serialize a mapping into block text, including both delimiter lines."""
    lines = [DELIMITER]
    for key, value in mapping.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            lines.extend(_render_list(key, list(value)))
            continue
        if isinstance(value, str):
            if value.strip() == "":
                if key in date_keys:
                    continue
                lines.append(f'{key}: ""')
                continue
            if "\n" in value:
                lines.extend(_literal_block(key, value))
                continue
        lines.append(f"{key}: {escape_plain(value)}")
    lines.append(DELIMITER)
    return "\n".join(lines)


def merge_mapping(current: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """
    Overlay `patch` on `current`.

    Existing keys keep their position; new keys are appended in patch order.
    None values stay in the result and are dropped at serialization time.
    """
    merged = dict(current)
    merged.update(patch)
    return merged


def merge_document(
    text: str,
    position: BlockPosition | None,
    current: Mapping[str, Any],
    patch: Mapping[str, Any],
    date_keys: Collection[str] = (),
) -> str:
    """Return the full document text with its metadata block replaced by current+patch."""
    block = serialize_block(merge_mapping(current, patch), date_keys)

    if position is not None and position.is_valid:
        after = text[position.end :]
        sep = "" if after.startswith("\n") else "\n"
        return text[: position.start] + block + sep + after

    body = text
    sep = "\n" if body == "" or body.startswith("\n") else "\n\n"
    return block + sep + body
