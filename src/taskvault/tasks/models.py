# src/taskvault/tasks/models.py

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

SUBTASK_RE = re.compile(r"^\s*-\s*\[([ xX])\]\s*(.*)$")
DEFAULT_SUBTASK_HEADING = "### Subtasks"


@dataclass(slots=True)
class Subtask:
    text: str
    completed: bool = False

    def render(self) -> str:
        return f" - [{'x' if self.completed else ' '}] {self.text}"


@dataclass(slots=True)
class TaskItem:
    """
    In-memory view of one task document.

    The metadata block in storage is canonical; this object is a cache of it
    and may be briefly stale while writes are in flight.
    """

    path: str
    name: str
    metadata: dict[str, Any] = field(default_factory=dict)
    subtasks: list[Subtask] = field(default_factory=list)

    # ---- typed accessors ----

    @property
    def status(self) -> str:
        v = self.metadata.get("status")
        return "" if v is None else str(v).strip()

    @property
    def order(self) -> int | None:
        return coerce_order(self.metadata.get("order"))

    @property
    def priority(self) -> str:
        return str(self.metadata.get("priority") or "")

    @property
    def created_at(self) -> str:
        return str(self.metadata.get("createdAt") or "")

    @property
    def start_date(self) -> str:
        return str(self.metadata.get("startDate") or "")

    @property
    def end_date(self) -> str:
        return str(self.metadata.get("endDate") or "")

    @property
    def title(self) -> str:
        return str(self.metadata.get("title") or self.name)

    @property
    def tags(self) -> list[str]:
        return as_str_list(self.metadata.get("tags"))

    @property
    def archived(self) -> bool:
        v = self.metadata.get("archived")
        if isinstance(v, str):
            return v.strip().lower() in {"true", "yes", "1"}
        return bool(v)

    def apply_patch(self, patch: dict[str, Any]) -> None:
        """Apply the same patch that was written to storage (None deletes)."""
        for key, value in patch.items():
            if value is None:
                self.metadata.pop(key, None)
            else:
                self.metadata[key] = value


def coerce_order(raw: Any) -> int | None:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def as_str_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(v).strip() for v in raw if v is not None and str(v).strip()]
    s = str(raw).strip()
    return [s] if s else []


def split_body(text: str, block_end: int | None) -> str:
    if block_end is None:
        return text
    return text[block_end:]


def parse_subtasks(body: str, heading: str | None = DEFAULT_SUBTASK_HEADING) -> list[Subtask]:
    """
    Collect checklist lines ("- [ ] text" / "- [x] text").

    With a heading, only lines after the first line starting with that heading
    count. With heading=None the whole body is scanned.
    """
    lines = body.splitlines()
    if heading:
        start = next((i for i, ln in enumerate(lines) if ln.strip().startswith(heading)), None)
        if start is None:
            return []
        lines = lines[start + 1 :]

    out: list[Subtask] = []
    for ln in lines:
        m = SUBTASK_RE.match(ln)
        if m:
            out.append(Subtask(text=m.group(2).strip(), completed=m.group(1).lower() == "x"))
    return out
