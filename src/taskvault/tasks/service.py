# src/taskvault/tasks/service.py

"""
Task and change-request lifecycle operations.

Every write here follows the same discipline as board moves: open a
suppression window, write, then update the projection optimistically. A failed
write is reported once and followed by a full reload.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..core.errors import MissingDocument
from ..core.ports import Notifier
from ..metadata.fields import FieldKind, FieldRegistry
from ..storage.documents import DocumentRef, join_path
from ..sync.projection import Projection
from ..sync.reconciler import ChangeReconciler
from .models import DEFAULT_SUBTASK_HEADING, SUBTASK_RE, Subtask
from .repository import TaskRepository

logger = logging.getLogger(__name__)

CR_PREFIX = "CR"
DEFAULT_FILENAME_FORMAT = "{{crNumber}} {{taskNumber}} - {{service}}.md"

_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_LINK_BREAKING = re.compile(r"[#^\[\]]")
_RESERVED_NAMES = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])$", re.IGNORECASE)
_CR_NUMBER = re.compile(r"^CR-\d+$", re.IGNORECASE)
_CR_NAME_PREFIX = re.compile(r"^CR-\d+\s*-\s*", re.IGNORECASE)


def sanitize_file_name(name: str) -> str:
    """Make `name` safe as a filename on every common platform."""
    s = _ILLEGAL_CHARS.sub("-", name)
    s = _LINK_BREAKING.sub("", s)
    if _RESERVED_NAMES.match(s):
        s = f"file-{s}"
    s = s.strip()
    s = re.sub(r"\.+$", "", s)
    s = re.sub(r"^-+|-+$", "", s)
    s = re.sub(r"--+", "-", s)
    return s or "untitled"


def wiki_link(path: str) -> str:
    if path.startswith("./"):
        path = path[2:]
    return f"[[{path}]]"


def prune_empty(data: dict[str, Any]) -> dict[str, Any]:
    """Drop blank strings, empty lists and None; trim the strings that remain."""
    out: dict[str, Any] = {}
    for k, v in data.items():
        if isinstance(v, (list, tuple)):
            if v:
                out[k] = list(v)
        elif isinstance(v, str):
            if v.strip():
                out[k] = v.strip()
        elif v is not None:
            out[k] = v
    return out


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class CopyOptions:
    people: bool = False
    dates: bool = False
    tags: bool = False
    notes: bool = False
    subtasks: bool = False


class TaskService:
    def __init__(
        self,
        repository: TaskRepository,
        projection: Projection,
        reconciler: ChangeReconciler,
        notifier: Notifier,
        *,
        task_folder: str,
        cr_folder: str,
        default_status: Callable[[], str | None] = lambda: None,
        in_progress_pattern: str = r"in\s*progress",
        filename_format: str = DEFAULT_FILENAME_FORMAT,
        suppress_ms: int | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.repository = repository
        self.projection = projection
        self.reconciler = reconciler
        self.notifier = notifier
        self.task_folder = task_folder
        self.cr_folder = cr_folder
        self.default_status = default_status
        self.in_progress_re = re.compile(in_progress_pattern, re.IGNORECASE)
        self.filename_format = filename_format
        self.suppress_ms = suppress_ms
        self.clock = clock

    @property
    def fields(self) -> FieldRegistry:
        return self.repository.fields

    async def _free_path(self, folder: str, stem: str) -> str:
        path = join_path(folder, f"{stem}.md")
        if await self.repository.store.exists(path):
            millis = int(self.clock().timestamp() * 1000)
            path = join_path(folder, f"{stem} {millis}.md")
        return path

    async def _track(self, ref: DocumentRef) -> None:
        item = await self.repository.load_item(ref.path)
        if item is not None:
            self.projection.upsert(item)

    async def _recover(self, action: str, err: Exception) -> None:
        logger.warning("%s failed: %r", action, err)
        self.notifier.notice(f"Failed to {action}: {err}")
        await self.reconciler.reload_now()

    # ---- creation ----

    async def cr_title(self, cr_number: str) -> tuple[str, DocumentRef | None]:
        ref = await self.repository.find_by_number(self.cr_folder, "number", cr_number)
        if ref is None:
            return "", None
        title = str(self.repository.metadata_for(ref.path).get("title") or "").strip()
        if not title:
            title = _CR_NAME_PREFIX.sub("", ref.name)
        return title, ref

    async def create_task(self, data: dict[str, Any]) -> DocumentRef:
        """
        Create a task document.

        The title is derived: "[<crNumber> <taskNumber>] <CR title> - [<service>]".
        """
        await self.repository.store.ensure_folder(self.task_folder)
        clean = prune_empty(self.fields.coerce_patch(data))

        cr_number = str(clean.get("crNumber") or "")
        task_number = str(clean.get("taskNumber") or "")
        service = str(clean.get("service") or "")

        cr_title, cr_ref = ("", None)
        if cr_number:
            cr_title, cr_ref = await self.cr_title(cr_number)

        prefix = " ".join(p for p in (cr_number, task_number) if p)
        suffix = f" - [{service}]" if service else ""
        core = cr_title.strip() or f"Task {self.clock().date().isoformat()}"
        title = f"[{prefix}] {core}{suffix}" if prefix else f"{core}{suffix}"

        clean.setdefault("status", self.default_status() or "Backlog")
        clean["title"] = title
        clean["createdAt"] = utc_timestamp(self.clock())
        if cr_ref is not None:
            clean["crLink"] = wiki_link(cr_ref.path)

        path = await self._free_path(self.task_folder, sanitize_file_name(title))
        self.reconciler.suppress_reloads(self.suppress_ms)
        ref = await self.repository.create(path, clean)
        await self._track(ref)
        return ref

    async def create_change_request(self, data: dict[str, Any]) -> DocumentRef:
        """Create a CR document named "<number> - <title>.md"."""
        await self.repository.store.ensure_folder(self.cr_folder)
        clean = prune_empty(self.fields.coerce_patch(data))

        number = str(clean.get("number") or "").strip()
        if not number:
            number = await self.repository.next_number(self.cr_folder, CR_PREFIX)
        if not _CR_NUMBER.match(number):
            number = f"{CR_PREFIX}-" + re.sub(r"[^0-9]", "", number)
        title = str(clean.get("title") or "").strip() or number

        clean["number"] = number
        clean["title"] = title

        path = await self._free_path(self.cr_folder, sanitize_file_name(f"{number} - {title}"))
        self.reconciler.suppress_reloads(self.suppress_ms)
        ref = await self.repository.create(path, clean)
        await self._track(ref)
        return ref

    # ---- edits ----

    async def update_fields(self, path: str, patch: dict[str, Any]) -> bool:
        """Write user-edited fields. An in-progress status fills an empty startDate."""
        coerced = self.fields.coerce_patch(patch)
        for key, value in list(coerced.items()):
            # cleared date fields are removed rather than written as ""
            if self.fields.kind_of(key) is FieldKind.DATE and value == "":
                coerced[key] = None

        item = self.projection.get(path)
        current = item.metadata if item is not None else self.repository.metadata_for(path)
        status = str(coerced.get("status") or "")
        if status and self.in_progress_re.search(status) and not current.get("startDate"):
            coerced.setdefault("startDate", self.clock().date().isoformat())

        return await self._patch(path, coerced, "update task")

    async def _patch(self, path: str, patch: dict[str, Any], action: str) -> bool:
        self.reconciler.suppress_reloads(self.suppress_ms)
        try:
            await self.repository.patch(path, patch)
        except Exception as e:
            await self._recover(action, e)
            return False
        self.projection.apply_patches([(path, patch)])
        return True

    async def archive(self, path: str) -> bool:
        ok = await self._patch(path, {"archived": True}, "archive task")
        if ok:
            self.notifier.notice("Task archived")
        return ok

    async def delete(self, path: str) -> bool:
        self.reconciler.suppress_reloads(self.suppress_ms)
        try:
            await self.repository.delete(path)
        except Exception as e:
            await self._recover("delete task", e)
            return False
        self.projection.remove(path)
        self.notifier.notice("Task deleted")
        return True

    async def toggle_subtask(self, path: str, text: str, completed: bool) -> bool:
        """Rewrite the checklist line whose text is `text`."""
        try:
            body = await self._body(path)
        except MissingDocument as e:
            await self._recover("update subtask", e)
            return False

        lines = body.split("\n")
        for i, ln in enumerate(lines):
            m = SUBTASK_RE.match(ln)
            if m and m.group(2).strip() == text.strip():
                lines[i] = Subtask(text.strip(), completed).render()
                break
        else:
            logger.debug("Subtask %r not found in %s", text, path)
            return False

        self.reconciler.suppress_reloads(self.suppress_ms)
        try:
            await self.repository.rewrite_body(path, "\n".join(lines))
        except Exception as e:
            await self._recover("update subtask", e)
            return False

        item = self.projection.get(path)
        if item is not None:
            for st in item.subtasks:
                if st.text == text.strip():
                    st.completed = completed
                    break
            self.projection.upsert(item)
        return True

    async def _body(self, path: str) -> str:
        text, meta = await self.repository.read_document(path)
        return text[meta.position.end :] if meta.position else text

    # ---- copy ----

    async def copy_task(
        self,
        path: str,
        service: str,
        *,
        status: str | None = None,
        priority: str | None = None,
        options: CopyOptions = CopyOptions(),
    ) -> DocumentRef:
        """Create a new task from an existing one for another service."""
        service = service.strip()
        if not service:
            raise ValueError("service is required")

        item = self.projection.get(path) or await self.repository.load_item(path)
        if item is None:
            raise MissingDocument(path)

        fm = dict(item.metadata)
        fm["service"] = service
        fm["status"] = status or self.default_status() or "Backlog"
        if priority:
            fm["priority"] = priority
        fm["createdAt"] = utc_timestamp(self.clock())
        fm.pop("order", None)
        fm.pop("archived", None)

        if not options.people:
            for key in self.fields.keys_of_kind(FieldKind.PEOPLE):
                fm.pop(key, None)
        if not options.dates:
            for key in ("startDate", "endDate"):
                fm.pop(key, None)
        if not options.tags:
            fm.pop("tags", None)
        if not options.notes:
            fm.pop("notes", None)

        body = ""
        if options.subtasks and item.subtasks:
            body = DEFAULT_SUBTASK_HEADING + "\n" + "\n".join(st.render() for st in item.subtasks)

        name = (
            self.filename_format.replace("{{crNumber}}", str(fm.get("crNumber") or ""))
            .replace("{{taskNumber}}", str(fm.get("taskNumber") or ""))
            .replace("{{title}}", str(fm.get("title") or ""))
            .replace("{{service}}", service)
        )
        stem = sanitize_file_name(name)
        if stem.lower().endswith(".md"):
            stem = stem[:-3]

        await self.repository.store.ensure_folder(self.task_folder)
        new_path = await self._free_path(self.task_folder, stem)
        self.reconciler.suppress_reloads(self.suppress_ms)
        ref = await self.repository.create(new_path, fm, body)
        await self._track(ref)
        self.notifier.notice(f"Task copied to {new_path}")
        return ref
