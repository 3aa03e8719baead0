# src/taskvault/metadata/fields.py

"""
Field kinds and template field definitions.

Every metadata field has exactly one kind. The kind decides how user input is
coerced before it is written and which default an empty field takes.
Date-kind fields are dropped from a block instead of being written as "".
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class FieldKind(StrEnum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    STATUS = "status"
    TAGS = "tags"
    URL = "url"
    PEOPLE = "people"
    FREETEXT = "freetext"

    @classmethod
    def from_str(cls, raw: str | None) -> FieldKind:
        if not raw:
            return cls.TEXT
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.TEXT

    @property
    def is_list(self) -> bool:
        return self in (FieldKind.TAGS, FieldKind.PEOPLE)

    def default(self) -> Any:
        if self.is_list:
            return []
        if self is FieldKind.NUMBER:
            return None
        return ""

    def coerce(self, value: Any) -> Any:
        """Normalize a raw input value for storage in a metadata block."""
        if value is None:
            return self.default()

        if self.is_list:
            if isinstance(value, str):
                return [p.strip() for p in value.split(",") if p.strip()]
            if isinstance(value, (list, tuple, set)):
                return [str(v).strip() for v in value if str(v).strip()]
            return [str(value).strip()]

        if self is FieldKind.NUMBER:
            if isinstance(value, bool):
                return int(value)
            if isinstance(value, (int, float)):
                return value
            s = str(value).strip()
            if not s:
                return None
            try:
                return int(s)
            except ValueError:
                try:
                    return float(s)
                except ValueError:
                    return None

        if self is FieldKind.DATE:
            s = str(value).strip()
            # ISO timestamps keep only their date part
            if len(s) > 10 and _DATE_RE.match(s[:10]):
                s = s[:10]
            return s if _DATE_RE.match(s) else ""

        if self is FieldKind.FREETEXT:
            return str(value)

        return str(value).strip()


@dataclass(frozen=True, slots=True)
class FieldDefinition:
    key: str
    label: str
    kind: FieldKind = FieldKind.TEXT


DEFAULT_TASK_FIELDS: tuple[FieldDefinition, ...] = (
    FieldDefinition("title", "Title", FieldKind.TEXT),
    FieldDefinition("status", "Status", FieldKind.STATUS),
    FieldDefinition("priority", "Priority", FieldKind.STATUS),
    FieldDefinition("assignee", "Assignee", FieldKind.PEOPLE),
    FieldDefinition("startDate", "Start Date", FieldKind.DATE),
    FieldDefinition("endDate", "End Date", FieldKind.DATE),
    FieldDefinition("tags", "Tags", FieldKind.TAGS),
    FieldDefinition("crNumber", "CR Number", FieldKind.TEXT),
    FieldDefinition("taskNumber", "Task Number", FieldKind.TEXT),
    FieldDefinition("service", "Service", FieldKind.TEXT),
    FieldDefinition("plannedStart", "Planned start date", FieldKind.DATE),
    FieldDefinition("plannedEnd", "Planned end date", FieldKind.DATE),
    FieldDefinition("actualStart", "Actual start date", FieldKind.DATE),
    FieldDefinition("actualEnd", "Actual end date", FieldKind.DATE),
    FieldDefinition("notes", "Notes", FieldKind.FREETEXT),
)

DEFAULT_CR_FIELDS: tuple[FieldDefinition, ...] = (
    FieldDefinition("number", "CR Number", FieldKind.TEXT),
    FieldDefinition("title", "Title", FieldKind.TEXT),
    FieldDefinition("emailSubject", "Email Subject", FieldKind.TEXT),
    FieldDefinition("solutionDesign", "Solution design link", FieldKind.URL),
    FieldDefinition("description", "Description", FieldKind.FREETEXT),
)


class FieldRegistry:
    """Lookup of field definitions by key, shared by tasks and change requests."""

    def __init__(self, *groups: Iterable[FieldDefinition]) -> None:
        self._by_key: dict[str, FieldDefinition] = {}
        for group in groups:
            for fd in group:
                # first definition wins ("title" exists in both templates)
                self._by_key.setdefault(fd.key, fd)

    def get(self, key: str) -> FieldDefinition | None:
        return self._by_key.get(key)

    def kind_of(self, key: str) -> FieldKind:
        fd = self._by_key.get(key)
        return fd.kind if fd is not None else FieldKind.TEXT

    def keys_of_kind(self, kind: FieldKind) -> frozenset[str]:
        return frozenset(k for k, fd in self._by_key.items() if fd.kind is kind)

    @property
    def date_keys(self) -> frozenset[str]:
        return self.keys_of_kind(FieldKind.DATE)

    def coerce_patch(self, patch: dict[str, Any]) -> dict[str, Any]:
        """Coerce every value by its field kind. None stays None (deletion)."""
        out: dict[str, Any] = {}
        for key, value in patch.items():
            out[key] = None if value is None else self.kind_of(key).coerce(value)
        return out


def default_registry() -> FieldRegistry:
    return FieldRegistry(DEFAULT_TASK_FIELDS, DEFAULT_CR_FIELDS)
