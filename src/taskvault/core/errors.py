# src/taskvault/core/errors.py

"""
Error taxonomy.

None of these are fatal to the process. Callers surface one user notice and
fall back to a full reload of the projection.
"""

from __future__ import annotations

from typing import Any


class TaskVaultError(Exception):
    """Base class for errors raised by taskvault."""


class MissingDocument(TaskVaultError):
    """A document path no longer resolves in storage."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Document not found: {path}")
        self.path = path


class UnparseableMetadata(TaskVaultError):
    """The metadata block of a document could not be parsed into a mapping."""

    def __init__(self, path: str | None, reason: str, position: Any = None) -> None:
        where = path or "<text>"
        super().__init__(f"Unparseable metadata in {where}: {reason}")
        self.path = path
        self.reason = reason
        # block offsets, when the delimiters were found
        self.position = position


class PartialBatchFailure(TaskVaultError):
    """Some writes of a batch were rejected; the successful ones are not undone."""

    def __init__(self, failures: list[tuple[str, BaseException]], total: int) -> None:
        paths = ", ".join(p for p, _ in failures)
        super().__init__(f"{len(failures)} of {total} writes failed: {paths}")
        self.failures = failures
        self.total = total

    @property
    def failed_paths(self) -> list[str]:
        return [p for p, _ in self.failures]
