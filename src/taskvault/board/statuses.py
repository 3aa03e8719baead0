# src/taskvault/board/statuses.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator

logger = logging.getLogger(__name__)

DEFAULT_STATUSES: tuple[str, ...] = ("Backlog", "In Progress", "Blocked", "Review", "Done")


class StatusSet:
    """
    Ordered, mutable sequence of status labels (the board columns).

    Items reference labels by value. Add/remove/reorder only change this
    sequence; an item whose label disappears is bucketed under the first label
    until it is moved. `on_change` is called after every mutation so the host
    can persist the sequence.
    """

    def __init__(
        self,
        labels: Iterable[str] = DEFAULT_STATUSES,
        *,
        on_change: Callable[[list[str]], None] | None = None,
    ) -> None:
        self._labels: list[str] = []
        for label in labels:
            clean = label.strip()
            if clean and clean not in self._labels:
                self._labels.append(clean)
        self.on_change = on_change

    # ---- reads ----

    @property
    def labels(self) -> list[str]:
        return list(self._labels)

    @property
    def first(self) -> str | None:
        return self._labels[0] if self._labels else None

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._labels))

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, label: object) -> bool:
        return label in self._labels

    def index(self, label: str) -> int:
        return self._labels.index(label)

    def bucket_for(self, status: str | None) -> str | None:
        """The column an item with `status` is shown in."""
        if status and status in self._labels:
            return status
        return self.first

    # ---- mutations ----

    def _changed(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self.labels)
        except Exception:
            logger.exception("Failed to persist status labels.")

    def _require(self, label: str) -> int:
        try:
            return self._labels.index(label)
        except ValueError:
            raise ValueError(f"unknown status: {label!r}") from None

    def add(self, label: str) -> None:
        clean = label.strip()
        if not clean:
            raise ValueError("status label is required")
        if clean in self._labels:
            raise ValueError(f"status already exists: {clean!r}")
        self._labels.append(clean)
        self._changed()

    def remove(self, label: str) -> None:
        idx = self._require(label)
        del self._labels[idx]
        self._changed()

    def rename(self, old: str, new: str) -> None:
        idx = self._require(old)
        clean = new.strip()
        if not clean:
            raise ValueError("status label is required")
        if clean != old and clean in self._labels:
            raise ValueError(f"status already exists: {clean!r}")
        self._labels[idx] = clean
        self._changed()

    def move(self, from_index: int, to_index: int) -> None:
        n = len(self._labels)
        if not (0 <= from_index < n):
            raise ValueError(f"index out of range: {from_index}")
        to_index = max(0, min(to_index, n - 1))
        if from_index == to_index:
            return
        label = self._labels.pop(from_index)
        self._labels.insert(to_index, label)
        self._changed()

    def shift(self, label: str, delta: int) -> None:
        """Move a column left (delta < 0) or right (delta > 0)."""
        idx = self._require(label)
        self.move(idx, idx + delta)
