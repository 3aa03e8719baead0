# tests/test_notices.py

from __future__ import annotations

from taskvault.core.notices import LogNotifier


def test_notices_are_kept_and_emitted() -> None:
    shown: list[str] = []
    n = LogNotifier(emit=shown.append, keep=2)

    n.notice("Moved")
    n.notice("Task archived")
    n.notice("Task deleted")

    assert shown == ["Moved", "Task archived", "Task deleted"]
    assert list(n.recent) == ["Task archived", "Task deleted"]


def test_broken_emit_does_not_raise() -> None:
    def broken(_msg: str) -> None:
        raise OSError("closed stdout")

    n = LogNotifier(emit=broken)
    n.notice("Moved")
    assert list(n.recent) == ["Moved"]
