# tests/test_batch.py

from __future__ import annotations

import pytest

from taskvault.board.batch import WriteBatch
from taskvault.core.errors import PartialBatchFailure


@pytest.mark.asyncio
async def test_patches_for_one_path_are_merged() -> None:
    written: list[tuple[str, dict]] = []

    async def writer(path: str, patch: dict) -> None:
        written.append((path, patch))

    batch = WriteBatch(writer)
    batch.add("Tasks/a.md", {"status": "Done", "order": 3})
    batch.add("Tasks/a.md", {"order": 0})
    batch.add("Tasks/b.md", {"order": 1})

    assert len(batch) == 2
    outcome = await batch.run()

    assert outcome.ok
    assert outcome.total == 2
    assert sorted(written) == [
        ("Tasks/a.md", {"status": "Done", "order": 0}),
        ("Tasks/b.md", {"order": 1}),
    ]
    outcome.raise_for_failures()


@pytest.mark.asyncio
async def test_failures_are_collected_without_undoing_successes() -> None:
    async def writer(path: str, patch: dict) -> None:
        if path.endswith("b.md"):
            raise OSError("read-only")

    batch = WriteBatch(writer)
    batch.add("Tasks/a.md", {"order": 0})
    batch.add("Tasks/b.md", {"order": 1})
    outcome = await batch.run()

    assert not outcome.ok
    assert outcome.succeeded == ["Tasks/a.md"]
    assert isinstance(outcome.failures[0][1], OSError)

    with pytest.raises(PartialBatchFailure) as exc:
        outcome.raise_for_failures()
    assert exc.value.failed_paths == ["Tasks/b.md"]
    assert "1 of 2 writes failed" in str(exc.value)


@pytest.mark.asyncio
async def test_empty_batch_runs_nothing() -> None:
    async def writer(path: str, patch: dict) -> None:
        raise AssertionError("no writes expected")

    outcome = await WriteBatch(writer).run()
    assert outcome.ok and outcome.total == 0
