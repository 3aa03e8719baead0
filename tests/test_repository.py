# tests/test_repository.py

from __future__ import annotations

from pathlib import Path

import pytest

from taskvault.core.errors import MissingDocument
from taskvault.metadata.cache import FrontMatterCache
from taskvault.storage.documents import FileSystemDocumentStore
from taskvault.tasks.repository import TaskRepository

from .fakes import write_doc

CR = "Change Requests"


def _repo(vault: Path) -> TaskRepository:
    return TaskRepository(FileSystemDocumentStore(vault), FrontMatterCache(vault))


@pytest.mark.asyncio
async def test_next_number_scans_fields_and_filenames(vault: Path) -> None:
    repo = _repo(vault)
    assert await repo.next_number(CR, "CR") == "CR-1"

    write_doc(vault, f"{CR}/CR-3 - Alpha.md", {"number": "CR-3"})
    write_doc(vault, f"{CR}/CR-7 - Beta.md", {"title": "Beta"})
    write_doc(vault, f"{CR}/misc.md", {"number": "CR-1"})

    assert await repo.next_number(CR, "CR") == "CR-8"


@pytest.mark.asyncio
async def test_find_by_number_prefers_field_match(vault: Path) -> None:
    repo = _repo(vault)
    write_doc(vault, f"{CR}/CR-5 - Old name.md", {"title": "Old"})
    write_doc(vault, f"{CR}/Renamed.md", {"number": "CR-5"})

    ref = await repo.find_by_number(CR, "number", "cr-5")
    assert ref is not None
    assert ref.path == f"{CR}/Renamed.md"

    ref = await repo.find_by_number(CR, "number", "CR-9")
    assert ref is None


@pytest.mark.asyncio
async def test_find_by_number_falls_back_to_filename(vault: Path) -> None:
    repo = _repo(vault)
    write_doc(vault, f"{CR}/CR-2 - Payments.md", {"title": "Payments"})

    ref = await repo.find_by_number(CR, "number", "CR-2")
    assert ref is not None
    assert ref.name == "CR-2 - Payments"


@pytest.mark.asyncio
async def test_list_items_reads_metadata_and_subtasks(vault: Path) -> None:
    repo = _repo(vault)
    body = "- [ ] not a subtask\n\n### Subtasks\n - [x] Write code\n - [ ] Review\n"
    write_doc(vault, "Tasks/a.md", {"status": "Backlog", "order": 0}, body)
    write_doc(vault, "Tasks/notes.txt", None, "ignored")
    write_doc(vault, "Tasks/nested/deep.md", {"status": "Done"})

    items = await repo.list_items("Tasks")

    assert [it.path for it in items] == ["Tasks/a.md"]
    item = items[0]
    assert item.status == "Backlog"
    assert item.order == 0
    assert [(st.text, st.completed) for st in item.subtasks] == [
        ("Write code", True),
        ("Review", False),
    ]


@pytest.mark.asyncio
async def test_unparseable_document_is_listed_with_empty_metadata(vault: Path) -> None:
    repo = _repo(vault)
    write_doc(vault, "Tasks/bad.md", None, "---\nstatus: [oops\n---\nbody")

    items = await repo.list_items("Tasks")

    assert len(items) == 1
    assert items[0].metadata == {}


@pytest.mark.asyncio
async def test_all_tags_is_sorted_and_deduplicated(vault: Path) -> None:
    repo = _repo(vault)
    write_doc(vault, "Tasks/a.md", {"tags": ["b", "a"]})
    write_doc(vault, "Tasks/b.md", {"tags": ["a", " c "]})
    write_doc(vault, "Tasks/c.md", {"title": "untagged"})

    assert await repo.all_tags("Tasks") == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_patch_rewrites_block_and_keeps_body(vault: Path) -> None:
    repo = _repo(vault)
    write_doc(vault, "Tasks/a.md", {"status": "Backlog"}, "Body text\n")

    await repo.patch("Tasks/a.md", {"order": 4, "endDate": ""})

    text = (vault / "Tasks" / "a.md").read_text("utf-8")
    assert text == "---\nstatus: Backlog\norder: 4\n---\n\nBody text\n"
    assert repo.metadata_for("Tasks/a.md") == {"status": "Backlog", "order": 4}


@pytest.mark.asyncio
async def test_patch_missing_document_raises(vault: Path) -> None:
    repo = _repo(vault)
    with pytest.raises(MissingDocument):
        await repo.patch("Tasks/ghost.md", {"order": 1})


class _EditedAfterRead(FileSystemDocumentStore):
    """Another editor saves a longer block right after our read returns."""

    def __init__(self, root: Path, replacement: str) -> None:
        super().__init__(root)
        self.replacement = replacement

    async def read(self, path: str) -> str:
        text = await super().read(path)
        (self.root / path).write_text(self.replacement, "utf-8")
        return text


@pytest.mark.asyncio
async def test_patch_splices_at_offsets_of_the_text_it_read(vault: Path) -> None:
    write_doc(vault, "Tasks/a.md", {"status": "Backlog"}, "BODY\n")
    store = _EditedAfterRead(
        vault, "---\nstatus: Backlog\nnotes: a much longer value here\n---\n\nBODY\n"
    )
    repo = TaskRepository(store, FrontMatterCache(vault))

    await repo.patch("Tasks/a.md", {"order": 0})

    out = (vault / "Tasks" / "a.md").read_text("utf-8")
    assert out.startswith("---\nstatus: Backlog\norder: 0\n---\n")
    assert "BODY" in out
    assert "notes" not in out


@pytest.mark.asyncio
async def test_rewrite_body_uses_the_block_it_read(vault: Path) -> None:
    write_doc(vault, "Tasks/a.md", {"status": "Backlog"}, "old\n")
    store = _EditedAfterRead(vault, "no block at all\n")
    repo = TaskRepository(store, FrontMatterCache(vault))

    await repo.rewrite_body("Tasks/a.md", "new\n")

    out = (vault / "Tasks" / "a.md").read_text("utf-8")
    assert out.startswith("---\nstatus: Backlog\n---\n")
    assert out.endswith("new\n")
    assert "old" not in out
