# tests/test_service.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from taskvault.tasks.service import CopyOptions, prune_empty, sanitize_file_name, utc_timestamp

from .fakes import write_doc

NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)
CR = "Change Requests"


@pytest.fixture()
def service(state):
    state.service.clock = lambda: NOW
    return state.service


def _meta(state, path: str) -> dict:
    state.cache.invalidate(path)
    return state.repository.metadata_for(path)


def test_sanitize_file_name() -> None:
    assert sanitize_file_name("a/b:c") == "a-b-c"
    assert sanitize_file_name("[[Link]]#^") == "Link"
    assert sanitize_file_name("CON") == "file-CON"
    assert sanitize_file_name("--a--b--") == "a-b"
    assert sanitize_file_name("...") == "untitled"
    assert sanitize_file_name("  Report.  ") == "Report"


def test_helpers() -> None:
    assert utc_timestamp(NOW) == "2024-03-06T12:00:00.000Z"
    assert prune_empty({"a": " x ", "b": "", "c": [], "d": None, "e": 0}) == {"a": "x", "e": 0}


@pytest.mark.asyncio
async def test_create_change_request_numbers_and_names(state, service) -> None:
    write_doc(state.settings.vault_root, f"{CR}/CR-2 - Older.md", {"number": "CR-2"})

    ref = await service.create_change_request({"title": "Payment retries"})
    assert ref.path == f"{CR}/CR-3 - Payment retries.md"
    assert _meta(state, ref.path) == {"title": "Payment retries", "number": "CR-3"}

    ref = await service.create_change_request({"title": "Explicit", "number": "17"})
    assert ref.path == f"{CR}/CR-17 - Explicit.md"


@pytest.mark.asyncio
async def test_create_task_derives_title_and_links_cr(state, service) -> None:
    write_doc(
        state.settings.vault_root,
        f"{CR}/CR-3 - Payment retries.md",
        {"number": "CR-3", "title": "Payment retries"},
    )

    ref = await service.create_task({"crNumber": "CR-3", "taskNumber": "T1", "service": "billing"})

    assert ref.path == "Tasks/CR-3 T1 Payment retries - billing.md"
    meta = _meta(state, ref.path)
    assert meta["title"] == "[CR-3 T1] Payment retries - [billing]"
    assert meta["status"] == "Backlog"
    assert meta["createdAt"] == "2024-03-06T12:00:00.000Z"
    assert meta["crLink"] == f"[[{CR}/CR-3 - Payment retries.md]]"
    assert state.projection.get(ref.path) is not None

    again = await service.create_task({"crNumber": "CR-3", "taskNumber": "T1", "service": "billing"})
    assert again.path != ref.path
    assert again.path.endswith(" 1709726400000.md")


@pytest.mark.asyncio
async def test_update_fields_coerces_and_fills_start_date(state, service) -> None:
    path = write_doc(state.settings.vault_root, "Tasks/a.md", {"status": "Backlog", "endDate": "2024-01-01"})
    await state.reload()

    ok = await service.update_fields(path, {"status": "In Progress", "tags": "x, y", "endDate": ""})

    assert ok
    assert _meta(state, path) == {
        "status": "In Progress",
        "tags": ["x", "y"],
        "startDate": "2024-03-06",
    }
    assert state.projection.get(path).status == "In Progress"


@pytest.mark.asyncio
async def test_archive_and_delete(state, service) -> None:
    vault = state.settings.vault_root
    a = write_doc(vault, "Tasks/a.md", {"status": "Backlog"})
    b = write_doc(vault, "Tasks/b.md", {"status": "Backlog"})
    await state.reload()

    assert await service.archive(a)
    assert _meta(state, a)["archived"] is True
    assert [it.path for it in state.board.buckets()["Backlog"]] == [b]

    assert await service.delete(b)
    assert not (vault / b).exists()
    assert b not in state.projection
    assert state.notifier.messages == ["Task archived", "Task deleted"]


@pytest.mark.asyncio
async def test_failed_write_notifies_and_reloads(state, service) -> None:
    write_doc(state.settings.vault_root, "Tasks/a.md", {"status": "Backlog"})

    ok = await service.archive("Tasks/ghost.md")

    assert not ok
    assert len(state.notifier.messages) == 1
    assert state.notifier.messages[0].startswith("Failed to archive task:")
    # the recovery reload picked up what is on disk
    assert "Tasks/a.md" in state.projection


@pytest.mark.asyncio
async def test_toggle_subtask_rewrites_only_that_line(state, service) -> None:
    vault = state.settings.vault_root
    body = "Notes\n\n### Subtasks\n - [ ] Write code\n - [ ] Review\n"
    path = write_doc(vault, "Tasks/a.md", {"status": "Backlog"}, body)
    await state.reload()

    assert await service.toggle_subtask(path, "Write code", True)
    assert not await service.toggle_subtask(path, "Missing", True)

    text = (vault / path).read_text("utf-8")
    assert text == (
        "---\nstatus: Backlog\n---\n\nNotes\n\n### Subtasks\n - [x] Write code\n - [ ] Review\n"
    )
    subtasks = state.projection.get(path).subtasks
    assert [(st.text, st.completed) for st in subtasks] == [("Write code", True), ("Review", False)]


@pytest.mark.asyncio
async def test_copy_task_drops_fields_unless_asked(state, service) -> None:
    vault = state.settings.vault_root
    source = write_doc(
        vault,
        "Tasks/src.md",
        {
            "title": "[CR-3 T1] Payments - [billing]",
            "crNumber": "CR-3",
            "taskNumber": "T1",
            "service": "billing",
            "status": "Done",
            "order": 4,
            "assignee": ["ann"],
            "startDate": "2024-01-01",
            "tags": ["api"],
            "notes": "remember",
        },
        "### Subtasks\n - [x] Write code\n",
    )
    await state.reload()

    ref = await service.copy_task(source, "payments")

    assert ref.path == "Tasks/CR-3 T1 - payments.md"
    meta = _meta(state, ref.path)
    assert meta["service"] == "payments"
    assert meta["status"] == "Backlog"
    for dropped in ("order", "assignee", "startDate", "tags", "notes"):
        assert dropped not in meta
    assert state.notifier.messages == [f"Task copied to {ref.path}"]

    ref2 = await service.copy_task(
        source, "search", options=CopyOptions(tags=True, subtasks=True), priority="High"
    )
    meta2 = _meta(state, ref2.path)
    assert meta2["tags"] == ["api"]
    assert meta2["priority"] == "High"
    assert " - [x] Write code" in (vault / ref2.path).read_text("utf-8")

    with pytest.raises(ValueError):
        await service.copy_task(source, "  ")
