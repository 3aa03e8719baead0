# tests/test_metadata_cache.py

from __future__ import annotations

from pathlib import Path

import pytest

from taskvault.core.errors import UnparseableMetadata
from taskvault.metadata.cache import (
    FrontMatterCache,
    locate_block,
    parse_front_matter,
    parse_or_empty,
)


def test_locate_block_requires_leading_delimiter_and_closing_line() -> None:
    assert locate_block("no block here") is None
    assert locate_block("---\nstatus: x\nno closing") is None

    pos = locate_block("---\nstatus: x\n---\nbody")
    assert pos is not None
    assert (pos.start, pos.end) == (0, len("---\nstatus: x\n---"))


def test_dates_stay_strings() -> None:
    meta = parse_front_matter("---\nstartDate: 2024-01-05\norder: 3\n---\n")
    assert meta.mapping == {"startDate": "2024-01-05", "order": 3}


def test_unparseable_block_raises_with_position() -> None:
    text = "---\nstatus: [unclosed\n---\nbody"
    with pytest.raises(UnparseableMetadata) as ei:
        parse_front_matter(text, path="Tasks/bad.md")
    assert ei.value.path == "Tasks/bad.md"
    assert ei.value.position is not None


def test_unparseable_block_reads_as_empty_mapping() -> None:
    meta = parse_or_empty("---\n- just\n- a list\n---\nbody")
    assert meta.mapping == {}
    assert meta.position is not None
    assert meta.error


def test_cache_refreshes_on_change_and_invalidate(tmp_path: Path) -> None:
    doc = tmp_path / "Tasks" / "a.md"
    doc.parent.mkdir()
    doc.write_text("---\nstatus: Backlog\n---\n", "utf-8")
    cache = FrontMatterCache(tmp_path)

    assert cache.get_file_cache("Tasks/a.md").mapping == {"status": "Backlog"}

    doc.write_text("---\nstatus: In Progress\n---\n", "utf-8")
    cache.invalidate("Tasks/a.md")
    assert cache.get_file_cache("Tasks/a.md").mapping == {"status": "In Progress"}

    doc.unlink()
    assert cache.get_file_cache("Tasks/a.md") is None
