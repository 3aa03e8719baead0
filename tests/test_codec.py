# tests/test_codec.py

from __future__ import annotations

from taskvault.metadata.cache import locate_block, parse_front_matter
from taskvault.metadata.codec import (
    escape_inline,
    escape_plain,
    merge_document,
    merge_mapping,
    serialize_block,
)

DATE_KEYS = frozenset({"startDate", "endDate"})


def _parse(text: str) -> dict:
    return parse_front_matter(text).mapping


def test_round_trip_is_stable_for_mixed_values() -> None:
    mapping = {
        "title": "Fix: login",
        "notes": "line one\nline two",
        "tags": ["api", "needs review"],
        "assignee": [],
        "service": "",
        "startDate": "",
    }
    text = serialize_block(mapping, DATE_KEYS)

    again = serialize_block(merge_mapping(_parse(text), {}), DATE_KEYS)

    assert again == text
    assert text == (
        "---\n"
        'title: "Fix: login"\n'
        "notes: |-\n"
        "  line one\n"
        "  line two\n"
        "tags: [api, needs review]\n"
        "assignee: []\n"
        'service: ""\n'
        "---"
    )


def test_empty_date_fields_are_omitted_but_other_blanks_kept() -> None:
    text = serialize_block({"startDate": "  ", "owner": "", "gone": None}, DATE_KEYS)
    assert text == '---\nowner: ""\n---'


def test_strings_that_would_change_type_are_quoted() -> None:
    mapping = {"flag": "true", "count": "42", "day": "2024-01-05", "empty": "null"}
    parsed = _parse(serialize_block(mapping))
    assert parsed == mapping


def test_scalars_render_plain() -> None:
    assert escape_plain("Backlog") == "Backlog"
    assert escape_plain("a: b") == '"a: b"'
    assert escape_plain("#hash") == '"#hash"'
    assert escape_plain(3) == "3"
    assert escape_plain(True) == "true"


def test_inline_list_elements_quote_only_when_needed() -> None:
    assert escape_inline("plain") == "plain"
    assert escape_inline("a,b") == '"a,b"'
    assert escape_inline("") == '""'
    values = ['say "hi"', "x, y", "[z]"]
    assert _parse(serialize_block({"tags": values}))["tags"] == values


def test_inline_element_with_quotes_is_backslash_escaped() -> None:
    assert escape_inline('say "hi"') == '"say \\"hi\\""'
    block = serialize_block({"tags": ['say "hi"', "ok"]})
    assert _parse(block) == {"tags": ['say "hi"', "ok"]}


def test_multiline_strings_keep_their_exact_text() -> None:
    for value in ("a\nb\n", "a\nb", "  indented\nnext", "tail\n\n"):
        assert _parse(serialize_block({"notes": value}))["notes"] == value


def test_list_with_multiline_element_round_trips() -> None:
    values = ["first\nsecond", "third"]
    assert _parse(serialize_block({"items": values}))["items"] == values


def test_merge_rewrites_only_the_block() -> None:
    doc = "---\nstatus: Backlog\n---\n\n# Body\n- [ ] keep me\n"
    pos = locate_block(doc)

    out = merge_document(doc, pos, _parse(doc), {"order": 2})

    assert out == "---\nstatus: Backlog\norder: 2\n---\n\n# Body\n- [ ] keep me\n"


def test_merge_none_removes_a_key() -> None:
    doc = "---\nstatus: Done\nendDate: 2024-01-01\n---\nbody"
    out = merge_document(doc, locate_block(doc), _parse(doc), {"endDate": None})
    assert out == "---\nstatus: Done\n---\nbody"


def test_merge_without_block_prepends_one() -> None:
    assert merge_document("Just body", None, {}, {"status": "Backlog"}) == (
        "---\nstatus: Backlog\n---\n\nJust body"
    )
    assert merge_document("", None, {}, {"status": "Backlog"}) == "---\nstatus: Backlog\n---\n"


def test_merge_is_idempotent() -> None:
    doc = '---\ntitle: "A: b"\ntags: [x]\n---\n\ntext'
    once = merge_document(doc, locate_block(doc), _parse(doc), {})
    twice = merge_document(once, locate_block(once), _parse(once), {})
    assert once == doc
    assert twice == once
