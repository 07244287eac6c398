"""Tests for literal occurrence scanning and the overlap policy."""

from __future__ import annotations

from linkweave.annotations.marks import HighlightAttrs
from linkweave.annotations.occurrences import find_occurrences, plan_highlight, should_highlight
from linkweave.core.ranges import TextRange
from linkweave.editor.document_model import Document
from linkweave.editor.schema import Schema
from linkweave.editor.transaction import Transaction


def _mark(schema: Schema, content: str, color: str = "rgba(1, 2, 3, 0.4)"):
    return HighlightAttrs(content, color).create_mark(schema)


def test_matches_are_non_overlapping_and_case_sensitive(schema: Schema) -> None:
    doc = Document.from_text(schema, "aaaa Aa")
    assert find_occurrences(doc, "aa") == [TextRange(1, 3), TextRange(3, 5)]


def test_matches_do_not_cross_blocks(schema: Schema) -> None:
    doc = Document.from_text(schema, "ab\ncd\nbc")
    assert find_occurrences(doc, "bc") == [TextRange(8, 10)]
    assert find_occurrences(doc, "") == []


def test_matches_do_not_cross_inline_leaves(schema: Schema) -> None:
    doc = Document.from_json(
        schema,
        {
            "type": "doc",
            "content": [
                {
                    "type": "paragraph",
                    "content": [{"type": "text", "text": "ab"}, {"type": "hard_break"}, {"type": "text", "text": "cd"}],
                }
            ],
        },
    )
    assert find_occurrences(doc, "bc") == []


def test_already_marked_occurrences_are_skipped(schema: Schema) -> None:
    mark = _mark(schema, "foo")
    doc = Transaction(Document.from_text(schema, "foo foo")).add_mark(1, 4, mark).doc
    assert plan_highlight(doc, mark) == [TextRange(5, 8)]


def test_longer_existing_term_wins(schema: Schema) -> None:
    doc = Transaction(Document.from_text(schema, "foobar foo")).add_mark(1, 7, _mark(schema, "foobar")).doc
    assert plan_highlight(doc, _mark(schema, "foo")) == [TextRange(8, 11)]


def test_longer_new_term_replaces_shorter(schema: Schema) -> None:
    doc = Transaction(Document.from_text(schema, "foobar")).add_mark(1, 4, _mark(schema, "foo")).doc
    assert should_highlight(doc, TextRange(1, 7), _mark(schema, "foobar"))


def test_equal_length_existing_term_stays(schema: Schema) -> None:
    doc = Transaction(Document.from_text(schema, "abcd")).add_mark(1, 4, _mark(schema, "abc")).doc
    assert not should_highlight(doc, TextRange(2, 5), _mark(schema, "bcd"))


def test_same_term_in_another_colour_is_recoloured(schema: Schema) -> None:
    doc = Transaction(Document.from_text(schema, "foo")).add_mark(1, 4, _mark(schema, "foo", "rgba(9, 9, 9, 0.4)")).doc
    assert should_highlight(doc, TextRange(1, 4), _mark(schema, "foo"))
