"""Tests for link and highlight attribute models."""

from __future__ import annotations

import pytest

from linkweave.annotations.marks import (
    HIGHLIGHT_MARK,
    LINK_MARK,
    HighlightAttrs,
    LinkAttrs,
    is_highlight,
    is_link,
    new_link_id,
)
from linkweave.editor.document_model import Document
from linkweave.editor.schema import Schema, build_schema
from linkweave.errors import InvalidMarkError, SchemaError


def _doc_with_marks(*marks: dict) -> dict:
    return {
        "type": "doc",
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": "x", "marks": list(marks)}]}],
    }


class TestLinkAttrs:
    """Bidirectional link attributes."""

    def test_unresolved_link_serializes_explicit_nulls(self) -> None:
        attrs = LinkAttrs(id="a")
        assert attrs.to_attrs() == {"id": "a", "partnerId": None, "targetEditorId": None}
        assert not attrs.is_resolved

    def test_inverse_requires_both_directions(self) -> None:
        first = LinkAttrs(id="a", partner_id="b", target_editor_id="e2")
        second = LinkAttrs(id="b", partner_id="a", target_editor_id="e1")
        stranger = LinkAttrs(id="c", partner_id="a", target_editor_id="e1")
        assert first.is_inverse_of(second)
        assert second.is_inverse_of(first)
        assert not first.is_inverse_of(stranger)
        assert not LinkAttrs(id="a").is_inverse_of(LinkAttrs(id="b"))

    def test_points_elsewhere(self) -> None:
        assert LinkAttrs(id="a", partner_id="b", target_editor_id="e2").points_elsewhere("e1")
        assert not LinkAttrs(id="a", partner_id="b", target_editor_id="e1").points_elsewhere("e1")
        assert not LinkAttrs(id="a").points_elsewhere("e1")

    def test_with_partner_returns_updated_copy(self) -> None:
        original = LinkAttrs(id="a")
        updated = original.with_partner("b", "e2")
        assert original.partner_id is None
        assert (updated.partner_id, updated.target_editor_id) == ("b", "e2")

    def test_from_attrs_requires_an_id(self) -> None:
        with pytest.raises(InvalidMarkError):
            LinkAttrs.from_attrs({"partnerId": "b"})
        assert LinkAttrs.from_attrs({"id": "a", "partnerId": ""}).partner_id is None

    def test_create_mark_requires_schema_support(self) -> None:
        with pytest.raises(SchemaError):
            LinkAttrs(id="a").create_mark(build_schema(include_links=False))

    def test_new_link_ids_are_unique(self) -> None:
        assert new_link_id() != new_link_id()


class TestHighlightAttrs:
    """Synchronized highlight attributes."""

    def test_validation(self) -> None:
        with pytest.raises(InvalidMarkError):
            HighlightAttrs("", "rgba(1, 2, 3, 0.4)").validate()
        with pytest.raises(InvalidMarkError):
            HighlightAttrs("term", "").validate()

    def test_from_attrs_tolerates_bad_values(self) -> None:
        attrs = HighlightAttrs.from_attrs({"content": None, "color": 3})
        assert attrs == HighlightAttrs("", "")

    def test_from_mark_checks_the_type(self, schema: Schema) -> None:
        with pytest.raises(InvalidMarkError):
            HighlightAttrs.from_mark(schema.mark("strong"))


class TestPersistence:
    """Marks survive a serialize/parse cycle with every attribute present."""

    def test_unresolved_link_round_trip(self, schema: Schema) -> None:
        mark = LinkAttrs(id="a").create_mark(schema)
        payload = mark.to_json()
        assert payload == {"type": LINK_MARK, "attrs": {"id": "a", "partnerId": None, "targetEditorId": None}}
        doc = Document.from_json(schema, _doc_with_marks(payload))
        assert LinkAttrs.from_mark(doc.marks_of_type(LINK_MARK)[0]) == LinkAttrs(id="a")

    def test_resolved_link_and_highlight_round_trip(self, schema: Schema) -> None:
        link = LinkAttrs(id="a", partner_id="b", target_editor_id="e2")
        highlight = HighlightAttrs("x", "rgba(1, 2, 3, 0.4)")
        doc = Document.from_json(
            schema,
            _doc_with_marks(link.create_mark(schema).to_json(), highlight.create_mark(schema).to_json()),
        )
        reparsed = Document.from_json(schema, doc.to_json())
        marks = reparsed.marks_at(1)
        assert [mark.name for mark in marks] == [LINK_MARK, HIGHLIGHT_MARK]
        assert LinkAttrs.from_mark(marks[0]) == link
        assert HighlightAttrs.from_mark(marks[1]) == highlight
        assert is_link(marks[0]) and is_highlight(marks[1])

    def test_missing_attributes_load_as_null(self, schema: Schema) -> None:
        doc = Document.from_json(schema, _doc_with_marks({"type": LINK_MARK, "attrs": {"id": "a"}}))
        mark = doc.marks_of_type(LINK_MARK)[0]
        assert mark.to_json()["attrs"] == {"id": "a", "partnerId": None, "targetEditorId": None}
