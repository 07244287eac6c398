"""Tests for :mod:`linkweave.editor.schema`."""

from __future__ import annotations

import pytest

from linkweave.annotations.marks import HIGHLIGHT_MARK, LINK_MARK
from linkweave.editor.schema import MarkSpec, NodeSpec, Schema, build_schema, default_schema
from linkweave.errors import SchemaError


def test_default_schema_registers_annotation_marks() -> None:
    schema = default_schema()
    assert schema.has_mark(LINK_MARK)
    assert schema.has_mark(HIGHLIGHT_MARK)
    assert default_schema() is schema


def test_annotation_marks_are_not_inclusive() -> None:
    schema = default_schema()
    assert not schema.mark_type(LINK_MARK).inclusive
    assert not schema.mark_type(HIGHLIGHT_MARK).inclusive
    assert schema.mark_type("strong").inclusive


def test_require_mark_reports_the_feature() -> None:
    schema = build_schema(include_links=False)
    with pytest.raises(SchemaError) as excinfo:
        schema.require_mark(LINK_MARK, feature="link")
    assert excinfo.value.feature == "link"
    assert excinfo.value.details() == {"feature": "link", "type": LINK_MARK}
    assert schema.require_mark(HIGHLIGHT_MARK).name == HIGHLIGHT_MARK


def test_link_mark_fills_missing_attributes_with_none() -> None:
    mark = default_schema().mark(LINK_MARK, {"id": "a"})
    assert dict(mark.attrs) == {"id": "a", "partnerId": None, "targetEditorId": None}


def test_mistyped_attribute_falls_back_to_default() -> None:
    mark = default_schema().mark(HIGHLIGHT_MARK, {"content": 5, "color": "red"})
    assert mark.attr("content") == ""
    assert mark.attr("color") == "red"


def test_unknown_types_raise_schema_error() -> None:
    schema = default_schema()
    with pytest.raises(SchemaError):
        schema.node_type("table")
    with pytest.raises(SchemaError):
        schema.mark_type("underline")


def test_node_type_classification() -> None:
    schema = default_schema()
    assert schema.node_type("paragraph").is_textblock
    assert not schema.node_type("blockquote").is_textblock
    assert schema.node_type("hard_break").is_inline
    assert schema.node_type("hard_break").is_leaf
    assert schema.node_type("doc").allows_child(schema.node_type("paragraph"))
    assert not schema.node_type("doc").allows_child(schema.node_type("text"))


def test_duplicate_definitions_are_rejected() -> None:
    nodes = [NodeSpec("doc", content=("block",)), NodeSpec("text", group="inline", inline=True)]
    with pytest.raises(SchemaError):
        Schema(nodes + [NodeSpec("text")])
    with pytest.raises(SchemaError):
        Schema(nodes, [MarkSpec("em"), MarkSpec("em")])


def test_schema_requires_text_and_top_node() -> None:
    with pytest.raises(SchemaError):
        Schema([NodeSpec("doc", content=("block",))])


def test_mark_sets_are_kept_in_rank_order() -> None:
    schema = default_schema()
    strong = schema.mark("strong")
    em = schema.mark("em")
    marks = strong.add_to_set(em.add_to_set(()))
    assert [mark.name for mark in marks] == ["strong", "em"]
