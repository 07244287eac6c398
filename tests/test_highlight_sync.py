"""Tests for highlight propagation across open documents."""

from __future__ import annotations

import re

import pytest

from linkweave.annotations.marks import HIGHLIGHT_MARK, HighlightAttrs
from linkweave.core.ranges import TextRange
from linkweave.editor.schema import build_schema
from linkweave.errors import InvalidMarkError, SchemaError
from linkweave.events import AnnotationFeatureUnavailable, HighlightColorsReset, SyncHighlight

DARK = re.compile(r"^rgba\(\d+, \d+, \d+, 0\.4\)$")


def _spans(session, editor_id: str) -> list[tuple[int, int, str, str]]:
    document = session.workspace.get_editor(editor_id).document
    return [
        (span.start, span.end, span.mark.attr("content"), span.mark.attr("color"))
        for span in document.find_mark_spans(HIGHLIGHT_MARK)
    ]


class TestCreation:
    def test_highlight_propagates_to_other_editors(self, session, record) -> None:
        recorder = record(session.bus, SyncHighlight)
        session.open_editor(editor_id="e1", document="foo bar foo")
        session.open_editor(editor_id="e2", document="foo and foo and foo")

        color = session.highlight("e1", "foo", (1, 4))

        assert DARK.match(color)
        assert recorder.events == [SyncHighlight(content="foo", color=color, origin_editor_id="e1")]
        assert _spans(session, "e1") == [(1, 4, "foo", color)]
        assert _spans(session, "e2") == [
            (1, 4, "foo", color),
            (9, 12, "foo", color),
            (17, 20, "foo", color),
        ]

    def test_repeated_broadcast_is_a_no_op(self, session) -> None:
        session.open_editor(editor_id="e1", document="foo")
        session.open_editor(editor_id="e2", document="foo foo")
        color = session.highlight("e1", "foo", (1, 4))
        editor = session.workspace.get_editor("e2")
        version = editor.version_id

        assert session.synchronizer.on_highlight_broadcast(SyncHighlight("foo", color, "e1")) == 0
        assert editor.version_id == version

    def test_defaults_to_the_selection(self, session) -> None:
        window = session.open_editor(editor_id="e1", document="say hello")
        window.editor.set_selection((5, 10))

        session.highlight("e1", "hello")

        assert [span[:3] for span in _spans(session, "e1")] == [(5, 10, "hello")]

    def test_mismatched_range_is_rejected(self, session) -> None:
        session.open_editor(editor_id="e1", document="foo bar")
        with pytest.raises(InvalidMarkError):
            session.highlight("e1", "foo", (5, 8))
        with pytest.raises(InvalidMarkError):
            session.highlight("e1", "", (1, 1))
        assert _spans(session, "e1") == []

    def test_schema_without_highlights(self, session, record) -> None:
        recorder = record(session.bus, AnnotationFeatureUnavailable)
        session.open_editor(editor_id="plain", document="foo", schema=build_schema(include_highlights=False))
        session.open_editor(editor_id="e1", document="foo")

        with pytest.raises(SchemaError):
            session.highlight("plain", "foo", (1, 4))
        session.highlight("e1", "foo", (1, 4))

        assert [(event.feature, event.editor_id) for event in recorder.events] == [("highlight", "plain")]
        assert session.workspace.get_editor("plain").document.find_mark_spans(HIGHLIGHT_MARK) == []

    def test_same_term_gets_one_colour(self, session) -> None:
        session.open_editor(editor_id="e1", document="foo foo")
        first = session.highlight("e1", "foo", (1, 4))
        second = session.highlight("e1", "foo", (5, 8))
        assert first == second
        assert len(session.palette.allocator.registry) == 1


class TestOverlap:
    def test_longer_term_is_kept(self, session) -> None:
        session.open_editor(editor_id="e1", document="foobar")
        session.open_editor(editor_id="e2", document="foobar foo")
        session.highlight("e1", "foobar", (1, 7))

        session.highlight("e1", "foo", (1, 4))

        contents = [(start, end, content) for start, end, content, _ in _spans(session, "e2")]
        assert contents == [(1, 7, "foobar"), (8, 11, "foo")]


class TestTheme:
    def test_theme_switch_recolours_without_allocating(self, session) -> None:
        session.open_editor(editor_id="e1", document="foo")
        session.open_editor(editor_id="e2", document="foo")
        dark = session.highlight("e1", "foo", (1, 4))

        session.set_theme("daylight")

        light = _spans(session, "e2")[0][3]
        assert not session.is_dark_mode
        assert light.endswith(", 0.35)")
        assert light.replace(", 0.35)", "") == dark.replace(", 0.4)", "")
        assert _spans(session, "e1")[0][3] == light
        assert len(session.palette.allocator.registry) == 1

    def test_on_theme_changed_reports_the_count(self, session) -> None:
        session.open_editor(editor_id="e1", document="foo foo")
        session.highlight("e1", "foo", (1, 4))
        session.highlight("e1", "foo", (5, 8))

        assert session.synchronizer.on_theme_changed(False) == 2
        assert session.synchronizer.on_theme_changed(False) == 0

    def test_unparseable_colour_survives_a_theme_switch(self, session, schema) -> None:
        stored = HighlightAttrs("bar", "chartreuse").create_mark(schema).to_json()
        session.open_editor(
            editor_id="saved",
            document={
                "type": "doc",
                "content": [{"type": "paragraph", "content": [{"type": "text", "text": "bar", "marks": [stored]}]}],
            },
        )

        assert session.synchronizer.on_theme_changed(False) == 0
        assert _spans(session, "saved") == [(1, 4, "bar", "chartreuse")]
        assert len(session.palette.allocator.registry) == 0


class TestRegistryLifecycle:
    def test_registry_resets_when_no_document_has_highlights(self, session, record) -> None:
        recorder = record(session.bus, HighlightColorsReset)
        session.open_editor(editor_id="e1", document="foo")
        session.open_editor(editor_id="e2", document="foo")
        session.highlight("e1", "foo", (1, 4))

        session.close_editor("e2")
        assert recorder.events == []

        session.close_editor("e1")
        assert len(recorder.events) == 1
        assert len(session.palette) == 0
        assert len(session.palette.allocator.registry) == 0

    def test_persisted_colours_are_reused(self, session, schema) -> None:
        stored = HighlightAttrs("bar", "rgba(10, 20, 30, 0.4)").create_mark(schema).to_json()
        session.open_editor(
            editor_id="saved",
            document={
                "type": "doc",
                "content": [{"type": "paragraph", "content": [{"type": "text", "text": "bar", "marks": [stored]}]}],
            },
        )
        session.open_editor(editor_id="e1", document="a bar")

        assert session.highlight("e1", "bar", (3, 6)) == "rgba(10, 20, 30, 0.4)"


class TestPassivePass:
    def test_refresh_marks_new_occurrences_without_broadcast(self, session, record) -> None:
        session.open_editor(editor_id="e1", document="foo")
        session.highlight("e1", "foo", (1, 4))
        recorder = record(session.bus, SyncHighlight)
        editor = session.workspace.get_editor("e1")
        tr = editor.transaction().insert_text(4, " foo")
        editor.apply_transaction(tr)

        assert [span[:2] for span in _spans(session, "e1")] == [(1, 4), (5, 8)]
        assert session.synchronizer.refresh_known_terms("e1") == 0
        assert recorder.events == []

    def test_known_terms_longest_first(self, session) -> None:
        session.open_editor(editor_id="e1", document="ab abc")
        session.highlight("e1", "ab", (1, 3))
        session.highlight("e1", "abc", (4, 7))

        terms = session.synchronizer.known_terms(session.workspace.get_editor("e1"))

        assert [term.content for term in terms] == ["abc", "ab"]
        assert session.synchronizer.refresh_known_terms("missing") == 0


def test_highlight_range_helper(session) -> None:
    session.open_editor(editor_id="e1", document="foo")
    session.highlight("e1", "foo", TextRange(1, 4))
    assert len(_spans(session, "e1")) == 1
