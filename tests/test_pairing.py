"""Tests for the two-step link pairing flow."""

from __future__ import annotations

import itertools

import pytest

from linkweave.annotations.marks import LINK_GLYPH, LINK_MARK, LinkAttrs
from linkweave.annotations.pairing import LinkPairingCoordinator, PairingState
from linkweave.core.ranges import TextRange
from linkweave.editor.schema import build_schema
from linkweave.editor.workspace import EditorWorkspace
from linkweave.errors import SchemaError, StepError, UnknownEditorError
from linkweave.events import AnnotationFeatureUnavailable, EditorClosed, EventBus, UpdateFirstLink


@pytest.fixture
def coordinator(workspace: EditorWorkspace, bus: EventBus) -> LinkPairingCoordinator:
    ids = (f"link-{index}" for index in itertools.count(1))
    active = LinkPairingCoordinator(workspace, id_factory=lambda: next(ids))
    bus.subscribe(UpdateFirstLink, active.apply_update_first_link)
    return active


def _links(workspace: EditorWorkspace, editor_id: str) -> list[LinkAttrs]:
    document = workspace.get_editor(editor_id).document
    return [LinkAttrs.from_mark(span.mark) for span in document.find_mark_spans(LINK_MARK)]


class TestPairingState:
    def test_take_clears_both_fields(self) -> None:
        state = PairingState()
        state.begin("a", "e1")
        assert state.is_waiting
        assert state.take() == ("a", "e1")
        assert state == PairingState()
        assert state.take() is None

    def test_half_set_state_is_treated_as_idle(self) -> None:
        state = PairingState(waiting_for_partner="a")
        assert state.take() is None
        assert state.waiting_for_partner is None


class TestFirstLeg:
    def test_first_call_inserts_unresolved_glyph(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="alpha beta")

        result = coordinator.begin_or_complete_link("e1")

        assert result.is_local_only
        assert result.span == TextRange(1, 2)
        assert result.link == LinkAttrs(id="link-1")
        editor = workspace.get_editor("e1")
        assert editor.document.textblocks()[0].text == LINK_GLYPH + "alpha beta"
        assert editor.selection == TextRange.caret(2)
        assert coordinator.state.waiting_for_partner == "link-1"
        assert coordinator.state.waiting_editor_id == "e1"

    def test_selection_is_replaced_by_the_glyph(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="alpha beta")

        coordinator.begin_or_complete_link("e1", (1, 6))

        assert workspace.get_editor("e1").document.textblocks()[0].text == LINK_GLYPH + " beta"

    def test_glyph_carries_no_other_marks(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(
            editor_id="e1",
            document={
                "type": "doc",
                "content": [
                    {"type": "paragraph", "content": [{"type": "text", "text": "bold", "marks": [{"type": "strong"}]}]}
                ],
            },
        )

        coordinator.begin_or_complete_link("e1", (3, 3))

        marks = workspace.get_editor("e1").document.marks_at(3)
        assert [mark.name for mark in marks] == [LINK_MARK]

    def test_cross_block_selection_keeps_the_text(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="one\ntwo")

        result = coordinator.begin_or_complete_link("e1", (2, 7))

        views = workspace.get_editor("e1").document.textblocks()
        assert [view.text for view in views] == ["o" + LINK_GLYPH + "ne", "two"]
        assert result.span == TextRange(2, 3)

    def test_position_outside_textblocks_snaps_inside(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="ab")

        result = coordinator.begin_or_complete_link("e1", (4, 4))

        assert result.span == TextRange(3, 4)
        assert workspace.get_editor("e1").document.textblocks()[0].text == "ab" + LINK_GLYPH

    def test_unknown_editor_raises(self, coordinator) -> None:
        with pytest.raises(UnknownEditorError):
            coordinator.begin_or_complete_link("missing")


class TestSecondLeg:
    def test_completion_defers_the_partner_update(
        self, workspace: EditorWorkspace, coordinator, bus: EventBus, record
    ) -> None:
        recorder = record(bus, UpdateFirstLink)
        workspace.open_editor(editor_id="e1", document="alpha")
        workspace.open_editor(editor_id="e2", document="beta")

        coordinator.begin_or_complete_link("e1")
        result = coordinator.begin_or_complete_link("e2")

        assert result.completed
        assert result.link == LinkAttrs(id="link-2", partner_id="link-1", target_editor_id="e1")
        assert result.pending == UpdateFirstLink(
            editor_id="e1", link_id="link-1", partner_id="link-2", target_editor_id="e2"
        )
        assert not coordinator.state.is_waiting
        assert recorder.events == []
        assert _links(workspace, "e1") == [LinkAttrs(id="link-1")]

        assert coordinator.flush_rendered("e2") == 1

        assert recorder.events == [result.pending]
        first, second = _links(workspace, "e1")[0], _links(workspace, "e2")[0]
        assert first == LinkAttrs(id="link-1", partner_id="link-2", target_editor_id="e2")
        assert first.is_inverse_of(second)
        assert coordinator.pending_updates() == ()

    def test_flush_for_another_editor_does_nothing(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="alpha")
        workspace.open_editor(editor_id="e2", document="beta")
        coordinator.begin_or_complete_link("e1")
        coordinator.begin_or_complete_link("e2")

        assert coordinator.flush_rendered("e1") == 0
        assert len(coordinator.pending_updates()) == 1

    def test_dispatch_pending_publishes_once(self, workspace: EditorWorkspace, coordinator, bus, record) -> None:
        recorder = record(bus, UpdateFirstLink)
        workspace.open_editor(editor_id="e1", document="alpha")
        workspace.open_editor(editor_id="e2", document="beta")
        coordinator.begin_or_complete_link("e1")
        result = coordinator.begin_or_complete_link("e2")

        assert coordinator.dispatch_pending(result)
        assert not coordinator.dispatch_pending(result)
        assert coordinator.flush_rendered("e2") == 0
        assert len(recorder.events) == 1

    def test_same_document_pair(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="one\ntwo")
        coordinator.begin_or_complete_link("e1", (1, 1))
        second = coordinator.begin_or_complete_link("e1", (7, 7))
        coordinator.dispatch_pending(second)

        first_link, second_link = _links(workspace, "e1")
        assert first_link == LinkAttrs(id="link-1", partner_id="link-2", target_editor_id="e1")
        assert second_link == LinkAttrs(id="link-2", partner_id="link-1", target_editor_id="e1")

    def test_third_call_starts_a_new_pairing(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="alpha")
        for _ in range(2):
            coordinator.begin_or_complete_link("e1")

        third = coordinator.begin_or_complete_link("e1")

        assert third.is_local_only
        assert coordinator.state.waiting_for_partner == third.link.id

    def test_failed_second_leg_keeps_waiting(self, workspace: EditorWorkspace, coordinator, monkeypatch) -> None:
        workspace.open_editor(editor_id="e1", document="alpha")
        workspace.open_editor(editor_id="e2", document="beta")
        coordinator.begin_or_complete_link("e1")

        def explode(*args, **kwargs):
            raise StepError("boom", step="insert_link")

        monkeypatch.setattr(coordinator, "_insert_link", explode)
        with pytest.raises(StepError):
            coordinator.begin_or_complete_link("e2")

        assert coordinator.state.waiting_for_partner == "link-1"
        assert coordinator.state.waiting_editor_id == "e1"


class TestPartnerUpdate:
    def test_missing_editor_or_link_is_ignored(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="alpha")
        event = UpdateFirstLink(editor_id="e1", link_id="nope", partner_id="x", target_editor_id="e2")

        assert not coordinator.apply_update_first_link(event)
        assert not coordinator.apply_update_first_link(
            UpdateFirstLink(editor_id="gone", link_id="nope", partner_id="x", target_editor_id="e2")
        )

    def test_only_the_first_matching_link_is_rewritten(self, workspace: EditorWorkspace, coordinator, schema) -> None:
        link = LinkAttrs(id="dup").create_mark(schema).to_json()
        workspace.open_editor(
            editor_id="e1",
            document={
                "type": "doc",
                "content": [
                    {"type": "paragraph", "content": [{"type": "text", "text": LINK_GLYPH, "marks": [link]}]},
                    {"type": "paragraph", "content": [{"type": "text", "text": LINK_GLYPH, "marks": [link]}]},
                ],
            },
        )

        assert coordinator.apply_update_first_link(
            UpdateFirstLink(editor_id="e1", link_id="dup", partner_id="p", target_editor_id="e2")
        )

        first, second = _links(workspace, "e1")
        assert first.partner_id == "p"
        assert second.partner_id is None


class TestLifecycle:
    def test_cancel_leaves_the_glyph(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="alpha")
        coordinator.begin_or_complete_link("e1")

        assert coordinator.cancel()
        assert not coordinator.cancel()
        assert _links(workspace, "e1") == [LinkAttrs(id="link-1")]

    def test_closing_the_waiting_editor_keeps_the_pairing_by_default(
        self, workspace: EditorWorkspace, coordinator, bus: EventBus
    ) -> None:
        bus.subscribe(EditorClosed, coordinator.on_editor_closed)
        workspace.open_editor(editor_id="e1", document="alpha")
        workspace.open_editor(editor_id="e2", document="beta")
        coordinator.begin_or_complete_link("e1")
        workspace.close_editor("e1")

        result = coordinator.begin_or_complete_link("e2")

        assert result.link.target_editor_id == "e1"
        assert coordinator.flush_rendered("e2") == 1

    def test_cancel_on_close(self, workspace: EditorWorkspace, bus: EventBus) -> None:
        coordinator = LinkPairingCoordinator(workspace, cancel_on_close=True)
        bus.subscribe(EditorClosed, coordinator.on_editor_closed)
        workspace.open_editor(editor_id="e1", document="alpha")
        coordinator.begin_or_complete_link("e1")

        workspace.close_editor("e1")

        assert not coordinator.state.is_waiting

    def test_closing_the_completing_editor_drops_its_pending_update(
        self, workspace: EditorWorkspace, coordinator, bus: EventBus
    ) -> None:
        bus.subscribe(EditorClosed, coordinator.on_editor_closed)
        workspace.open_editor(editor_id="e1", document="alpha")
        workspace.open_editor(editor_id="e2", document="beta")
        coordinator.begin_or_complete_link("e1")
        coordinator.begin_or_complete_link("e2")

        workspace.close_editor("e2")

        assert coordinator.pending_updates() == ()


class TestMissingSchemaSupport:
    def test_schema_without_links_is_rejected_untouched(self, workspace: EditorWorkspace, coordinator) -> None:
        workspace.open_editor(editor_id="e1", document="alpha")
        workspace.open_editor(editor_id="plain", document="text", schema=build_schema(include_links=False))
        coordinator.begin_or_complete_link("e1")
        before = workspace.get_editor("plain").to_json()

        with pytest.raises(SchemaError) as excinfo:
            coordinator.begin_or_complete_link("plain")

        assert excinfo.value.feature == "link"
        assert workspace.get_editor("plain").to_json() == before
        assert coordinator.state.waiting_for_partner == "link-1"

    def test_session_reports_the_feature_unavailable(self, session, record) -> None:
        recorder = record(session.bus, AnnotationFeatureUnavailable)
        session.open_editor(editor_id="plain", document="text", schema=build_schema(include_links=False))

        session.request_link("plain")

        assert [(event.feature, event.editor_id) for event in recorder.events] == [("link", "plain")]


def test_session_pairs_across_documents(session) -> None:
    session.open_editor(editor_id="e1", document="alpha")
    session.open_editor(editor_id="e2", document="beta")

    session.request_link("e1")
    session.request_link("e2")
    session.notify_rendered("e2")

    first = LinkAttrs.from_mark(session.workspace.get_editor("e1").document.marks_of_type(LINK_MARK)[0])
    second = LinkAttrs.from_mark(session.workspace.get_editor("e2").document.marks_of_type(LINK_MARK)[0])
    assert first.is_inverse_of(second)
    assert (first.target_editor_id, second.target_editor_id) == ("e2", "e1")
