"""Tests for the debounced passive highlight pass."""

from __future__ import annotations

import asyncio
import random

import pytest

from linkweave.annotations.marks import HIGHLIGHT_MARK
from linkweave.services.settings import HighlightSettings, Settings
from linkweave.session import AnnotationSession


def _quick_session(delay: float = 0.01) -> AnnotationSession:
    settings = Settings(highlight=HighlightSettings(auto_highlight_delay=delay))
    return AnnotationSession(settings=settings, rng=random.Random(11))


def _span_count(session: AnnotationSession, editor_id: str) -> int:
    return len(session.workspace.get_editor(editor_id).document.find_mark_spans(HIGHLIGHT_MARK))


@pytest.mark.asyncio
async def test_pass_runs_after_typing_pauses() -> None:
    session = _quick_session()
    try:
        session.open_editor(editor_id="e1", document="foo")
        session.highlight("e1", "foo", (1, 4))
        editor = session.workspace.get_editor("e1")

        editor.insert_text(" foo", selection=(4, 4))

        assert session.auto_highlighter.is_pending("e1")
        assert _span_count(session, "e1") == 1
        await asyncio.sleep(0.05)
        assert not session.auto_highlighter.is_pending("e1")
        assert _span_count(session, "e1") == 2
    finally:
        session.close()


@pytest.mark.asyncio
async def test_each_edit_restarts_the_timer() -> None:
    session = _quick_session(delay=0.2)
    try:
        session.open_editor(editor_id="e1", document="foo")
        session.highlight("e1", "foo", (1, 4))
        editor = session.workspace.get_editor("e1")

        editor.insert_text(" foo", selection=(4, 4))
        await asyncio.sleep(0.1)
        editor.insert_text(" foo", selection=(8, 8))
        await asyncio.sleep(0.15)

        assert _span_count(session, "e1") == 1
        await asyncio.sleep(0.15)
        assert _span_count(session, "e1") == 3
    finally:
        session.close()


@pytest.mark.asyncio
async def test_mark_only_edits_and_closed_editors_do_not_schedule() -> None:
    session = _quick_session(delay=0.5)
    try:
        session.open_editor(editor_id="e1", document="foo foo")
        session.highlight("e1", "foo", (1, 4))
        assert not session.auto_highlighter.is_pending("e1")

        session.workspace.get_editor("e1").insert_text("x", selection=(8, 8))
        assert session.auto_highlighter.is_pending("e1")

        session.close_editor("e1")
        assert not session.auto_highlighter.is_pending("e1")
    finally:
        session.close()


def test_without_event_loop_the_pass_runs_immediately(session) -> None:
    session.open_editor(editor_id="e1", document="foo")
    session.highlight("e1", "foo", (1, 4))

    session.workspace.get_editor("e1").insert_text(" foo", selection=(4, 4))

    assert not session.auto_highlighter.is_pending("e1")
    assert _span_count(session, "e1") == 2
