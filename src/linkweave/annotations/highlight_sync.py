"""Propagation of highlight marks across every open document."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from ..core.ranges import TextRange
from ..editor.document_editor import DocumentEditor
from ..editor.workspace import EditorWorkspace
from ..errors import InvalidMarkError
from ..events import DocumentEdited, EditorClosed, EventBus, SyncHighlight, ThemeChanged
from .color_allocator import HighlightPalette
from .marks import HIGHLIGHT_MARK, HighlightAttrs
from .occurrences import plan_highlight

LOGGER = logging.getLogger(__name__)


class HighlightSynchronizer:
    """Keeps a highlighted term marked, in one colour, wherever it appears.

    Positions are always recomputed against the receiving document at the
    moment a broadcast is handled, so edits made in between are harmless.
    """

    def __init__(
        self,
        workspace: EditorWorkspace,
        palette: HighlightPalette | None = None,
        *,
        bus: EventBus | None = None,
        is_dark_mode: bool = True,
    ) -> None:
        self.workspace = workspace
        self.palette = palette or HighlightPalette()
        self.bus = bus or workspace.bus
        self.is_dark_mode = is_dark_mode

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def on_highlight_created(self, editor_id: str, content: str, span: Any = None) -> str:
        """Highlight ``span`` in ``editor_id`` and broadcast the term.

        Args:
            editor_id: Editor where the user created the highlight.
            content: The highlighted text.
            span: Range holding ``content``; defaults to the editor selection.

        Returns:
            The CSS colour used for ``content``.

        Raises:
            SchemaError: When the editor's schema has no highlight mark.
            InvalidMarkError: When ``span`` does not contain exactly ``content``.

        Emits:
            SyncHighlight
        """

        editor = self.workspace.get_editor(editor_id)
        mark_type = editor.schema.require_mark(HIGHLIGHT_MARK, feature="highlight")
        if not content:
            raise InvalidMarkError("Cannot highlight empty text")
        target = editor.selection if span is None else TextRange.from_value(span)
        actual = editor.document.text_between(target.start, target.end)
        if actual != content:
            raise InvalidMarkError(f"Range {target.to_tuple()} holds {actual!r}, not {content!r}")

        color = self.palette.color_for(content, self.is_dark_mode)
        tr = editor.transaction()
        tr.add_mark(target.start, target.end, HighlightAttrs(content, color).create_mark(mark_type))
        tr.set_meta("origin", "highlight")
        editor.apply_transaction(tr)
        LOGGER.debug("Highlighted %r in %s with %s", content, editor_id, color)
        self.bus.publish(SyncHighlight(content=content, color=color, origin_editor_id=editor_id))
        return color

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------
    def on_highlight_broadcast(self, event: SyncHighlight) -> int:
        """Apply a broadcast highlight to every open editor except its origin."""

        total = 0
        for editor in list(self.workspace.iter_editors()):
            if editor.editor_id == event.origin_editor_id:
                continue
            if not editor.has_mark_type(HIGHLIGHT_MARK):
                LOGGER.debug("Editor %s has no highlight mark; skipping %r", editor.editor_id, event.content)
                continue
            total += self.apply_broadcast(editor, event.content, event.color)
        return total

    def apply_broadcast(self, editor: DocumentEditor, content: str, color: str) -> int:
        """Mark every occurrence of ``content`` in ``editor`` that still lacks it.

        Returns:
            The number of occurrences that were marked. A repeated call with
            the same arguments returns ``0`` and leaves the document alone.
        """

        mark_type = editor.schema.require_mark(HIGHLIGHT_MARK, feature="highlight")
        mark = HighlightAttrs(content, color).create_mark(mark_type)
        ranges = plan_highlight(editor.document, mark)
        if not ranges:
            return 0
        tr = editor.transaction()
        for occurrence in ranges:
            tr.add_mark(occurrence.start, occurrence.end, mark)
        tr.set_meta("origin", "highlight-sync")
        editor.apply_transaction(tr)
        LOGGER.debug("Marked %d occurrence(s) of %r in %s", len(ranges), content, editor.editor_id)
        return len(ranges)

    # ------------------------------------------------------------------
    # Passive pass
    # ------------------------------------------------------------------
    def known_terms(self, editor: DocumentEditor) -> List[HighlightAttrs]:
        """Return the distinct highlighted terms of a document, longest first."""

        terms: Dict[str, HighlightAttrs] = {}
        for mark in editor.document.marks_of_type(HIGHLIGHT_MARK):
            attrs = HighlightAttrs.from_mark(mark)
            if attrs.content and attrs.color and attrs.content not in terms:
                terms[attrs.content] = attrs
        return sorted(terms.values(), key=lambda attrs: len(attrs.content), reverse=True)

    def refresh_known_terms(self, editor_id: str) -> int:
        """Mark new occurrences of terms already highlighted in ``editor_id``.

        Nothing is broadcast.
        """

        editor = self.workspace.find_editor(editor_id)
        if editor is None or not editor.has_mark_type(HIGHLIGHT_MARK):
            return 0
        total = 0
        for attrs in self.known_terms(editor):
            self.palette.adopt(attrs.content, attrs.color)
            total += self.apply_broadcast(editor, attrs.content, attrs.color)
        return total

    # ------------------------------------------------------------------
    # Theme
    # ------------------------------------------------------------------
    def on_theme_changed(self, is_dark_mode: bool) -> int:
        """Re-render every highlight for the new theme.

        Colours come from the palette; no new allocation is made.

        Returns:
            The number of highlight spans whose colour changed.
        """

        self.is_dark_mode = bool(is_dark_mode)
        changed = 0
        for editor in list(self.workspace.iter_editors()):
            if not editor.has_mark_type(HIGHLIGHT_MARK):
                continue
            mark_type = editor.schema.mark_type(HIGHLIGHT_MARK)
            tr = editor.transaction()
            for span in editor.document.find_mark_spans(HIGHLIGHT_MARK):
                attrs = HighlightAttrs.from_mark(span.mark)
                if not attrs.content:
                    continue
                self.palette.adopt(attrs.content, attrs.color)
                color = self.palette.recolor(attrs.content, attrs.color, self.is_dark_mode)
                if color == attrs.color:
                    continue
                tr.add_mark(span.start, span.end, HighlightAttrs(attrs.content, color).create_mark(mark_type))
                changed += 1
            if tr.doc_changed:
                tr.set_meta("origin", "theme")
                editor.apply_transaction(tr)
        LOGGER.debug("Theme switched to %s; %d highlight span(s) recoloured", "dark" if is_dark_mode else "light", changed)
        return changed

    def on_theme_changed_event(self, event: ThemeChanged) -> None:
        self.on_theme_changed(event.is_dark_mode)


class AutoHighlighter:
    """Debounced passive pass: re-scans an editor once typing pauses.

    Uses ``loop.call_later``; without a running event loop the pass runs
    immediately.
    """

    def __init__(
        self,
        synchronizer: HighlightSynchronizer,
        *,
        delay: float = 1.5,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.synchronizer = synchronizer
        self.delay = max(0.0, delay)
        self._loop = loop
        self._handles: Dict[str, asyncio.TimerHandle] = {}

    def is_pending(self, editor_id: str) -> bool:
        return editor_id in self._handles

    def schedule(self, editor_id: str) -> None:
        """(Re)start the pause timer for ``editor_id``."""

        self.cancel(editor_id)
        loop = self._resolve_loop()
        if loop is None:
            self._run(editor_id)
            return
        self._handles[editor_id] = loop.call_later(self.delay, self._run, editor_id)

    def cancel(self, editor_id: str) -> None:
        handle = self._handles.pop(editor_id, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        for editor_id in list(self._handles):
            self.cancel(editor_id)

    def on_document_edited(self, event: DocumentEdited) -> None:
        if event.text_changed:
            self.schedule(event.editor_id)

    def on_editor_closed(self, event: EditorClosed) -> None:
        self.cancel(event.editor_id)

    def _resolve_loop(self) -> asyncio.AbstractEventLoop | None:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _run(self, editor_id: str) -> None:
        self._handles.pop(editor_id, None)
        count = self.synchronizer.refresh_known_terms(editor_id)
        if count:
            LOGGER.debug("Passive pass marked %d new occurrence(s) in %s", count, editor_id)


__all__ = ["AutoHighlighter", "HighlightSynchronizer"]
