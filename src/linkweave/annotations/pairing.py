"""Two-step pairing of bidirectional links, possibly across documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List

from ..core.ranges import TextRange
from ..editor.document_editor import DocumentEditor
from ..editor.schema import MarkType
from ..editor.workspace import EditorWorkspace
from ..errors import StepError
from ..events import EditorClosed, EditorRendered, EventBus, UpdateFirstLink
from .marks import LINK_GLYPH, LINK_MARK, LinkAttrs, new_link_id

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PairingState:
    """The single outstanding pairing, if any.

    Both fields are set between the first and the second leg of a pairing
    and cleared together.
    """

    waiting_for_partner: str | None = None
    waiting_editor_id: str | None = None

    @property
    def is_waiting(self) -> bool:
        return self.waiting_for_partner is not None

    def begin(self, link_id: str, editor_id: str) -> None:
        self.waiting_for_partner = link_id
        self.waiting_editor_id = editor_id

    def take(self) -> tuple[str, str] | None:
        """Return ``(link_id, editor_id)`` of the waiting link and clear the state."""

        if self.waiting_for_partner is None or self.waiting_editor_id is None:
            self.reset()
            return None
        waiting = (self.waiting_for_partner, self.waiting_editor_id)
        self.reset()
        return waiting

    def reset(self) -> None:
        self.waiting_for_partner = None
        self.waiting_editor_id = None


@dataclass(slots=True)
class MutationResult:
    """Outcome of :meth:`LinkPairingCoordinator.begin_or_complete_link`.

    Attributes:
        editor_id: Editor that received the new link glyph.
        link: Attributes of the link mark that was inserted.
        span: Positions covered by the glyph.
        pending: Instruction for the first link's editor, present only when
            this call completed a pairing. It is dispatched once the host
            reports that ``editor_id`` has rendered.
    """

    editor_id: str
    link: LinkAttrs
    span: TextRange
    pending: UpdateFirstLink | None = None

    @property
    def completed(self) -> bool:
        return self.pending is not None

    @property
    def is_local_only(self) -> bool:
        return self.pending is None


@dataclass(slots=True)
class _PendingUpdate:
    origin_editor_id: str
    event: UpdateFirstLink
    dispatched: bool = field(default=False)


class LinkPairingCoordinator:
    """Turns two link requests into a pair of mutually referencing link marks."""

    def __init__(
        self,
        workspace: EditorWorkspace,
        *,
        state: PairingState | None = None,
        bus: EventBus | None = None,
        id_factory: Callable[[], str] = new_link_id,
        cancel_on_close: bool = False,
    ) -> None:
        self.workspace = workspace
        self.state = state if state is not None else PairingState()
        self.bus = bus or workspace.bus
        self._id_factory = id_factory
        self._pending: List[_PendingUpdate] = []
        self.cancel_on_close = cancel_on_close

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------
    def begin_or_complete_link(self, editor_id: str, selection_range: Any = None) -> MutationResult:
        """Insert a link glyph at the selection and start or finish a pairing.

        Args:
            editor_id: Editor receiving the link.
            selection_range: Span to replace; defaults to the editor's selection.

        Returns:
            The local mutation, plus the pending partner update when this call
            completed a pairing.

        Raises:
            SchemaError: When the editor's schema has no link mark. Nothing is
                mutated and the pairing state is left untouched.
            UnknownEditorError: When ``editor_id`` is not open.
        """

        editor = self.workspace.get_editor(editor_id)
        mark_type = editor.schema.require_mark(LINK_MARK, feature="link")
        span = editor.selection if selection_range is None else TextRange.from_value(selection_range)

        waiting = self.state.take()
        if waiting is None:
            link = LinkAttrs(id=self._id_factory())
            glyph_span = self._insert_link(editor, span, link, mark_type)
            self.state.begin(link.id, editor_id)
            LOGGER.debug("Link %s started in editor %s; waiting for partner", link.id, editor_id)
            return MutationResult(editor_id=editor_id, link=link, span=glyph_span)

        partner_id, source_editor_id = waiting
        link = LinkAttrs(id=self._id_factory(), partner_id=partner_id, target_editor_id=source_editor_id)
        try:
            glyph_span = self._insert_link(editor, span, link, mark_type)
        except Exception:
            self.state.begin(partner_id, source_editor_id)
            raise
        pending = UpdateFirstLink(
            editor_id=source_editor_id,
            link_id=partner_id,
            partner_id=link.id,
            target_editor_id=editor_id,
        )
        if not self.workspace.has_editor(source_editor_id):
            LOGGER.warning(
                "Link %s completes a pairing whose source editor %s is no longer open",
                link.id,
                source_editor_id,
            )
        self._pending.append(_PendingUpdate(origin_editor_id=editor_id, event=pending))
        LOGGER.debug("Link %s in editor %s paired with %s in %s", link.id, editor_id, partner_id, source_editor_id)
        return MutationResult(editor_id=editor_id, link=link, span=glyph_span, pending=pending)

    def cancel(self) -> bool:
        """Abandon the outstanding pairing, if any. The unresolved glyph stays in place."""

        waiting = self.state.take()
        if waiting is None:
            return False
        LOGGER.info("Cancelled pairing for link %s in editor %s", waiting[0], waiting[1])
        return True

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------
    def flush_rendered(self, editor_id: str) -> int:
        """Publish every pending partner update whose originating editor has rendered."""

        ready = [entry for entry in self._pending if entry.origin_editor_id == editor_id]
        for entry in ready:
            self._dispatch(entry)
        return len(ready)

    def dispatch_pending(self, result: MutationResult) -> bool:
        """Publish the partner update carried by ``result`` right away."""

        for entry in self._pending:
            if entry.event is result.pending:
                self._dispatch(entry)
                return True
        return False

    def pending_updates(self) -> tuple[UpdateFirstLink, ...]:
        return tuple(entry.event for entry in self._pending)

    def _dispatch(self, entry: _PendingUpdate) -> None:
        if entry.dispatched:
            return
        entry.dispatched = True
        try:
            self._pending.remove(entry)
        except ValueError:
            pass
        self.bus.publish(entry.event)

    def on_editor_rendered(self, event: EditorRendered) -> None:
        self.flush_rendered(event.editor_id)

    def on_editor_closed(self, event: EditorClosed) -> None:
        if self.cancel_on_close and self.state.waiting_editor_id == event.editor_id:
            self.cancel()
        self._pending = [entry for entry in self._pending if entry.origin_editor_id != event.editor_id]

    # ------------------------------------------------------------------
    # Partner update
    # ------------------------------------------------------------------
    def apply_update_first_link(self, event: UpdateFirstLink) -> bool:
        """Record the partner on the first link of a pair.

        The first link mark (left to right) whose id equals ``event.link_id``
        is rewritten. A missing editor or link is logged and ignored.
        """

        editor = self.workspace.find_editor(event.editor_id)
        if editor is None:
            LOGGER.warning("Cannot update link %s: editor %s is not open", event.link_id, event.editor_id)
            return False
        if not editor.has_mark_type(LINK_MARK):
            LOGGER.warning("Cannot update link %s: editor %s has no link mark", event.link_id, event.editor_id)
            return False
        spans = editor.document.find_mark_spans(LINK_MARK, lambda mark: mark.attr("id") == event.link_id)
        if not spans:
            LOGGER.warning("Link %s not found in editor %s", event.link_id, event.editor_id)
            return False
        span = spans[0]
        current = LinkAttrs.from_mark(span.mark)
        updated = current.with_partner(event.partner_id, event.target_editor_id)
        tr = editor.transaction()
        tr.remove_mark(span.start, span.end, span.mark)
        tr.add_mark(span.start, span.end, updated.create_mark(editor.schema))
        return editor.apply_transaction(tr)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _insert_link(
        self,
        editor: DocumentEditor,
        span: TextRange,
        link: LinkAttrs,
        mark_type: MarkType,
    ) -> TextRange:
        document = editor.document
        start, end = span.clamp(upper=document.content_size)
        block = document.textblock_at(start)
        if block is None:
            views = document.textblocks()
            if not views:
                raise StepError("Document has no textblock to hold a link", step="insert_link", start=start, end=end)
            nearest = views[document.textblock_index(start)]
            start = end = nearest.start if start < nearest.start else nearest.end
        elif not block.contains(end):
            # Selections spanning blocks keep their text; the glyph goes at the start.
            end = start
        glyph_end = start + len(LINK_GLYPH)
        tr = editor.transaction()
        tr.replace_text(start, end, LINK_GLYPH, ())
        tr.add_mark(start, glyph_end, link.create_mark(mark_type))
        editor.apply_transaction(tr)
        editor.set_selection(TextRange.caret(glyph_end))
        return TextRange(start, glyph_end)


__all__ = ["LinkPairingCoordinator", "MutationResult", "PairingState"]
