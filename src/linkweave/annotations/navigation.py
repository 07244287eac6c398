"""Link activation: jump to the partner link, in this document or another one."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from ..core.ranges import TextRange
from ..editor.document_editor import DocumentEditor
from ..editor.document_model import Document, Mark, MarkSpan
from ..editor.workspace import EditorWorkspace
from ..errors import InvalidMarkError
from ..events import EditorClosed, EditorFocused, EventBus, NavigateToLink
from .marks import LINK_MARK, LinkAttrs

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class NavigationConfig:
    """Visual feedback applied to a revealed link."""

    pulse_scale: float = 1.5
    pulse_hold_ms: int = 500
    pulse_settle_ms: int = 300
    smooth_scroll: bool = True


@dataclass(slots=True, frozen=True)
class _PendingReveal:
    editor_id: str
    link_id: str
    source_id: str


def _coerce_link(link: LinkAttrs | Mark | Mapping[str, Any]) -> LinkAttrs:
    if isinstance(link, LinkAttrs):
        return link
    if isinstance(link, Mark):
        return LinkAttrs.from_mark(link)
    return LinkAttrs.from_attrs(link)


def find_partner_span(document: Document, link: LinkAttrs, *, exclude: int | None = None) -> MarkSpan | None:
    """Return the first link span, left to right, that is the inverse of ``link``.

    The span containing ``exclude`` is skipped.
    """

    for span in document.find_mark_spans(LINK_MARK):
        if exclude is not None and span.start <= exclude < span.end:
            continue
        try:
            candidate = LinkAttrs.from_mark(span.mark)
        except InvalidMarkError:
            continue
        if link.is_inverse_of(candidate):
            return span
    return None


def find_link_span(document: Document, link_id: str) -> MarkSpan | None:
    """Locate the link with ``id == link_id``, else one whose partner is ``link_id``."""

    fallback: MarkSpan | None = None
    for span in document.find_mark_spans(LINK_MARK):
        if span.mark.attr("id") == link_id:
            return span
        if fallback is None and span.mark.attr("partnerId") == link_id:
            fallback = span
    return fallback


class CrossDocumentNavigator:
    """Resolves link activations and scrolls the partner into view.

    Links into another editor are handed to the host as
    :class:`~linkweave.events.NavigateToLink`; the reveal runs once the host
    reports the target editor focused.
    """

    def __init__(
        self,
        workspace: EditorWorkspace,
        *,
        bus: EventBus | None = None,
        config: NavigationConfig | None = None,
    ) -> None:
        self.workspace = workspace
        self.bus = bus or workspace.bus
        self.config = config or NavigationConfig()
        self._pending: _PendingReveal | None = None

    @property
    def pending_reveal(self) -> tuple[str, str] | None:
        if self._pending is None:
            return None
        return (self._pending.editor_id, self._pending.link_id)

    def on_link_activated(
        self,
        editor_id: str,
        link: LinkAttrs | Mark | Mapping[str, Any],
        position: int | None = None,
    ) -> bool:
        """Handle a click on a link glyph.

        Args:
            editor_id: Editor where the link was clicked.
            link: The activated link mark or its attributes.
            position: Position of the activated glyph, skipped during the
                same-document partner search.

        Returns:
            ``True`` when a navigation was started, ``False`` for dangling links.
        """

        try:
            attrs = _coerce_link(link)
        except InvalidMarkError as exc:
            LOGGER.debug("Ignoring activation of malformed link in %s: %s", editor_id, exc)
            return False
        if attrs.points_elsewhere(editor_id):
            if attrs.partner_id is None:
                LOGGER.debug("Link %s targets %s but has no partner yet", attrs.id, attrs.target_editor_id)
                return False
            target = attrs.target_editor_id or ""
            self._pending = _PendingReveal(editor_id=target, link_id=attrs.partner_id, source_id=attrs.id)
            LOGGER.debug("Link %s in %s navigates to %s in %s", attrs.id, editor_id, attrs.partner_id, target)
            self.bus.publish(
                NavigateToLink(
                    from_editor_id=editor_id,
                    to_editor_id=target,
                    partner_id=attrs.partner_id,
                    source_id=attrs.id,
                )
            )
            return True

        editor = self.workspace.find_editor(editor_id)
        if editor is None:
            LOGGER.warning("Link %s activated in unknown editor %s", attrs.id, editor_id)
            return False
        span = find_partner_span(editor.document, attrs, exclude=position)
        if span is None:
            LOGGER.debug("Link %s has no partner in editor %s", attrs.id, editor_id)
            return False
        self.reveal(editor, span)
        return True

    def activate_at(self, editor_id: str, pos: int) -> bool:
        """Activate the link under ``pos``, if there is one."""

        editor = self.workspace.get_editor(editor_id)
        for span in editor.document.find_mark_spans(LINK_MARK):
            if span.start <= pos < span.end:
                return self.on_link_activated(editor_id, span.mark, span.start)
        return False

    def on_editor_focused(self, event: EditorFocused) -> None:
        pending = self._pending
        if pending is None or pending.editor_id != event.editor_id:
            return
        self._pending = None
        self.reveal_link(pending.editor_id, pending.link_id)

    def on_editor_closed(self, event: EditorClosed) -> None:
        if self._pending is not None and self._pending.editor_id == event.editor_id:
            self._pending = None

    def reveal_link(self, editor_id: str, link_id: str) -> bool:
        """Scroll ``editor_id`` to the link ``link_id`` and pulse it."""

        editor = self.workspace.find_editor(editor_id)
        if editor is None:
            LOGGER.debug("Cannot reveal link %s: editor %s is gone", link_id, editor_id)
            return False
        span = find_link_span(editor.document, link_id)
        if span is None:
            LOGGER.debug("Link %s not found in editor %s", link_id, editor_id)
            return False
        self.reveal(editor, span)
        return True

    def reveal(self, editor: DocumentEditor, span: MarkSpan) -> None:
        """Center ``span`` vertically in the editor's viewport and pulse it."""

        viewport = editor.viewport
        rect = viewport.coords_at_pos(span.start)
        top = max(0.0, rect.top + rect.height / 2 - viewport.viewport_height / 2)
        viewport.scroll_to(top, smooth=self.config.smooth_scroll)
        viewport.pulse(
            TextRange(span.start, span.end),
            scale=self.config.pulse_scale,
            hold_ms=self.config.pulse_hold_ms,
            settle_ms=self.config.pulse_settle_ms,
        )


__all__ = ["CrossDocumentNavigator", "NavigationConfig", "find_link_span", "find_partner_span"]
