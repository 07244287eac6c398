"""Composition root wiring editors and annotation services onto one event bus."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable, List, Tuple

from .core.ranges import TextRange
from .annotations.color_allocator import ColorAllocator, HighlightPalette
from .annotations.highlight_sync import AutoHighlighter, HighlightSynchronizer
from .annotations.marks import HIGHLIGHT_MARK, HighlightAttrs
from .annotations.navigation import CrossDocumentNavigator
from .annotations.pairing import LinkPairingCoordinator, MutationResult, PairingState
from .editor.viewport import HeadlessViewport
from .editor.workspace import EditorWindow, EditorWorkspace
from .errors import SchemaError
from .events import (
    AnnotationFeatureUnavailable,
    BeginOrCompleteLink,
    DocumentEdited,
    EditorClosed,
    EditorFocused,
    EditorOpened,
    EditorRendered,
    EventBus,
    HighlightColorsReset,
    NavigateToLink,
    SyncHighlight,
    ThemeChanged,
    UpdateFirstLink,
)
from .services.settings import Settings
from .theme import Theme, ThemeManager, build_theme_manager

LOGGER = logging.getLogger(__name__)


class AnnotationSession:
    """Owns the shared pairing state, colour registry and the services using them.

    One session corresponds to one host window holding any number of editors.
    Every component receives the session's bus, workspace and shared state by
    reference; nothing is kept in module globals.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        bus: EventBus | None = None,
        workspace: EditorWorkspace | None = None,
        themes: ThemeManager | None = None,
        pairing_state: PairingState | None = None,
        palette: HighlightPalette | None = None,
        rng: random.Random | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.settings = settings or Settings()
        if bus is None:
            bus = workspace.bus if workspace is not None else EventBus()
        self.bus = bus
        line_height = self.settings.navigation.line_height
        self.workspace = workspace or EditorWorkspace(
            bus=bus,
            viewport_factory=lambda: HeadlessViewport(line_height=line_height),
        )
        self.themes = themes or build_theme_manager()
        self.themes.activate(self.settings.theme)

        self.pairing_state = pairing_state if pairing_state is not None else PairingState()
        self.palette = palette or HighlightPalette(
            ColorAllocator(config=self.settings.highlight.allocator_config(), rng=rng)
        )
        self.coordinator = LinkPairingCoordinator(
            self.workspace,
            state=self.pairing_state,
            bus=bus,
            cancel_on_close=self.settings.cancel_pairing_on_close,
        )
        self.navigator = CrossDocumentNavigator(
            self.workspace,
            bus=bus,
            config=self.settings.navigation.navigation_config(),
        )
        self.synchronizer = HighlightSynchronizer(
            self.workspace,
            self.palette,
            bus=bus,
            is_dark_mode=self.themes.active.is_dark,
        )
        self.auto_highlighter = AutoHighlighter(
            self.synchronizer,
            delay=self.settings.highlight.auto_highlight_delay,
            loop=loop,
        )
        self._subscriptions: List[Tuple[type, Callable[[Any], None]]] = []
        self._closed = False
        self._wire()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------
    def _wire(self) -> None:
        self._subscribe(BeginOrCompleteLink, self._on_begin_or_complete_link)
        self._subscribe(UpdateFirstLink, self._on_update_first_link)
        self._subscribe(NavigateToLink, self.workspace.on_navigate_to_link)
        self._subscribe(EditorFocused, self.navigator.on_editor_focused)
        self._subscribe(EditorRendered, self.coordinator.on_editor_rendered)
        self._subscribe(SyncHighlight, self._on_sync_highlight)
        self._subscribe(DocumentEdited, self.auto_highlighter.on_document_edited)
        self._subscribe(ThemeChanged, self.synchronizer.on_theme_changed_event)
        self._subscribe(EditorOpened, self._on_editor_opened)
        self._subscribe(EditorClosed, self.coordinator.on_editor_closed)
        self._subscribe(EditorClosed, self.navigator.on_editor_closed)
        self._subscribe(EditorClosed, self.auto_highlighter.on_editor_closed)
        self._subscribe(EditorClosed, self._on_editor_closed)
        self.themes.add_listener(self._on_theme_activated)

    def _subscribe(self, event_type: type, handler: Callable[[Any], None]) -> None:
        self.bus.subscribe(event_type, handler)
        self._subscriptions.append((event_type, handler))

    def close(self) -> None:
        """Detach every handler and cancel pending passive passes."""

        if self._closed:
            return
        self._closed = True
        for event_type, handler in self._subscriptions:
            self.bus.unsubscribe(event_type, handler)
        self._subscriptions.clear()
        self.themes.remove_listener(self._on_theme_activated)
        self.auto_highlighter.cancel_all()
        LOGGER.debug("Annotation session closed")

    # ------------------------------------------------------------------
    # Host-facing operations
    # ------------------------------------------------------------------
    def open_editor(self, **kwargs: Any) -> EditorWindow:
        return self.workspace.open_editor(**kwargs)

    def close_editor(self, editor_id: str) -> EditorWindow:
        return self.workspace.close_editor(editor_id)

    def begin_or_complete_link(self, editor_id: str, selection_range: Any = None) -> MutationResult:
        return self.coordinator.begin_or_complete_link(editor_id, selection_range)

    def request_link(self, editor_id: str, selection_range: Any = None) -> None:
        """Publish a :class:`BeginOrCompleteLink` request, as a keybinding would."""

        editor = self.workspace.get_editor(editor_id)
        span = editor.selection if selection_range is None else selection_range
        self.bus.publish(BeginOrCompleteLink(editor_id=editor_id, range=TextRange.from_value(span)))

    def highlight(self, editor_id: str, content: str, span: Any = None) -> str:
        return self.synchronizer.on_highlight_created(editor_id, content, span)

    def activate_link_at(self, editor_id: str, pos: int) -> bool:
        return self.navigator.activate_at(editor_id, pos)

    def notify_rendered(self, editor_id: str) -> None:
        self.workspace.notify_rendered(editor_id)

    def set_theme(self, theme: Theme | str) -> Theme:
        return self.themes.activate(theme)

    @property
    def is_dark_mode(self) -> bool:
        return self.synchronizer.is_dark_mode

    # ------------------------------------------------------------------
    # Bus handlers
    # ------------------------------------------------------------------
    def _on_begin_or_complete_link(self, event: BeginOrCompleteLink) -> None:
        try:
            self.coordinator.begin_or_complete_link(event.editor_id, event.range)
        except SchemaError as exc:
            self._report_unavailable("link", event.editor_id, exc)

    def _on_update_first_link(self, event: UpdateFirstLink) -> None:
        self.coordinator.apply_update_first_link(event)

    def _on_sync_highlight(self, event: SyncHighlight) -> None:
        self.synchronizer.on_highlight_broadcast(event)

    def _on_editor_opened(self, event: EditorOpened) -> None:
        editor = self.workspace.find_editor(event.editor_id)
        if editor is None:
            return
        if not editor.has_mark_type(HIGHLIGHT_MARK):
            self._report_unavailable(
                "highlight",
                event.editor_id,
                SchemaError("Editor schema does not define the highlight mark", feature="highlight"),
            )
            return
        for mark in editor.document.marks_of_type(HIGHLIGHT_MARK):
            attrs = HighlightAttrs.from_mark(mark)
            if attrs.content and attrs.color:
                self.palette.adopt(attrs.content, attrs.color)

    def _on_editor_closed(self, event: EditorClosed) -> None:
        if any(window.has_marks(HIGHLIGHT_MARK) for window in self.workspace.iter_windows()):
            return
        if not len(self.palette) and not len(self.palette.allocator.registry):
            return
        self.palette.clear()
        LOGGER.info("No open document carries highlights; colour registry reset")
        self.bus.publish(HighlightColorsReset())

    def _on_theme_activated(self, theme: Theme) -> None:
        self.bus.publish(ThemeChanged(is_dark_mode=theme.is_dark))

    def _report_unavailable(self, feature: str, editor_id: str | None, exc: SchemaError) -> None:
        LOGGER.warning("%s unavailable in editor %s: %s", feature.capitalize(), editor_id, exc)
        self.bus.publish(AnnotationFeatureUnavailable(feature=feature, editor_id=editor_id, reason=str(exc)))


__all__ = ["AnnotationSession"]
