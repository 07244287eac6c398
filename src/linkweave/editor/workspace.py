"""Workspace model managing the set of open editors and their window state."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol

from ..errors import UnknownEditorError
from ..events import (
    DocumentEdited,
    EditorClosed,
    EditorFocused,
    EditorOpened,
    EditorRendered,
    EventBus,
    NavigateToLink,
)
from .document_editor import DocumentEditor
from .document_model import Document
from .schema import Schema, default_schema
from .transaction import Transaction
from .viewport import Viewport

__all__ = ["ActiveEditorListener", "EditorWindow", "EditorWorkspace"]

LOGGER = logging.getLogger(__name__)


class ActiveEditorListener(Protocol):
    """Callback signature fired whenever the active editor changes."""

    def __call__(self, window: Optional["EditorWindow"]) -> None:  # pragma: no cover - protocol
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _generate_editor_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True)
class EditorWindow:
    """An open editor plus the window state the host tracks for it."""

    id: str
    editor: DocumentEditor
    title: str = "Untitled"
    visible: bool = True
    z_order: int = 0
    untitled_index: int | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def document(self) -> Document:
        return self.editor.document

    def has_marks(self, mark_name: str) -> bool:
        """Return ``True`` when the document carries at least one ``mark_name`` mark."""

        if not self.editor.has_mark_type(mark_name):
            return False
        return bool(self.document.find_mark_spans(mark_name))


class EditorWorkspace:
    """Owns the open editors, the active editor and their stacking order.

    Lifecycle changes are published on ``bus`` so annotation services can
    react without holding references to the workspace internals.
    """

    def __init__(
        self,
        *,
        bus: EventBus | None = None,
        schema: Schema | None = None,
        viewport_factory: Callable[[], Viewport] | None = None,
    ) -> None:
        self.bus = bus or EventBus()
        self.schema = schema or default_schema()
        self._viewport_factory = viewport_factory
        self._windows: Dict[str, EditorWindow] = {}
        self._order: List[str] = []
        self._active_editor_id: str | None = None
        self._listeners: List[ActiveEditorListener] = []
        self._untitled_counter = 1
        self._z_counter = 0

    # ------------------------------------------------------------------
    # Editor lifecycle
    # ------------------------------------------------------------------
    def open_editor(
        self,
        *,
        editor_id: str | None = None,
        document: Document | Mapping[str, Any] | str | None = None,
        title: str | None = None,
        schema: Schema | None = None,
        viewport: Viewport | None = None,
        make_active: bool = True,
    ) -> EditorWindow:
        """Create and register a new editor.

        Args:
            editor_id: Identifier to use; generated when omitted.
            document: A :class:`Document`, a serialized document or plain text.
            title: Window title; untitled windows are numbered.
            schema: Per-editor schema override.
            viewport: Viewport to attach; defaults to the workspace factory.
            make_active: Whether the new editor becomes the active one.

        Emits:
            EditorOpened
        """

        editor_id = editor_id or _generate_editor_id()
        if editor_id in self._windows:
            raise ValueError(f"Editor id already in use: {editor_id}")
        editor_schema = schema or (document.schema if isinstance(document, Document) else self.schema)
        if viewport is None and self._viewport_factory is not None:
            viewport = self._viewport_factory()
        editor = DocumentEditor(
            editor_id,
            schema=editor_schema,
            document=document if isinstance(document, Document) else None,
            viewport=viewport,
        )
        if isinstance(document, Mapping):
            editor.load_json(document)
        elif isinstance(document, str):
            editor.load_text(document)

        untitled_index: int | None = None
        if title is None:
            untitled_index = self._reserve_untitled_index()
            title = f"Untitled {untitled_index}"
        self._z_counter += 1
        window = EditorWindow(
            id=editor_id,
            editor=editor,
            title=title,
            z_order=self._z_counter,
            untitled_index=untitled_index,
        )
        editor.add_transaction_listener(self._handle_transaction)
        self._windows[editor_id] = window
        self._order.append(editor_id)
        LOGGER.debug("Opened editor %s (%s)", editor_id, title)
        self.bus.publish(EditorOpened(editor_id=editor_id, title=title))
        if make_active or self._active_editor_id is None:
            self._set_active(editor_id)
        return window

    def close_editor(self, editor_id: str) -> EditorWindow:
        """Close and return the specified editor.

        Emits:
            EditorClosed
        """

        window = self._windows.pop(editor_id, None)
        if window is None:
            raise UnknownEditorError(editor_id)
        window.editor.remove_transaction_listener(self._handle_transaction)
        index = self._order.index(editor_id)
        self._order.pop(index)

        if self._active_editor_id == editor_id:
            if self._order:
                fallback_index = index if 0 <= index < len(self._order) else len(self._order) - 1
                self._active_editor_id = self._order[fallback_index]
            else:
                self._active_editor_id = None
            self._notify_active_listeners()
        LOGGER.debug("Closed editor %s", editor_id)
        self.bus.publish(EditorClosed(editor_id=editor_id))
        return window

    def focus_editor(self, editor_id: str) -> EditorWindow:
        """Make the editor visible, raise it above the others and activate it.

        Emits:
            EditorFocused
        """

        window = self.get_window(editor_id)
        window.visible = True
        self._z_counter += 1
        window.z_order = self._z_counter
        self._set_active(editor_id)
        self.bus.publish(EditorFocused(editor_id=editor_id))
        return window

    def set_visible(self, editor_id: str, visible: bool) -> EditorWindow:
        window = self.get_window(editor_id)
        window.visible = bool(visible)
        return window

    def notify_rendered(self, editor_id: str) -> None:
        """Report that ``editor_id`` finished rendering.

        Emits:
            EditorRendered
        """

        if editor_id not in self._windows:
            raise UnknownEditorError(editor_id)
        self.bus.publish(EditorRendered(editor_id=editor_id))

    # ------------------------------------------------------------------
    # Host navigation
    # ------------------------------------------------------------------
    def on_navigate_to_link(self, event: NavigateToLink) -> None:
        """Bring the target editor of a cross-document link to the front.

        Unknown targets are ignored: the partner document is not open.
        """

        if event.to_editor_id not in self._windows:
            LOGGER.info(
                "Link %s points at editor %s, which is not open; ignoring",
                event.source_id,
                event.to_editor_id,
            )
            return
        self.focus_editor(event.to_editor_id)

    # ------------------------------------------------------------------
    # Active editor listeners
    # ------------------------------------------------------------------
    def add_active_listener(self, listener: ActiveEditorListener) -> None:
        self._listeners.append(listener)

    def remove_active_listener(self, listener: ActiveEditorListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify_active_listeners(self) -> None:
        window = self.active_window
        for listener in list(self._listeners):
            listener(window)

    def _set_active(self, editor_id: str) -> None:
        if self._active_editor_id == editor_id:
            return
        self._active_editor_id = editor_id
        self._notify_active_listeners()

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    @property
    def active_editor_id(self) -> str | None:
        return self._active_editor_id

    @property
    def active_window(self) -> EditorWindow | None:
        if self._active_editor_id is None:
            return None
        return self._windows.get(self._active_editor_id)

    def has_editor(self, editor_id: str) -> bool:
        return editor_id in self._windows

    def get_window(self, editor_id: str) -> EditorWindow:
        window = self._windows.get(editor_id)
        if window is None:
            raise UnknownEditorError(editor_id)
        return window

    def get_editor(self, editor_id: str) -> DocumentEditor:
        return self.get_window(editor_id).editor

    def find_editor(self, editor_id: str) -> DocumentEditor | None:
        window = self._windows.get(editor_id)
        return window.editor if window is not None else None

    def iter_windows(self) -> Iterator[EditorWindow]:
        for editor_id in self._order:
            yield self._windows[editor_id]

    def iter_editors(self) -> Iterator[DocumentEditor]:
        for window in self.iter_windows():
            yield window.editor

    def editor_ids(self) -> tuple[str, ...]:
        return tuple(self._order)

    def editor_count(self) -> int:
        return len(self._order)

    def topmost(self) -> EditorWindow | None:
        visible = [window for window in self.iter_windows() if window.visible]
        if not visible:
            return None
        return max(visible, key=lambda window: window.z_order)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def serialize_state(self, *, include_documents: bool = False) -> dict[str, Any]:
        """Return a structured workspace snapshot for persistence layers."""

        editors: list[dict[str, Any]] = []
        for window in self.iter_windows():
            entry: dict[str, Any] = {
                "editor_id": window.id,
                "title": window.title,
                "visible": window.visible,
                "z_order": window.z_order,
                "created_at": window.created_at.isoformat(),
            }
            if window.untitled_index is not None:
                entry["untitled_index"] = window.untitled_index
            if include_documents:
                entry["document"] = window.editor.to_json()
            editors.append(entry)
        return {
            "editors": editors,
            "active_editor_id": self._active_editor_id,
            "untitled_counter": self._untitled_counter,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _handle_transaction(self, editor: DocumentEditor, transaction: Transaction) -> None:
        self.bus.publish(
            DocumentEdited(
                editor_id=editor.editor_id,
                version_id=editor.version_id,
                text_changed=transaction.text_changed,
            )
        )

    def _reserve_untitled_index(self) -> int:
        value = self._untitled_counter
        self._untitled_counter += 1
        return value
