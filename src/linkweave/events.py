"""Event bus and message payloads exchanged between editors and annotation services.

Editors never call each other directly: link pairing, navigation, highlight
propagation and theme changes all travel over a single :class:`EventBus`
owned by the host session.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Callable,
    Generic,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod, ref

from .core.ranges import TextRange

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on the bus.

    Subclasses are slotted dataclasses::

        @dataclass(slots=True)
        class EditorOpened(Event):
            editor_id: str
            title: str = ""
    """

    pass


# High-frequency event types that should not log each publish
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Editor lifecycle events
# =============================================================================


@dataclass(slots=True)
class EditorOpened(Event):
    """Emitted when the workspace registers a new editor.

    Attributes:
        editor_id: Identifier of the editor that was opened.
        title: Human readable window title.
    """

    editor_id: str
    title: str = ""


@dataclass(slots=True)
class EditorClosed(Event):
    """Emitted after an editor has been removed from the workspace.

    Attributes:
        editor_id: Identifier of the closed editor.
    """

    editor_id: str


@dataclass(slots=True)
class EditorFocused(Event):
    """Emitted once an editor has been made visible, raised and activated.

    Attributes:
        editor_id: Identifier of the focused editor.
    """

    editor_id: str


@dataclass(slots=True)
class EditorRendered(Event):
    """Emitted by the host after an editor finished its current render pass.

    Deferred cross-document mutations are flushed when this arrives.

    Attributes:
        editor_id: Identifier of the editor that rendered.
    """

    editor_id: str


@dataclass(slots=True)
class DocumentEdited(Event):
    """Emitted after a transaction was applied to an editor's document.

    Attributes:
        editor_id: Identifier of the edited editor.
        version_id: Document version after the edit.
        text_changed: Whether the text content changed, as opposed to marks only.
    """

    editor_id: str
    version_id: int
    text_changed: bool


_QUIET_EVENT_TYPES.add(DocumentEdited)
_QUIET_EVENT_TYPES.add(EditorRendered)


# =============================================================================
# Link events
# =============================================================================


@dataclass(slots=True)
class BeginOrCompleteLink(Event):
    """Request to start or finish a link pairing at the editor's selection.

    Attributes:
        editor_id: Identifier of the editor the request came from.
        range: Selection the link glyph replaces.
    """

    editor_id: str
    range: TextRange


@dataclass(slots=True)
class NavigateToLink(Event):
    """Asks the host to bring another editor forward and reveal a link.

    Attributes:
        from_editor_id: Editor where the link was activated.
        to_editor_id: Editor holding the partner link.
        partner_id: Identifier of the partner link to reveal.
        source_id: Identifier of the activated link.
    """

    from_editor_id: str
    to_editor_id: str
    partner_id: str
    source_id: str


@dataclass(slots=True)
class UpdateFirstLink(Event):
    """Instructs the first link of a pair to record its partner.

    Attributes:
        editor_id: Editor holding the first link.
        link_id: Identifier of the first link.
        partner_id: Identifier of the second link.
        target_editor_id: Editor holding the second link.
    """

    editor_id: str
    link_id: str
    partner_id: str
    target_editor_id: str


# =============================================================================
# Highlight events
# =============================================================================


@dataclass(slots=True)
class SyncHighlight(Event):
    """Broadcast of a newly created highlight to every other open editor.

    Attributes:
        content: Highlighted term.
        color: CSS colour allocated for the term.
        origin_editor_id: Editor where the highlight was created.
    """

    content: str
    color: str
    origin_editor_id: str


@dataclass(slots=True)
class HighlightColorsReset(Event):
    """Emitted when the colour registry was cleared because no highlights remain."""

    pass


# =============================================================================
# Infrastructure events
# =============================================================================


@dataclass(slots=True)
class ThemeChanged(Event):
    """Emitted when the host switches between dark and light appearance.

    Attributes:
        is_dark_mode: Whether the new theme is dark.
    """

    is_dark_mode: bool


@dataclass(slots=True)
class AnnotationFeatureUnavailable(Event):
    """Reports that an annotation feature could not run in an editor.

    Attributes:
        feature: Name of the feature, for example ``"link"`` or ``"highlight"``.
        editor_id: Editor whose configuration is incomplete, if known.
        reason: Human readable description of the problem.
    """

    feature: str
    editor_id: str | None
    reason: str


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers are invoked synchronously, in registration order, on the thread
    that publishes. Bound methods are held through weak references so a
    discarded service drops out of the bus on its own.

    Example::

        bus = EventBus()
        bus.subscribe(ThemeChanged, synchronizer.on_theme_changed_event)
        bus.publish(ThemeChanged(is_dark_mode=False))

    Thread Safety:
        Not thread-safe. Publish from the host's UI thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``.

        Subscribing the same handler twice results in two invocations.
        """
        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Broadcast ``event`` to every registered handler.

        A handler that raises is logged and the remaining handlers still run.

        Args:
            event: The event instance to publish.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if not handlers:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug(
                "Publishing %s to %d handler(s)",
                event_type.__name__,
                len(handlers),
            )

        dead: list[_HandlerRef] = []

        # Snapshot: handlers may subscribe or unsubscribe while we iterate.
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for handler_ref in dead:
            try:
                handlers.remove(handler_ref)
            except ValueError:
                pass

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of registered handlers, optionally for one event type."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for plain callables."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                # Some callables can't be weakly referenced
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    """Get a human-readable name for a handler for logging purposes."""
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    # Editor lifecycle
    "EditorOpened",
    "EditorClosed",
    "EditorFocused",
    "EditorRendered",
    "DocumentEdited",
    # Links
    "BeginOrCompleteLink",
    "NavigateToLink",
    "UpdateFirstLink",
    # Highlights
    "SyncHighlight",
    "HighlightColorsReset",
    # Infrastructure
    "ThemeChanged",
    "AnnotationFeatureUnavailable",
]
