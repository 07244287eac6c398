"""Viewport abstraction used for scroll-to-center and pulse feedback."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Protocol, runtime_checkable

from ..core.ranges import TextRange

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from .document_model import Document


@dataclass(slots=True, frozen=True)
class Rect:
    """Vertical extent of a position in document coordinates."""

    top: float
    bottom: float

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> float:
        return self.top + self.height / 2


@runtime_checkable
class Viewport(Protocol):
    """What an editor view must offer for navigation feedback."""

    @property
    def viewport_height(self) -> float: ...

    @property
    def scroll_top(self) -> float: ...

    def coords_at_pos(self, pos: int) -> Rect: ...

    def scroll_to(self, top: float, *, smooth: bool = True) -> None: ...

    def pulse(self, span: TextRange, *, scale: float, hold_ms: int, settle_ms: int) -> None: ...

    def sync(self, document: "Document") -> None: ...


@dataclass(slots=True, frozen=True)
class ScrollRecord:
    top: float
    smooth: bool


@dataclass(slots=True, frozen=True)
class PulseRecord:
    span: TextRange
    scale: float
    hold_ms: int
    settle_ms: int


@dataclass(slots=True)
class HeadlessViewport:
    """Deterministic viewport laying out one textblock per line.

    Scrolls and pulses are recorded instead of animated, which makes it the
    viewport of choice for tests and for editors without a widget.
    """

    line_height: float = 20.0
    height: float = 400.0
    scrolls: List[ScrollRecord] = field(default_factory=list)
    pulses: List[PulseRecord] = field(default_factory=list)
    _top: float = field(default=0.0, init=False, repr=False)
    _document: "Document | None" = field(default=None, init=False, repr=False)

    @property
    def viewport_height(self) -> float:
        return self.height

    @property
    def scroll_top(self) -> float:
        return self._top

    def coords_at_pos(self, pos: int) -> Rect:
        line = self._document.textblock_index(pos) if self._document is not None else 0
        top = line * self.line_height
        return Rect(top, top + self.line_height)

    def scroll_to(self, top: float, *, smooth: bool = True) -> None:
        self._top = max(0.0, top)
        self.scrolls.append(ScrollRecord(self._top, smooth))

    def pulse(self, span: TextRange, *, scale: float, hold_ms: int, settle_ms: int) -> None:
        self.pulses.append(PulseRecord(span, scale, hold_ms, settle_ms))

    def sync(self, document: "Document") -> None:
        self._document = document


__all__ = ["HeadlessViewport", "PulseRecord", "Rect", "ScrollRecord", "Viewport"]
