"""PySide6 viewport backed by a ``QTextEdit``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from PySide6.QtCore import QEasingCurve, QPropertyAnimation, QTimer
from PySide6.QtGui import QColor, QTextCharFormat, QTextCursor
from PySide6.QtWidgets import QTextEdit

from ..core.ranges import TextRange
from ..theme import Theme, build_default_dark_theme
from .viewport import Rect

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from .document_model import Document

LOGGER = logging.getLogger(__name__)

_FALLBACK_POINT_SIZE = 12.0


class QtTextViewport:
    """Displays a document's plain text and animates navigation feedback.

    Document positions are translated to character offsets of
    :meth:`Document.plain_text`, which is what the widget shows.
    """

    def __init__(
        self,
        widget: QTextEdit | None = None,
        *,
        theme: Theme | None = None,
        scroll_duration_ms: int = 300,
    ) -> None:
        self.widget = widget or QTextEdit()
        self.theme = theme or build_default_dark_theme()
        self.scroll_duration_ms = max(0, scroll_duration_ms)
        self._document: "Document | None" = None
        self._animation: QPropertyAnimation | None = None
        self._pulse_generation = 0
        self._pulsing = False

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    @property
    def viewport_height(self) -> float:
        return float(self.widget.viewport().height())

    @property
    def scroll_top(self) -> float:
        return float(self.widget.verticalScrollBar().value())

    @property
    def is_pulsing(self) -> bool:
        return self._pulsing

    def coords_at_pos(self, pos: int) -> Rect:
        cursor = self._cursor_for(TextRange.caret(pos))
        rect = self.widget.cursorRect(cursor)
        top = rect.top() + self.scroll_top
        return Rect(top, top + rect.height())

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------
    def scroll_to(self, top: float, *, smooth: bool = True) -> None:
        bar = self.widget.verticalScrollBar()
        target = max(bar.minimum(), min(int(round(top)), bar.maximum()))
        if self._animation is not None:
            self._animation.stop()
            self._animation = None
        if not smooth or self.scroll_duration_ms == 0:
            bar.setValue(target)
            return
        animation = QPropertyAnimation(bar, b"value", self.widget)
        animation.setDuration(self.scroll_duration_ms)
        animation.setStartValue(bar.value())
        animation.setEndValue(target)
        animation.setEasingCurve(QEasingCurve.Type.OutCubic)
        animation.start()
        self._animation = animation

    def pulse(self, span: TextRange, *, scale: float, hold_ms: int, settle_ms: int) -> None:
        """Enlarge and recolour ``span``, then shrink it back and clear it.

        A newer pulse supersedes any pulse still in progress.
        """

        self._pulse_generation += 1
        generation = self._pulse_generation
        base_size = self._base_point_size()
        self._show_pulse(span, base_size * scale)
        self._pulsing = True
        QTimer.singleShot(max(0, hold_ms), lambda: self._settle(generation, span, base_size, settle_ms))

    def sync(self, document: "Document") -> None:
        self._document = document
        text = document.plain_text()
        if self.widget.toPlainText() == text:
            return
        bar = self.widget.verticalScrollBar()
        scroll = bar.value()
        self.widget.setPlainText(text)
        bar.setValue(min(scroll, bar.maximum()))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _settle(self, generation: int, span: TextRange, base_size: float, settle_ms: int) -> None:
        if generation != self._pulse_generation:
            return
        self._show_pulse(span, base_size)
        QTimer.singleShot(max(0, settle_ms), lambda: self._clear_pulse(generation))

    def _clear_pulse(self, generation: int) -> None:
        if generation != self._pulse_generation:
            return
        self.widget.setExtraSelections([])
        self._pulsing = False
        LOGGER.debug("Pulse %d finished", generation)

    def _show_pulse(self, span: TextRange, point_size: float) -> None:
        selection = QTextEdit.ExtraSelection()
        selection.cursor = self._cursor_for(span)
        char_format = QTextCharFormat()
        char_format.setFontPointSize(point_size)
        char_format.setForeground(QColor(*self.theme.color("link_pulse", (163, 21, 81))))
        selection.format = char_format
        self.widget.setExtraSelections([selection])

    def _cursor_for(self, span: TextRange) -> QTextCursor:
        cursor = QTextCursor(self.widget.document())
        limit = max(0, self.widget.document().characterCount() - 1)
        start = min(self._offset(span.start), limit)
        end = min(self._offset(span.end), limit)
        cursor.setPosition(start)
        if end != start:
            cursor.setPosition(end, QTextCursor.MoveMode.KeepAnchor)
        return cursor

    def _offset(self, pos: int) -> int:
        """Translate ``pos`` into a QTextDocument position, which counts UTF-16 units."""

        if self._document is None:
            return pos
        prefix = self._document.plain_text()[: self._document.text_offset(pos)]
        return len(prefix.encode("utf-16-le")) // 2

    def _base_point_size(self) -> float:
        size: Any = self.widget.font().pointSizeF()
        return float(size) if size and size > 0 else _FALLBACK_POINT_SIZE


__all__ = ["QtTextViewport"]
