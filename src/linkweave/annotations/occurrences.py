"""Literal occurrence scanning and the highlight overlap policy."""

from __future__ import annotations

from typing import List

from ..core.ranges import TextRange
from ..editor.document_model import Document, Mark
from .marks import HIGHLIGHT_MARK


def find_occurrences(document: Document, content: str) -> List[TextRange]:
    """Return non-overlapping, case-sensitive matches of ``content`` in document order.

    Matching never crosses a textblock boundary or an inline leaf.
    """

    if not content:
        return []
    found: List[TextRange] = []
    width = len(content)
    for view in document.textblocks():
        index = view.text.find(content)
        while index != -1:
            found.append(TextRange(view.start + index, view.start + index + width))
            index = view.text.find(content, index + width)
    return found


def _highlights_over(document: Document, occurrence: TextRange) -> List[Mark | None]:
    """Return the highlight mark (or ``None``) on each position of ``occurrence``."""

    covered: List[Mark | None] = []
    for segment in document.iter_segments(occurrence.start, occurrence.end):
        mark = next((m for m in segment.node.marks if m.name == HIGHLIGHT_MARK), None)
        overlap = min(segment.end, occurrence.end) - max(segment.start, occurrence.start)
        covered.extend([mark] * overlap)
    return covered


def should_highlight(document: Document, occurrence: TextRange, mark: Mark) -> bool:
    """Decide whether ``mark`` goes on ``occurrence``.

    Skipped when every position already carries ``mark``, or when any
    position carries a highlight for a different term that is at least as
    long (longest term wins; on equal length the existing one stays).
    """

    covered = _highlights_over(document, occurrence)
    if covered and all(existing == mark for existing in covered):
        return False
    content = mark.attr("content") or ""
    for existing in covered:
        if existing is None or existing == mark:
            continue
        other = existing.attr("content") or ""
        if other != content and len(other) >= len(content):
            return False
    return True


def plan_highlight(document: Document, mark: Mark) -> List[TextRange]:
    """Return the occurrences of the mark's content that should receive it."""

    content = mark.attr("content") or ""
    return [occurrence for occurrence in find_occurrences(document, content) if should_highlight(document, occurrence, mark)]


__all__ = ["find_occurrences", "plan_highlight", "should_highlight"]
