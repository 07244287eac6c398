"""Transactions: ordered editing steps applied to a working copy of a document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Tuple

from ..errors import StepError
from .document_model import Document, Mark, Node, TextblockView, normalize_inline
from .schema import MarkType

LOGGER = logging.getLogger(__name__)

# One entry per position of a textblock: a character with its marks, or an inline leaf.
_Atom = Tuple[str | Node, Tuple[Mark, ...]]

BlockFn = Callable[[Node, int], Node]


def _atoms(block: Node) -> List[_Atom]:
    atoms: List[_Atom] = []
    for child in block.content:
        if child.text is not None:
            atoms.extend((char, child.marks) for char in child.text)
        else:
            atoms.append((child, child.marks))
    return atoms


def _rebuild_block(block: Node, atoms: Sequence[_Atom]) -> Node:
    schema = block.type.schema
    children: List[Node] = []
    run: List[str] = []
    run_marks: Tuple[Mark, ...] = ()

    def flush() -> None:
        if run:
            children.append(schema.text("".join(run), run_marks))
            run.clear()

    for item, marks in atoms:
        if isinstance(item, Node):
            flush()
            children.append(item.with_marks(marks))
            continue
        if run and marks != run_marks:
            flush()
        if not run:
            run_marks = marks
        run.append(item)
    flush()
    return block.copy(normalize_inline(children))


def _map_textblocks(node: Node, content_start: int, start: int, end: int, fn: BlockFn) -> Node:
    """Return ``node`` with ``fn`` applied to every textblock touching ``[start, end]``."""

    changed = False
    children: List[Node] = []
    pos = content_start
    for child in node.content:
        child_end = pos + child.node_size
        replacement = child
        if not child.is_leaf and pos + 1 <= end and start <= child_end - 1:
            if child.is_textblock:
                replacement = fn(child, pos + 1)
            else:
                replacement = _map_textblocks(child, pos + 1, start, end, fn)
        if replacement is not child:
            changed = True
        children.append(replacement)
        pos = child_end
    return node.copy(children) if changed else node


def _check_bounds(doc: Document, start: int, end: int, step: str) -> None:
    if start < 0 or end > doc.content_size or end < start:
        raise StepError(
            f"Range [{start}, {end}) is outside the document (size {doc.content_size})",
            step=step,
            start=start,
            end=end,
        )


# ----------------------------------------------------------------------
# Steps
# ----------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ReplaceTextStep:
    """Replace ``[start, end)`` inside one textblock with ``text``.

    When ``marks`` is ``None`` the new text takes the inclusive marks of the
    character before ``start``.
    """

    start: int
    end: int
    text: str
    marks: Tuple[Mark, ...] | None = None

    name = "replace_text"

    def apply(self, doc: Document) -> Document:
        _check_bounds(doc, self.start, self.end, self.name)
        view = doc.textblock_at(self.start)
        if view is None or not view.contains(self.end):
            raise StepError(
                "Text replacement must stay within a single textblock",
                step=self.name,
                start=self.start,
                end=self.end,
            )
        marks = self.marks if self.marks is not None else _inherited_marks(view, self.start)

        def replace(block: Node, content_start: int) -> Node:
            atoms = _atoms(block)
            lo = self.start - content_start
            hi = self.end - content_start
            atoms[lo:hi] = [(char, tuple(marks)) for char in self.text]
            return _rebuild_block(block, atoms)

        root = _map_textblocks(doc.root, 0, self.start, self.start, _only(view, replace))
        return Document(doc.schema, root)

    def map(self, pos: int) -> int:
        if pos <= self.start:
            return pos
        if pos >= self.end:
            return pos + len(self.text) - (self.end - self.start)
        return self.start + len(self.text)


@dataclass(slots=True, frozen=True)
class AddMarkStep:
    """Add ``mark`` to the inline content of ``[start, end)``; same-type marks are replaced."""

    start: int
    end: int
    mark: Mark

    name = "add_mark"

    def apply(self, doc: Document) -> Document:
        _check_bounds(doc, self.start, self.end, self.name)
        if self.start == self.end:
            return doc
        mark = self.mark

        def add(block: Node, content_start: int) -> Node:
            return _mark_block(block, content_start, self.start, self.end, mark.add_to_set)

        return Document(doc.schema, _map_textblocks(doc.root, 0, self.start, self.end, add))

    def map(self, pos: int) -> int:
        return pos


@dataclass(slots=True, frozen=True)
class RemoveMarkStep:
    """Remove marks from ``[start, end)``.

    ``mark`` may be an exact mark (only equal marks go) or a mark type (every
    mark of that type goes).
    """

    start: int
    end: int
    mark: Mark | MarkType

    name = "remove_mark"

    def apply(self, doc: Document) -> Document:
        _check_bounds(doc, self.start, self.end, self.name)
        if self.start == self.end:
            return doc
        target = self.mark

        def strip(marks: Sequence[Mark]) -> Tuple[Mark, ...]:
            if isinstance(target, Mark):
                return target.remove_from_set(marks)
            return tuple(mark for mark in marks if mark.type is not target)

        def remove(block: Node, content_start: int) -> Node:
            return _mark_block(block, content_start, self.start, self.end, strip)

        return Document(doc.schema, _map_textblocks(doc.root, 0, self.start, self.end, remove))

    def map(self, pos: int) -> int:
        return pos


Step = ReplaceTextStep | AddMarkStep | RemoveMarkStep


def _only(view: TextblockView, fn: BlockFn) -> BlockFn:
    def apply(block: Node, content_start: int) -> Node:
        if content_start != view.start:
            return block
        return fn(block, content_start)

    return apply


def _inherited_marks(view: TextblockView, pos: int) -> Tuple[Mark, ...]:
    if pos <= view.start:
        return ()
    segment = view.segment_at(pos - 1)
    if segment is None:
        return ()
    return tuple(mark for mark in segment.node.marks if mark.type.inclusive)


def _mark_block(
    block: Node,
    content_start: int,
    start: int,
    end: int,
    update: Callable[[Sequence[Mark]], Tuple[Mark, ...]],
) -> Node:
    atoms = _atoms(block)
    lo = max(0, start - content_start)
    hi = min(len(atoms), end - content_start)
    if hi <= lo:
        return block
    changed = False
    for index in range(lo, hi):
        item, marks = atoms[index]
        updated = update(marks)
        if updated != marks:
            atoms[index] = (item, updated)
            changed = True
    return _rebuild_block(block, atoms) if changed else block


# ----------------------------------------------------------------------
# Transaction
# ----------------------------------------------------------------------


class Transaction:
    """Accumulates steps against a working copy of ``before``.

    Each step is applied immediately, so later steps address the document as
    earlier steps left it. A failing step raises :class:`StepError` and the
    transaction should be discarded.
    """

    def __init__(self, before: Document) -> None:
        self.before = before
        self.doc = before
        self.steps: List[Step] = []
        self.text_changed = False
        self._meta: Dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"Transaction(steps={len(self.steps)}, text_changed={self.text_changed})"

    @property
    def doc_changed(self) -> bool:
        return self.doc is not self.before

    def step(self, step: Step) -> Transaction:
        result = step.apply(self.doc)
        if result is not self.doc and result != self.doc:
            self.doc = result
            if isinstance(step, ReplaceTextStep):
                self.text_changed = True
        self.steps.append(step)
        return self

    def replace_text(self, start: int, end: int, text: str, marks: Sequence[Mark] | None = None) -> Transaction:
        return self.step(ReplaceTextStep(start, end, text, None if marks is None else tuple(marks)))

    def insert_text(self, pos: int, text: str, marks: Sequence[Mark] | None = None) -> Transaction:
        return self.replace_text(pos, pos, text, marks)

    def delete(self, start: int, end: int) -> Transaction:
        return self.replace_text(start, end, "", ())

    def add_mark(self, start: int, end: int, mark: Mark) -> Transaction:
        return self.step(AddMarkStep(start, end, mark))

    def remove_mark(self, start: int, end: int, mark: Mark | MarkType) -> Transaction:
        return self.step(RemoveMarkStep(start, end, mark))

    def map_pos(self, pos: int) -> int:
        """Map a position in ``before`` through every step."""

        for step in self.steps:
            pos = step.map(pos)
        return pos

    def set_meta(self, key: str, value: Any) -> Transaction:
        self._meta[key] = value
        return self

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self._meta.get(key, default)


__all__ = [
    "AddMarkStep",
    "RemoveMarkStep",
    "ReplaceTextStep",
    "Step",
    "Transaction",
]
