"""Immutable document tree with position-based queries.

Positions count one per character of text and one per inline leaf. Every
other node adds an opening and a closing position around its content, so
position ``0`` is the start of the root's content and a textblock whose
opening token sits at ``p`` has its first character at ``p + 1``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

from ..errors import DocumentParseError, SchemaError
from .schema import MarkType, NodeType, Schema

LOGGER = logging.getLogger(__name__)

# Stand-in character for inline leaves so text offsets stay aligned with positions.
LEAF_CHAR = "\ufffc"


class Mark:
    """A mark instance: a mark type plus a full set of attribute values."""

    __slots__ = ("type", "attrs", "_key")

    def __init__(self, mark_type: MarkType, attrs: Mapping[str, Any]) -> None:
        self.type = mark_type
        self.attrs = MappingProxyType(dict(attrs))
        self._key = (mark_type.name, tuple(sorted(self.attrs.items())))

    @property
    def name(self) -> str:
        return self.type.name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mark):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __repr__(self) -> str:
        return f"Mark({self.name!r}, {dict(self.attrs)!r})"

    def attr(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)

    def add_to_set(self, marks: Sequence[Mark]) -> Tuple[Mark, ...]:
        """Return ``marks`` with this mark added, replacing any mark of the same type."""

        kept = [mark for mark in marks if mark.type is not self.type]
        kept.append(self)
        kept.sort(key=lambda mark: mark.type.rank)
        return tuple(kept)

    def remove_from_set(self, marks: Sequence[Mark]) -> Tuple[Mark, ...]:
        return tuple(mark for mark in marks if mark != self)

    def is_in_set(self, marks: Iterable[Mark]) -> bool:
        return any(mark == self for mark in marks)

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.name}
        if self.type.spec.attrs:
            payload["attrs"] = dict(self.attrs)
        return payload


def _same_marks(left: Sequence[Mark], right: Sequence[Mark]) -> bool:
    return len(left) == len(right) and all(a == b for a, b in zip(left, right))


class Node:
    """A node in the document tree. Instances are never mutated."""

    __slots__ = ("type", "attrs", "content", "text", "marks", "_size")

    def __init__(
        self,
        node_type: NodeType,
        attrs: Mapping[str, Any],
        content: Tuple[Node, ...] = (),
        text: str | None = None,
        marks: Tuple[Mark, ...] = (),
    ) -> None:
        self.type = node_type
        self.attrs = MappingProxyType(dict(attrs))
        self.content = content
        self.text = text
        self.marks = marks
        if text is not None:
            self._size = len(text)
        elif node_type.is_leaf:
            self._size = 1
        else:
            self._size = sum(child._size for child in content) + 2

    def __repr__(self) -> str:
        if self.text is not None:
            return f"Node(text={self.text!r}, marks={list(self.marks)!r})"
        return f"Node({self.type.name!r}, children={len(self.content)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return (
            self.type is other.type
            and self.text == other.text
            and dict(self.attrs) == dict(other.attrs)
            and _same_marks(self.marks, other.marks)
            and self.content == other.content
        )

    __hash__ = None  # type: ignore[assignment]

    @property
    def is_text(self) -> bool:
        return self.text is not None

    @property
    def is_inline(self) -> bool:
        return self.type.is_inline

    @property
    def is_leaf(self) -> bool:
        return self.type.is_leaf

    @property
    def is_textblock(self) -> bool:
        return self.type.is_textblock

    @property
    def node_size(self) -> int:
        return self._size

    @property
    def content_size(self) -> int:
        if self.is_leaf:
            return 0
        return self._size - 2

    @property
    def text_content(self) -> str:
        if self.text is not None:
            return self.text
        return "".join(child.text_content for child in self.content)

    def copy(self, content: Iterable[Node]) -> Node:
        """Return a node of the same type and attributes holding ``content``."""

        return Node(self.type, self.attrs, tuple(content), None, self.marks)

    def with_marks(self, marks: Sequence[Mark]) -> Node:
        return Node(self.type, self.attrs, self.content, self.text, tuple(marks))

    def with_text(self, text: str) -> Node:
        return Node(self.type, self.attrs, (), text, self.marks)

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type.name}
        if self.attrs:
            payload["attrs"] = dict(self.attrs)
        if self.text is not None:
            payload["text"] = self.text
        elif self.content:
            payload["content"] = [child.to_json() for child in self.content]
        if self.marks:
            payload["marks"] = [mark.to_json() for mark in self.marks]
        return payload


@dataclass(slots=True, frozen=True)
class MarkSpan:
    """Contiguous run of positions ``[start, end)`` carrying ``mark``."""

    start: int
    end: int
    mark: Mark

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(slots=True, frozen=True)
class InlineSegment:
    start: int
    end: int
    node: Node


@dataclass(slots=True, frozen=True)
class TextblockView:
    """A textblock with its content start position and flattened text.

    ``text`` has one character per position; inline leaves appear as
    :data:`LEAF_CHAR`.
    """

    node: Node
    start: int
    text: str
    segments: Tuple[InlineSegment, ...]

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    def contains(self, pos: int) -> bool:
        return self.start <= pos <= self.end

    def segment_at(self, pos: int) -> InlineSegment | None:
        for segment in self.segments:
            if segment.start <= pos < segment.end:
                return segment
        return None


class Document:
    """A document root together with the schema it was built from."""

    __slots__ = ("schema", "root", "_views")

    def __init__(self, schema: Schema, root: Node) -> None:
        if root.type is not schema.top_node_type:
            raise DocumentParseError(f"Document root must be '{schema.top_node_type.name}'")
        self.schema = schema
        self.root = root
        self._views: Tuple[TextblockView, ...] | None = None

    def __repr__(self) -> str:
        return f"Document(size={self.content_size}, blocks={len(self.textblocks())})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self.schema is other.schema and self.root == other.root

    __hash__ = None  # type: ignore[assignment]

    @property
    def content_size(self) -> int:
        return self.root.content_size

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def empty(cls, schema: Schema) -> Document:
        """Return a document holding a single empty paragraph."""

        paragraph = schema.node("paragraph")
        return cls(schema, schema.top_node_type.create(None, [paragraph]))

    @classmethod
    def from_text(cls, schema: Schema, text: str) -> Document:
        """Build a document with one paragraph per line of ``text``."""

        paragraphs = []
        for line in text.split("\n"):
            content = [schema.text(line)] if line else []
            paragraphs.append(schema.node("paragraph", None, content))
        return cls(schema, schema.top_node_type.create(None, paragraphs))

    @classmethod
    def from_json(cls, schema: Schema, payload: Any) -> Document:
        """Parse a ProseMirror-style JSON document.

        Raises:
            DocumentParseError: When the payload is structurally invalid or
                names node or mark types the schema does not define.
        """

        root = _parse_node(schema, payload, "$")
        if root.type is not schema.top_node_type:
            raise DocumentParseError(f"Expected a '{schema.top_node_type.name}' node", path="$")
        return cls(schema, root)

    def to_json(self) -> Dict[str, Any]:
        return self.root.to_json()

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    def descendants(self) -> Iterator[Tuple[Node, int]]:
        """Yield ``(node, pos)`` pairs in document order (pre-order, left to right)."""

        yield from _walk(self.root.content, 0)

    def textblocks(self) -> Tuple[TextblockView, ...]:
        if self._views is None:
            views: List[TextblockView] = []
            for node, pos in self.descendants():
                if node.is_textblock:
                    views.append(_build_view(node, pos + 1))
            self._views = tuple(views)
        return self._views

    def start_position(self) -> int:
        """Return the first position inside a textblock, where a fresh caret goes."""

        views = self.textblocks()
        return views[0].start if views else 0

    def textblock_at(self, pos: int) -> TextblockView | None:
        for view in self.textblocks():
            if view.contains(pos):
                return view
        return None

    def textblock_index(self, pos: int) -> int:
        """Return the index of the textblock containing or following ``pos``."""

        views = self.textblocks()
        for index, view in enumerate(views):
            if pos <= view.end:
                return index
        return max(0, len(views) - 1)

    def segment_at(self, pos: int) -> InlineSegment | None:
        view = self.textblock_at(pos)
        if view is None:
            return None
        return view.segment_at(pos)

    def marks_at(self, pos: int) -> Tuple[Mark, ...]:
        """Return the marks on the inline content directly after ``pos``."""

        segment = self.segment_at(pos)
        return segment.node.marks if segment is not None else ()

    def iter_segments(self, start: int = 0, end: int | None = None) -> Iterator[InlineSegment]:
        """Yield inline segments overlapping ``[start, end)`` in document order."""

        limit = self.content_size if end is None else end
        for view in self.textblocks():
            if view.end <= start or view.start >= limit:
                continue
            for segment in view.segments:
                if segment.end > start and segment.start < limit:
                    yield segment

    def range_has_mark(self, start: int, end: int, mark: Mark | MarkType | str) -> bool:
        """Return ``True`` if any inline content in ``[start, end)`` carries ``mark``.

        ``mark`` may be an exact mark, a mark type or a mark type name.
        """

        matcher = _mark_matcher(mark)
        return any(any(matcher(m) for m in segment.node.marks) for segment in self.iter_segments(start, end))

    def find_mark_spans(
        self,
        mark: MarkType | str,
        predicate: Callable[[Mark], bool] | None = None,
    ) -> List[MarkSpan]:
        """Return maximal runs carrying a mark of the given type, left to right.

        Adjacent segments merge only when they carry an equal mark and sit
        in the same textblock.
        """

        name = mark.name if isinstance(mark, MarkType) else mark
        spans: List[MarkSpan] = []
        for view in self.textblocks():
            current: MarkSpan | None = None
            for segment in view.segments:
                found = next((m for m in segment.node.marks if m.name == name), None)
                if found is not None and predicate is not None and not predicate(found):
                    found = None
                if found is None:
                    if current is not None:
                        spans.append(current)
                        current = None
                    continue
                if current is not None and current.mark == found and current.end == segment.start:
                    current = MarkSpan(current.start, segment.end, found)
                    continue
                if current is not None:
                    spans.append(current)
                current = MarkSpan(segment.start, segment.end, found)
            if current is not None:
                spans.append(current)
        return spans

    def marks_of_type(self, mark: MarkType | str) -> List[Mark]:
        """Return the distinct marks of a type in order of first appearance."""

        seen: List[Mark] = []
        for span in self.find_mark_spans(mark):
            if span.mark not in seen:
                seen.append(span.mark)
        return seen

    def text_between(self, start: int, end: int, block_separator: str = "\n") -> str:
        parts: List[str] = []
        for view in self.textblocks():
            if view.end < start or view.start > end:
                continue
            lo = max(start, view.start) - view.start
            hi = min(end, view.end) - view.start
            if hi < lo:
                continue
            parts.append(view.text[lo:hi])
        return block_separator.join(parts)

    def plain_text(self) -> str:
        """Return the document text with one line per textblock."""

        return "\n".join(view.text.replace(LEAF_CHAR, "\n") for view in self.textblocks())

    def text_offset(self, pos: int) -> int:
        """Map a document position to an offset into :meth:`plain_text`."""

        offset = 0
        for view in self.textblocks():
            if pos <= view.end:
                return offset + max(0, pos - view.start)
            offset += len(view.text) + 1
        return max(0, offset - 1)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def _walk(children: Sequence[Node], start: int) -> Iterator[Tuple[Node, int]]:
    pos = start
    for child in children:
        yield child, pos
        if child.content:
            yield from _walk(child.content, pos + 1)
        pos += child.node_size


def _build_view(block: Node, start: int) -> TextblockView:
    pieces: List[str] = []
    segments: List[InlineSegment] = []
    pos = start
    for child in block.content:
        end = pos + child.node_size
        pieces.append(child.text if child.text is not None else LEAF_CHAR * child.node_size)
        segments.append(InlineSegment(pos, end, child))
        pos = end
    return TextblockView(block, start, "".join(pieces), tuple(segments))


def _mark_matcher(mark: Mark | MarkType | str) -> Callable[[Mark], bool]:
    if isinstance(mark, Mark):
        return lambda candidate: candidate == mark
    name = mark.name if isinstance(mark, MarkType) else mark
    return lambda candidate: candidate.name == name


def _parse_mark(schema: Schema, payload: Any, path: str) -> Mark:
    if not isinstance(payload, Mapping):
        raise DocumentParseError("Mark entries must be objects", path=path)
    name = payload.get("type")
    if not isinstance(name, str):
        raise DocumentParseError("Mark is missing its type", path=path)
    try:
        mark_type = schema.mark_type(name)
    except SchemaError as exc:
        raise DocumentParseError(str(exc), path=path) from exc
    return mark_type.create(payload.get("attrs"))


def _parse_node(schema: Schema, payload: Any, path: str) -> Node:
    if not isinstance(payload, Mapping):
        raise DocumentParseError("Node entries must be objects", path=path)
    name = payload.get("type")
    if not isinstance(name, str):
        raise DocumentParseError("Node is missing its type", path=path)
    try:
        node_type = schema.node_type(name)
    except SchemaError as exc:
        raise DocumentParseError(str(exc), path=path) from exc

    raw_marks = payload.get("marks") or []
    if not isinstance(raw_marks, list):
        raise DocumentParseError("Node marks must be a list", path=path)
    marks: Tuple[Mark, ...] = ()
    for index, raw in enumerate(raw_marks):
        marks = _parse_mark(schema, raw, f"{path}.marks[{index}]").add_to_set(marks)

    if node_type.is_text:
        text = payload.get("text")
        if not isinstance(text, str) or not text:
            raise DocumentParseError("Text nodes need a non-empty 'text' string", path=path)
        return schema.text(text, marks)

    raw_content = payload.get("content") or []
    if not isinstance(raw_content, list):
        raise DocumentParseError("Node content must be a list", path=path)
    if node_type.is_leaf and raw_content:
        raise DocumentParseError(f"Leaf node '{name}' cannot have content", path=path)
    children: List[Node] = []
    for index, raw in enumerate(raw_content):
        child_path = f"{path}.content[{index}]"
        child = _parse_node(schema, raw, child_path)
        if not node_type.allows_child(child.type):
            raise DocumentParseError(f"'{child.type.name}' is not allowed inside '{name}'", path=child_path)
        children.append(child)
    if node_type.is_textblock:
        children = normalize_inline(children)
    return Node(node_type, node_type.compute_attrs(payload.get("attrs")), tuple(children), None, marks)


def normalize_inline(children: Iterable[Node]) -> List[Node]:
    """Merge adjacent text nodes that carry the same marks."""

    merged: List[Node] = []
    for child in children:
        if child.is_text and merged and merged[-1].is_text and _same_marks(merged[-1].marks, child.marks):
            merged[-1] = merged[-1].with_text((merged[-1].text or "") + (child.text or ""))
            continue
        merged.append(child)
    return merged


__all__ = [
    "Document",
    "InlineSegment",
    "LEAF_CHAR",
    "Mark",
    "MarkSpan",
    "Node",
    "TextblockView",
    "normalize_inline",
]
