"""Node and mark type definitions for rich-text documents.

A :class:`Schema` is a registry of named node types and mark types. Mark
types are ranked in declaration order; every mark set stored on a node is
kept sorted by that rank so equal sets compare equal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Sequence

from ..errors import SchemaError

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from .document_model import Mark, Node

LOGGER = logging.getLogger(__name__)

_NONE_TYPE = type(None)


@dataclass(slots=True, frozen=True)
class AttrSpec:
    """Declared attribute of a node or mark type.

    ``kinds`` lists the accepted Python types; an empty tuple accepts anything.
    """

    default: Any = None
    kinds: tuple[type, ...] = ()

    def accepts(self, value: Any) -> bool:
        if not self.kinds:
            return True
        if isinstance(value, bool) and bool not in self.kinds:
            return False
        return isinstance(value, self.kinds)


@dataclass(slots=True, frozen=True)
class NodeSpec:
    name: str
    group: str | None = None
    content: tuple[str, ...] = ()
    inline: bool = False
    leaf: bool = False
    attrs: Mapping[str, AttrSpec] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class MarkSpec:
    name: str
    attrs: Mapping[str, AttrSpec] = field(default_factory=dict)
    inclusive: bool = True
    tag: str = "span"


def _resolve_attrs(specs: Mapping[str, AttrSpec], attrs: Any, owner: str) -> Dict[str, Any]:
    """Return a full attribute mapping for ``specs`` built from ``attrs``.

    Unknown keys are dropped; missing or mistyped values fall back to the
    declared default.
    """

    source: Mapping[str, Any]
    if isinstance(attrs, Mapping):
        source = attrs
    else:
        if attrs is not None:
            LOGGER.debug("Ignoring non-mapping attrs for %s: %r", owner, attrs)
        source = {}
    resolved: Dict[str, Any] = {}
    for name, spec in specs.items():
        if name not in source:
            resolved[name] = spec.default
            continue
        value = source[name]
        if spec.accepts(value):
            resolved[name] = value
        else:
            LOGGER.debug("Attribute %s.%s has unexpected value %r; using default", owner, name, value)
            resolved[name] = spec.default
    return resolved


class NodeType:
    """Runtime handle for a node type within a :class:`Schema`."""

    __slots__ = ("name", "schema", "spec")

    def __init__(self, name: str, schema: "Schema", spec: NodeSpec) -> None:
        self.name = name
        self.schema = schema
        self.spec = spec

    def __repr__(self) -> str:
        return f"NodeType({self.name!r})"

    @property
    def is_text(self) -> bool:
        return self.name == "text"

    @property
    def is_inline(self) -> bool:
        return self.spec.inline or self.is_text

    @property
    def is_leaf(self) -> bool:
        return self.spec.leaf or self.is_text

    @property
    def is_textblock(self) -> bool:
        return not self.is_inline and "inline" in self.spec.content

    def allows_child(self, child: NodeType) -> bool:
        """Return ``True`` when ``child`` may appear inside this node."""

        expressions = self.spec.content
        return child.name in expressions or (child.spec.group is not None and child.spec.group in expressions)

    def compute_attrs(self, attrs: Any) -> Dict[str, Any]:
        return _resolve_attrs(self.spec.attrs, attrs, self.name)

    def create(
        self,
        attrs: Any = None,
        content: Iterable["Node"] = (),
        marks: Sequence["Mark"] = (),
    ) -> "Node":
        from .document_model import Node

        if self.is_text:
            raise SchemaError("Text nodes are created with Schema.text()", type_name=self.name)
        return Node(self, self.compute_attrs(attrs), tuple(content), None, tuple(marks))


class MarkType:
    """Runtime handle for a mark type within a :class:`Schema`."""

    __slots__ = ("name", "schema", "spec", "rank")

    def __init__(self, name: str, schema: "Schema", spec: MarkSpec, rank: int) -> None:
        self.name = name
        self.schema = schema
        self.spec = spec
        self.rank = rank

    def __repr__(self) -> str:
        return f"MarkType({self.name!r})"

    @property
    def inclusive(self) -> bool:
        return self.spec.inclusive

    def create(self, attrs: Any = None) -> "Mark":
        """Create a mark with every declared attribute filled in."""

        from .document_model import Mark

        return Mark(self, _resolve_attrs(self.spec.attrs, attrs, self.name))

    def is_in_set(self, marks: Iterable["Mark"]) -> "Mark | None":
        for mark in marks:
            if mark.type is self:
                return mark
        return None


class Schema:
    """Registry of node and mark types."""

    def __init__(self, nodes: Iterable[NodeSpec], marks: Iterable[MarkSpec] = (), *, top_node: str = "doc") -> None:
        self._nodes: Dict[str, NodeType] = {}
        self._marks: Dict[str, MarkType] = {}
        for spec in nodes:
            if spec.name in self._nodes:
                raise SchemaError(f"Duplicate node type '{spec.name}'", type_name=spec.name)
            self._nodes[spec.name] = NodeType(spec.name, self, spec)
        for rank, spec in enumerate(marks):
            if spec.name in self._marks:
                raise SchemaError(f"Duplicate mark type '{spec.name}'", type_name=spec.name)
            self._marks[spec.name] = MarkType(spec.name, self, spec, rank)
        if top_node not in self._nodes:
            raise SchemaError(f"Schema is missing its top node '{top_node}'", type_name=top_node)
        if "text" not in self._nodes:
            raise SchemaError("Schema is missing the 'text' node type", type_name="text")
        self.top_node_type = self._nodes[top_node]

    @property
    def nodes(self) -> Mapping[str, NodeType]:
        return MappingProxyType(self._nodes)

    @property
    def marks(self) -> Mapping[str, MarkType]:
        return MappingProxyType(self._marks)

    def node_type(self, name: str) -> NodeType:
        try:
            return self._nodes[name]
        except KeyError:
            raise SchemaError(f"Unknown node type '{name}'", type_name=name) from None

    def mark_type(self, name: str) -> MarkType:
        try:
            return self._marks[name]
        except KeyError:
            raise SchemaError(f"Unknown mark type '{name}'", type_name=name) from None

    def has_mark(self, name: str) -> bool:
        return name in self._marks

    def require_mark(self, name: str, *, feature: str | None = None) -> MarkType:
        """Return the mark type called ``name`` or raise :class:`SchemaError`.

        Args:
            name: Mark type name.
            feature: Feature that depends on the mark, reported on failure.
        """

        mark_type = self._marks.get(name)
        if mark_type is None:
            label = feature or name
            raise SchemaError(
                f"Editor schema does not define the '{name}' mark required by {label}",
                feature=feature,
                type_name=name,
            )
        return mark_type

    def text(self, text: str, marks: Sequence["Mark"] = ()) -> "Node":
        from .document_model import Node

        if not text:
            raise SchemaError("Empty text nodes are not allowed", type_name="text")
        return Node(self._nodes["text"], {}, (), text, tuple(marks))

    def node(self, name: str, attrs: Any = None, content: Iterable["Node"] = ()) -> "Node":
        return self.node_type(name).create(attrs, content)

    def mark(self, name: str, attrs: Any = None) -> "Mark":
        return self.mark_type(name).create(attrs)


# ----------------------------------------------------------------------
# Default schema
# ----------------------------------------------------------------------

_OPTIONAL_STR = (str, _NONE_TYPE)

LINK_MARK_SPEC = MarkSpec(
    name="bidirectional_link",
    attrs={
        "id": AttrSpec(None, _OPTIONAL_STR),
        "partnerId": AttrSpec(None, _OPTIONAL_STR),
        "targetEditorId": AttrSpec(None, _OPTIONAL_STR),
    },
    inclusive=False,
)

HIGHLIGHT_MARK_SPEC = MarkSpec(
    name="highlight_sync",
    attrs={
        "content": AttrSpec("", (str,)),
        "color": AttrSpec("", (str,)),
    },
    inclusive=False,
)

_BASE_NODES: tuple[NodeSpec, ...] = (
    NodeSpec("doc", content=("block",)),
    NodeSpec("paragraph", group="block", content=("inline",)),
    NodeSpec("heading", group="block", content=("inline",), attrs={"level": AttrSpec(1, (int,))}),
    NodeSpec("blockquote", group="block", content=("block",)),
    NodeSpec("code_block", group="block", content=("inline",), attrs={"language": AttrSpec(None, _OPTIONAL_STR)}),
    NodeSpec("bullet_list", group="block", content=("list_item",)),
    NodeSpec("ordered_list", group="block", content=("list_item",), attrs={"order": AttrSpec(1, (int,))}),
    NodeSpec("list_item", content=("block",)),
    NodeSpec("horizontal_rule", group="block", leaf=True),
    NodeSpec("hard_break", group="inline", inline=True, leaf=True),
    NodeSpec("text", group="inline", inline=True),
)

_BASE_MARKS: tuple[MarkSpec, ...] = (
    MarkSpec("strong", tag="strong"),
    MarkSpec("em", tag="em"),
    MarkSpec("code", tag="code", inclusive=False),
)


def build_schema(*, include_links: bool = True, include_highlights: bool = True) -> Schema:
    """Build the default rich-text schema.

    Args:
        include_links: Register the ``bidirectional_link`` mark.
        include_highlights: Register the ``highlight_sync`` mark.
    """

    marks = list(_BASE_MARKS)
    if include_links:
        marks.append(LINK_MARK_SPEC)
    if include_highlights:
        marks.append(HIGHLIGHT_MARK_SPEC)
    return Schema(_BASE_NODES, marks)


_DEFAULT_SCHEMA: Schema | None = None


def default_schema() -> Schema:
    """Return the shared default schema with both annotation marks."""

    global _DEFAULT_SCHEMA
    if _DEFAULT_SCHEMA is None:
        _DEFAULT_SCHEMA = build_schema()
    return _DEFAULT_SCHEMA


__all__ = [
    "AttrSpec",
    "HIGHLIGHT_MARK_SPEC",
    "LINK_MARK_SPEC",
    "MarkSpec",
    "MarkType",
    "NodeSpec",
    "NodeType",
    "Schema",
    "build_schema",
    "default_schema",
]
