"""Attribute models for bidirectional link marks and synchronized highlight marks."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping

from ..editor.document_model import Mark
from ..editor.schema import MarkType, Schema
from ..errors import InvalidMarkError

LINK_MARK = "bidirectional_link"
HIGHLIGHT_MARK = "highlight_sync"

# Inserted in place of the selection when a link end is created.
LINK_GLYPH = "\U0001f517"


def new_link_id() -> str:
    return str(uuid.uuid4())


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


@dataclass(slots=True, frozen=True)
class LinkAttrs:
    """Attributes of one end of a bidirectional link.

    A link is *unresolved* while ``partner_id`` is ``None``. Same-document
    links carry their own editor id as ``target_editor_id``.
    """

    id: str
    partner_id: str | None = None
    target_editor_id: str | None = None

    def validate(self) -> LinkAttrs:
        if not self.id:
            raise InvalidMarkError("Link marks require an id")
        return self

    @property
    def is_resolved(self) -> bool:
        return self.partner_id is not None and self.target_editor_id is not None

    def is_inverse_of(self, other: LinkAttrs) -> bool:
        """Return ``True`` when ``self`` and ``other`` reference each other."""

        return (
            self.partner_id is not None
            and other.partner_id is not None
            and self.id == other.partner_id
            and other.id == self.partner_id
        )

    def points_elsewhere(self, editor_id: str) -> bool:
        return self.target_editor_id is not None and self.target_editor_id != editor_id

    def with_partner(self, partner_id: str, target_editor_id: str) -> LinkAttrs:
        return replace(self, partner_id=partner_id, target_editor_id=target_editor_id)

    def to_attrs(self) -> Dict[str, Any]:
        """Return the persisted attribute mapping; unset values stay as explicit ``None``."""

        return {"id": self.id, "partnerId": self.partner_id, "targetEditorId": self.target_editor_id}

    def create_mark(self, schema: Schema | MarkType) -> Mark:
        mark_type = schema if isinstance(schema, MarkType) else schema.require_mark(LINK_MARK, feature="link")
        return mark_type.create(self.validate().to_attrs())

    @classmethod
    def from_attrs(cls, attrs: Mapping[str, Any]) -> LinkAttrs:
        """Build link attributes from a persisted mapping.

        Raises:
            InvalidMarkError: When the mapping has no usable ``id``.
        """

        return cls(
            id=_optional_str(attrs.get("id")) or "",
            partner_id=_optional_str(attrs.get("partnerId")),
            target_editor_id=_optional_str(attrs.get("targetEditorId")),
        ).validate()

    @classmethod
    def from_mark(cls, mark: Mark) -> LinkAttrs:
        if mark.name != LINK_MARK:
            raise InvalidMarkError(f"Expected a {LINK_MARK} mark, got {mark.name}")
        return cls.from_attrs(mark.attrs)

    @classmethod
    def unresolved(cls) -> LinkAttrs:
        return cls(id=new_link_id())


@dataclass(slots=True, frozen=True)
class HighlightAttrs:
    """Attributes of a highlight: the highlighted term and its CSS colour."""

    content: str
    color: str

    def validate(self) -> HighlightAttrs:
        if not self.content:
            raise InvalidMarkError("Highlight marks require non-empty content")
        if not self.color:
            raise InvalidMarkError("Highlight marks require a color")
        return self

    def to_attrs(self) -> Dict[str, Any]:
        return {"content": self.content, "color": self.color}

    def create_mark(self, schema: Schema | MarkType) -> Mark:
        mark_type = (
            schema if isinstance(schema, MarkType) else schema.require_mark(HIGHLIGHT_MARK, feature="highlight")
        )
        return mark_type.create(self.validate().to_attrs())

    @classmethod
    def from_attrs(cls, attrs: Mapping[str, Any]) -> HighlightAttrs:
        content = attrs.get("content")
        color = attrs.get("color")
        return cls(
            content=content if isinstance(content, str) else "",
            color=color if isinstance(color, str) else "",
        )

    @classmethod
    def from_mark(cls, mark: Mark) -> HighlightAttrs:
        if mark.name != HIGHLIGHT_MARK:
            raise InvalidMarkError(f"Expected a {HIGHLIGHT_MARK} mark, got {mark.name}")
        return cls.from_attrs(mark.attrs)


def is_link(mark: Mark) -> bool:
    return mark.name == LINK_MARK


def is_highlight(mark: Mark) -> bool:
    return mark.name == HIGHLIGHT_MARK


__all__ = [
    "HIGHLIGHT_MARK",
    "HighlightAttrs",
    "LINK_GLYPH",
    "LINK_MARK",
    "LinkAttrs",
    "is_highlight",
    "is_link",
    "new_link_id",
]
