"""Structured helpers for representing document position spans."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Iterator


@dataclass(slots=True, frozen=True)
class TextRange(Sequence[int]):
    """Half-open ``[start, end)`` span of document positions.

    Reversed bounds are swapped and negative values clamp to zero, so a
    range built from a backwards drag selection is still well formed.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        start = self._coerce_index(self.start, "start")
        end = self._coerce_index(self.end, "end")
        if end < start:
            start, end = end, start
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @staticmethod
    def _coerce_index(value: Any, label: str) -> int:
        if isinstance(value, bool):
            raise ValueError(f"TextRange {label} must be an integer")
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"TextRange {label} must be an integer") from exc
        if number < 0:
            return 0
        return number

    def __len__(self) -> int:
        return 2

    def __getitem__(self, index: int | slice) -> int | tuple[int, ...]:
        if isinstance(index, slice):
            return self.to_tuple()[index]
        if index == 0:
            return self.start
        if index == 1:
            return self.end
        raise IndexError("TextRange index out of range")

    def __iter__(self) -> Iterator[int]:
        yield self.start
        yield self.end

    @property
    def length(self) -> int:
        """Return the number of positions covered by the range."""

        return self.end - self.start

    @property
    def is_caret(self) -> bool:
        """Return ``True`` when the range collapses to a caret."""

        return self.start == self.end

    def contains(self, pos: int) -> bool:
        """Return ``True`` when ``pos`` falls inside ``[start, end)``."""

        return self.start <= pos < self.end

    def overlaps(self, other: TextRange) -> bool:
        return self.start < other.end and other.start < self.end

    def shift(self, delta: int) -> TextRange:
        return TextRange(self.start + delta, self.end + delta)

    def to_tuple(self) -> tuple[int, int]:
        """Return the range as a ``(start, end)`` tuple."""

        return (self.start, self.end)

    def to_dict(self) -> dict[str, int]:
        """Return the range using editor-style ``from``/``to`` keys."""

        return {"from": self.start, "to": self.end}

    def clamp(self, *, lower: int = 0, upper: int | None = None) -> TextRange:
        """Clamp the range to ``[lower, upper]`` bounds."""

        start = max(lower, self.start)
        end = max(lower, self.end)
        if upper is not None:
            start = min(start, upper)
            end = min(end, upper)
        return TextRange(start=start, end=end)

    @classmethod
    def from_value(
        cls,
        value: Any,
        *,
        fallback: tuple[int, int] | None = None,
    ) -> TextRange:
        """Coerce ``value`` into a :class:`TextRange`.

        Accepts another range, ``{"from", "to"}`` or ``{"start", "end"}``
        mappings, two-item sequences and objects exposing ``start``/``end``.
        """

        if isinstance(value, TextRange):
            return value
        if value is None:
            if fallback is None:
                raise ValueError("TextRange value is required")
            return cls(*fallback)
        if isinstance(value, Mapping):
            start = value.get("from", value.get("start"))
            end = value.get("to", value.get("end"))
            if start is None or end is None:
                if fallback is None:
                    raise ValueError("TextRange mappings require from and to keys")
                if start is None:
                    start = fallback[0]
                if end is None:
                    end = fallback[1]
            return cls(start, end)
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            seq = list(value)
            if len(seq) != 2:
                raise ValueError("TextRange sequences must have exactly two entries")
            return cls(seq[0], seq[1])
        start = getattr(value, "start", None)
        end = getattr(value, "end", None)
        if start is not None and end is not None:
            return cls(start, end)
        raise TypeError("Unsupported TextRange input")

    @classmethod
    def caret(cls, pos: int) -> TextRange:
        """Return a collapsed range at ``pos``."""

        return cls(pos, pos)


__all__ = ["TextRange"]
