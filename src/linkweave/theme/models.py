"""Theme data: a named palette plus its dark/light appearance."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence, Tuple

ColorTuple = Tuple[int, int, int]

APPEARANCES = ("dark", "light")


def normalize_color(value: Any) -> ColorTuple:
    """Convert ``#rgb``/``#rrggbb`` strings or 3-item sequences to an RGB tuple.

    Sequence channels are clamped to ``0..255``.
    """

    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if len(text) == 3:
            text = "".join(ch * 2 for ch in text)
        if len(text) != 6:
            raise ValueError(f"Unsupported color format: {value!r}")
        try:
            return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
        except ValueError as exc:
            raise ValueError(f"Unsupported color format: {value!r}") from exc
    if isinstance(value, Sequence) and len(value) == 3:
        r, g, b = (max(0, min(255, int(channel))) for channel in value)
        return (r, g, b)
    raise TypeError(f"Cannot convert {value!r} to an RGB color")


@dataclass(slots=True)
class Theme:
    """Palette used by viewports, and the brightness that picks the highlight alpha."""

    name: str
    title: str = ""
    appearance: str = "dark"
    palette: Dict[str, ColorTuple] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.name = (self.name or "default").strip().lower() or "default"
        self.title = (self.title or self.name.title()).strip()
        self.appearance = self.appearance.strip().lower()
        if self.appearance not in APPEARANCES:
            raise ValueError(f"Theme appearance must be one of {APPEARANCES}, got {self.appearance!r}")
        self.palette = _normalize_palette(self.palette)

    @property
    def is_dark(self) -> bool:
        return self.appearance == "dark"

    def color(self, key: str, fallback: ColorTuple | None = None) -> ColorTuple:
        """Return the palette entry for ``key``.

        Raises:
            KeyError: When the key is missing and no ``fallback`` is given.
        """

        value = self.palette.get(key.strip().lower())
        if value is not None:
            return value
        if fallback is not None:
            return fallback
        raise KeyError(f"Theme '{self.name}' has no color '{key}'")


def _normalize_palette(palette: Mapping[str, Any]) -> Dict[str, ColorTuple]:
    return {key.strip().lower(): normalize_color(value) for key, value in (palette or {}).items()}


__all__ = ["APPEARANCES", "ColorTuple", "Theme", "normalize_color"]
