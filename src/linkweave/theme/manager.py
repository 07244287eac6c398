"""Built-in themes and the registry that tracks the active one."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List

from .models import ColorTuple, Theme

LOGGER = logging.getLogger(__name__)

ThemeListener = Callable[[Theme], None]

_DARK_PALETTE: Dict[str, ColorTuple] = {
    "background": (26, 26, 27),
    "foreground": (235, 235, 235),
    "selection": (38, 79, 120),
    "link": (108, 199, 255),
    "link_pulse": (198, 120, 221),
}

_LIGHT_PALETTE: Dict[str, ColorTuple] = {
    "background": (248, 248, 248),
    "foreground": (32, 33, 36),
    "selection": (181, 215, 255),
    "link": (0, 106, 166),
    "link_pulse": (163, 21, 81),
}


def build_default_dark_theme() -> Theme:
    return Theme(name="default", title="Linkweave Dark", appearance="dark", palette=_DARK_PALETTE)


def build_light_theme() -> Theme:
    return Theme(name="daylight", title="Daylight", appearance="light", palette=_LIGHT_PALETTE)


class ThemeManager:
    """Resolves theme names and notifies listeners when the active theme changes.

    Unknown names resolve to the default theme.
    """

    def __init__(self, themes: Iterable[Theme] | None = None, *, default_name: str = "default") -> None:
        self._themes: Dict[str, Theme] = {theme.name: theme for theme in themes or ()}
        if not self._themes:
            dark = build_default_dark_theme()
            self._themes[dark.name] = dark
        key = default_name.strip().lower()
        self._default_name = key if key in self._themes else next(iter(self._themes))
        self._active_name = self._default_name
        self._listeners: List[ThemeListener] = []

    def available_names(self) -> List[str]:
        return sorted(self._themes)

    def resolve(self, theme: Theme | str | None = None) -> Theme:
        if isinstance(theme, Theme):
            return theme
        key = (theme or self._default_name).strip().lower()
        resolved = self._themes.get(key)
        if resolved is None:
            LOGGER.warning("Unknown theme %r; using %s", theme, self._default_name)
            return self._themes[self._default_name]
        return resolved

    @property
    def active(self) -> Theme:
        return self._themes[self._active_name]

    def add_listener(self, listener: ThemeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ThemeListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def activate(self, theme: Theme | str | None) -> Theme:
        """Make ``theme`` the active theme and notify listeners when it changed."""

        resolved = self.resolve(theme)
        self._themes.setdefault(resolved.name, resolved)
        if resolved.name == self._active_name:
            return resolved
        previous = self._active_name
        self._active_name = resolved.name
        LOGGER.debug("Theme switched from %s to %s", previous, resolved.name)
        for listener in list(self._listeners):
            listener(resolved)
        return resolved


def build_theme_manager() -> ThemeManager:
    """Return a fresh manager holding the built-in themes."""

    return ThemeManager([build_default_dark_theme(), build_light_theme()])


__all__ = [
    "ThemeListener",
    "ThemeManager",
    "build_default_dark_theme",
    "build_light_theme",
    "build_theme_manager",
]
