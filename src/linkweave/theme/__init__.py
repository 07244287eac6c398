"""Themes: palettes for viewports and the dark/light switch for highlights."""

from .models import ColorTuple, Theme, normalize_color
from .manager import ThemeManager, build_default_dark_theme, build_light_theme, build_theme_manager

__all__ = [
    "ColorTuple",
    "Theme",
    "ThemeManager",
    "build_default_dark_theme",
    "build_light_theme",
    "build_theme_manager",
    "normalize_color",
]
