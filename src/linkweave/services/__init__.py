"""Service layer: settings persistence."""

from .settings import HighlightSettings, NavigationSettings, Settings, SettingsStore

__all__ = ["HighlightSettings", "NavigationSettings", "Settings", "SettingsStore"]
