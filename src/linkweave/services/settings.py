"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..annotations.color_allocator import AllocatorConfig
from ..annotations.navigation import NavigationConfig

__all__ = [
    "HighlightSettings",
    "NavigationSettings",
    "Settings",
    "SettingsStore",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".linkweave"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "LINKWEAVE_THEME": "theme",
    "LINKWEAVE_LOG_DIR": "log_dir",
    "LINKWEAVE_LOG_LEVEL": "log_level",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "LINKWEAVE_DEBUG_LOGGING": "debug_logging",
    "LINKWEAVE_CANCEL_PAIRING_ON_CLOSE": "cancel_pairing_on_close",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, tuple[str, str]] = {
    "LINKWEAVE_AUTO_HIGHLIGHT_DELAY": ("highlight", "auto_highlight_delay"),
    "LINKWEAVE_MIN_DELTA_E": ("highlight", "min_delta_e"),
}
_INT_ENV_OVERRIDES: Mapping[str, tuple[str, str]] = {
    "LINKWEAVE_COLOR_GRID_SIZE": ("highlight", "grid_size"),
    "LINKWEAVE_COLOR_ATTEMPTS": ("highlight", "max_attempts"),
    "LINKWEAVE_COLOR_CELLS": ("highlight", "max_cells"),
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class HighlightSettings:
    """Highlight colouring and passive re-scan tunables."""

    auto_highlight_delay: float = 1.5
    grid_size: int = 10
    min_delta_e: float = 1.0
    max_attempts: int = 50
    max_cells: int = 16
    dark_alpha: float = 0.4
    light_alpha: float = 0.35

    def allocator_config(self) -> AllocatorConfig:
        return AllocatorConfig(
            grid_size=self.grid_size,
            min_delta_e=self.min_delta_e,
            max_attempts=self.max_attempts,
            max_cells=self.max_cells,
            dark_alpha=self.dark_alpha,
            light_alpha=self.light_alpha,
        )


@dataclass(slots=True)
class NavigationSettings:
    """Scroll and pulse feedback used when a link is revealed."""

    pulse_scale: float = 1.5
    pulse_hold_ms: int = 500
    pulse_settle_ms: int = 300
    smooth_scroll: bool = True
    line_height: float = 20.0

    def navigation_config(self) -> NavigationConfig:
        return NavigationConfig(
            pulse_scale=self.pulse_scale,
            pulse_hold_ms=self.pulse_hold_ms,
            pulse_settle_ms=self.pulse_settle_ms,
            smooth_scroll=self.smooth_scroll,
        )


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    theme: str = "default"
    debug_logging: bool = False
    log_dir: str | None = None
    log_level: str | None = None
    cancel_pairing_on_close: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    highlight: HighlightSettings = field(default_factory=HighlightSettings)
    navigation: NavigationSettings = field(default_factory=NavigationSettings)


_NESTED: Mapping[str, type] = {
    "highlight": HighlightSettings,
    "navigation": NavigationSettings,
}


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying runtime and environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            for name, nested_cls in _NESTED.items():
                nested_payload = data.get(name)
                if nested_payload is None:
                    continue
                data[name] = _build_nested(nested_cls, nested_payload, name)
            metadata = data.get("metadata")
            if metadata is not None and not isinstance(metadata, Mapping):
                LOGGER.debug("Ignoring non-mapping metadata payload of type %s", type(metadata))
                data.pop("metadata")
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            if payload.get("version") != _SETTINGS_VERSION:
                LOGGER.debug("Settings file %s has version %s", self._path, payload.get("version"))

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        settings = self._apply_env_overrides(settings)
        LOGGER.debug("Settings loaded from %s (theme=%s)", self._path, settings.theme)
        return settings

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s must contain a JSON object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        metadata_override = filtered.get("metadata")
        if isinstance(metadata_override, Mapping):
            merged_metadata = dict(settings.metadata or {})
            merged_metadata.update(metadata_override)
            filtered["metadata"] = merged_metadata
        for name, nested_cls in _NESTED.items():
            nested_override = filtered.get(name)
            if isinstance(nested_override, Mapping):
                current = getattr(settings, name)
                allowed_nested = {item.name for item in fields(nested_cls)}
                updates = {key: value for key, value in nested_override.items() if key in allowed_nested}
                filtered[name] = replace(current, **updates)
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        nested: Dict[str, Dict[str, Any]] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, (group, field_name) in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                nested.setdefault(group, {})[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        for env_name, (group, field_name) in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                nested.setdefault(group, {})[field_name] = float(value)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid float", env_name, value
                )
        overrides.update(nested)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _build_nested(cls: type, payload: Any, name: str) -> Any:
    if not isinstance(payload, Mapping):
        LOGGER.debug("Ignoring non-mapping %s settings payload", name)
        return cls()
    allowed = {item.name for item in fields(cls)}
    try:
        return cls(**{key: value for key, value in payload.items() if key in allowed})
    except TypeError:
        return cls()
