"""Bootstrap helpers: logging, settings and session construction."""

from __future__ import annotations

import argparse
import json
import logging
import os
import random
import sys
from dataclasses import asdict, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .annotations.marks import HIGHLIGHT_MARK, LINK_MARK
from .events import EventBus
from .services.settings import Settings, SettingsStore
from .session import AnnotationSession
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(
    debug: bool = False,
    *,
    log_dir: Path | str | None = None,
    package_level: int | str | None = None,
    force: bool = False,
) -> Path:
    """Configure logging for the host process and return the log file path.

    ``package_level`` applies to linkweave's own loggers only.
    """

    level = logging.DEBUG if debug else logging.INFO
    path = logging_utils.setup_logging(level, log_dir=log_dir, package_level=package_level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))
    _install_qt_message_handler()
    return path


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, TypeError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def create_session(
    settings: Settings | None = None,
    *,
    bus: EventBus | None = None,
    rng: random.Random | None = None,
) -> AnnotationSession:
    """Build an :class:`AnnotationSession` configured from ``settings``."""

    settings = settings or Settings()
    session = AnnotationSession(settings=settings, bus=bus, rng=rng)
    _LOGGER.debug(
        "Annotation session ready (theme=%s, dark=%s)",
        session.themes.active.name,
        session.is_dark_mode,
    )
    return session


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``linkweave`` console script."""

    args = _parse_cli_args(argv)
    debug = _env_flag("LINKWEAVE_DEBUG", default=False)
    settings_path = args.settings_path or os.environ.get("LINKWEAVE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=store, overrides=cli_overrides or None)
    try:
        configure_logging(debug or settings.debug_logging, log_dir=settings.log_dir, package_level=settings.log_level)
    except ValueError as exc:
        print(f"Invalid settings: {exc}", file=sys.stderr)
        return 2

    if args.dump_settings:
        _dump_settings(settings, store, overrides=cli_overrides)
        return 0

    try:
        session = create_session(settings)
    except ValueError as exc:
        print(f"Invalid settings: {exc}", file=sys.stderr)
        return 2
    try:
        for document_path in args.documents:
            try:
                _open_document(session, Path(document_path))
            except (OSError, ValueError) as exc:
                print(f"Cannot open {document_path}: {exc}", file=sys.stderr)
                return 2
        json.dump(_summarize(session), sys.stdout, indent=2)
        sys.stdout.write("\n")
    finally:
        session.close()
    return 0


def _install_qt_message_handler() -> None:
    """Redirect Qt warnings to the Python logging stack."""

    from PySide6.QtCore import QtMsgType, qInstallMessageHandler

    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        level = level_map.get(mode, logging.INFO)
        logging.getLogger("PySide6").log(level, message)

    qInstallMessageHandler(_handler)


def _open_document(session: AnnotationSession, path: Path) -> None:
    text = path.read_text(encoding="utf-8")
    document: Any = text
    if path.suffix.lower() == ".json":
        document = json.loads(text)
    session.open_editor(editor_id=path.stem, document=document, title=path.name)


def _summarize(session: AnnotationSession) -> Dict[str, Any]:
    """Describe the links and highlights held by every open editor."""

    editors: Dict[str, Any] = {}
    for editor in session.workspace.iter_editors():
        document = editor.document
        editors[editor.editor_id] = {
            "links": [
                {"range": [span.start, span.end], **dict(span.mark.attrs)}
                for span in document.find_mark_spans(LINK_MARK)
            ],
            "highlights": [
                {"range": [span.start, span.end], **dict(span.mark.attrs)}
                for span in document.find_mark_spans(HIGHLIGHT_MARK)
            ],
        }
    return {"theme": session.themes.active.name, "editors": editors}


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="linkweave",
        description="Inspect linkweave documents or the effective configuration.",
    )
    parser.add_argument("documents", nargs="*", help="Document files (.json or plain text) to load.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.linkweave/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings (repeatable).",
    )
    return parser.parse_args(argv)


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    known = {field.name for field in fields(Settings)}
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in known:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints[key], raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    if raw_value.lower() in {"none", "null"} and target is not str:
        return None
    if target is str or target is Any:
        return raw_value
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if is_dataclass(target) or target is dict:
        try:
            payload = json.loads(raw_value or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Structured overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Structured overrides must be valid JSON objects")
        return payload
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return dict
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    return args[0] if args else origin


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    output = {
        "settings": asdict(settings),
        "meta": {
            "path": str(store.path),
            "cli_overrides": sorted(overrides.keys()),
            "environment_variables": sorted(name for name in os.environ if name.startswith("LINKWEAVE_")),
        },
    }
    json.dump(output, destination, indent=2)
    destination.write("\n")


__all__ = ["configure_logging", "create_session", "load_settings", "main"]
