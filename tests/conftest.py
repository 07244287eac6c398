"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import os
import random
from typing import Any, Iterator, List

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from linkweave.editor.schema import Schema, default_schema  # noqa: E402
from linkweave.editor.workspace import EditorWorkspace  # noqa: E402
from linkweave.events import Event, EventBus  # noqa: E402
from linkweave.services.settings import Settings  # noqa: E402
from linkweave.session import AnnotationSession  # noqa: E402


class EventRecorder:
    """Collects every event of the requested types published on a bus."""

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: List[Any] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> List[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


@pytest.fixture
def schema() -> Schema:
    return default_schema()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def workspace(bus: EventBus) -> EditorWorkspace:
    return EditorWorkspace(bus=bus)


@pytest.fixture
def session() -> Iterator[AnnotationSession]:
    active = AnnotationSession(settings=Settings(), rng=random.Random(7))
    yield active
    active.close()


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Undo root logger changes made by ``setup_logging``."""

    root = logging.getLogger()
    package = logging.getLogger("linkweave")
    handlers = list(root.handlers)
    level = root.level
    package_level = package.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    package.setLevel(package_level)


@pytest.fixture
def record():
    """Return a factory attaching an :class:`EventRecorder` to a bus."""

    def factory(bus: EventBus, *event_types: type[Event]) -> EventRecorder:
        return EventRecorder(bus, *event_types)

    return factory
