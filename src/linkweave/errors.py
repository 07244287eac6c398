"""Exception hierarchy shared by the editor substrate and annotation services."""

from __future__ import annotations


class AnnotationError(RuntimeError):
    """Base class for errors raised by linkweave."""


class SchemaError(AnnotationError):
    """Raised when an editor schema lacks a node or mark type a feature needs."""

    def __init__(self, message: str, *, feature: str | None = None, type_name: str | None = None) -> None:
        super().__init__(message)
        self.feature = feature
        self.type_name = type_name

    def details(self) -> dict[str, str | None]:
        return {"feature": self.feature, "type": self.type_name}


class InvalidMarkError(AnnotationError, ValueError):
    """Raised when mark attributes violate the link/highlight data contract."""


class DocumentParseError(AnnotationError, ValueError):
    """Raised when a serialized document cannot be turned into a node tree."""

    def __init__(self, message: str, *, path: str = "$") -> None:
        super().__init__(f"{message} (at {path})")
        self.path = path


class StepError(AnnotationError):
    """Raised when a transaction step cannot be applied to the current document."""

    def __init__(self, message: str, *, step: str | None = None, start: int | None = None, end: int | None = None) -> None:
        super().__init__(message)
        self.step = step
        self.start = start
        self.end = end

    def details(self) -> dict[str, object]:
        return {"step": self.step, "from": self.start, "to": self.end}


class StaleTransactionError(AnnotationError):
    """Raised when a transaction was built against a document that is no longer current."""


class UnknownEditorError(KeyError):
    """Raised when an editor id does not refer to an open editor."""

    def __init__(self, editor_id: str) -> None:
        super().__init__(editor_id)
        self.editor_id = editor_id

    def __str__(self) -> str:
        return f"Unknown editor id: {self.editor_id!r}"


__all__ = [
    "AnnotationError",
    "DocumentParseError",
    "InvalidMarkError",
    "SchemaError",
    "StaleTransactionError",
    "StepError",
    "UnknownEditorError",
]
