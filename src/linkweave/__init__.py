"""Bidirectional cross-document links and synchronized highlights."""

from .session import AnnotationSession

__all__ = ["AnnotationSession"]

__version__ = "0.1.0"
