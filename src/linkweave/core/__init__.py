"""Core value types shared across editors and annotation services."""

from .ranges import TextRange

__all__ = ["TextRange"]
