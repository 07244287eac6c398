"""Cross-document annotations: paired links, synchronized highlights and colour allocation."""

from .color_allocator import AllocatorConfig, ColorAllocator, ColorRegistry, HighlightPalette
from .highlight_sync import AutoHighlighter, HighlightSynchronizer
from .marks import HIGHLIGHT_MARK, LINK_GLYPH, LINK_MARK, HighlightAttrs, LinkAttrs
from .navigation import CrossDocumentNavigator, NavigationConfig
from .pairing import LinkPairingCoordinator, MutationResult, PairingState

__all__ = [
    "AllocatorConfig",
    "AutoHighlighter",
    "ColorAllocator",
    "ColorRegistry",
    "CrossDocumentNavigator",
    "HIGHLIGHT_MARK",
    "HighlightAttrs",
    "HighlightPalette",
    "HighlightSynchronizer",
    "LINK_GLYPH",
    "LINK_MARK",
    "LinkAttrs",
    "LinkPairingCoordinator",
    "MutationResult",
    "NavigationConfig",
    "PairingState",
]
