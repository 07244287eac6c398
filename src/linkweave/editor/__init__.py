"""Editor package containing the document model, transactions and viewports."""

from .document_editor import DocumentEditor
from .document_model import Document, Mark, MarkSpan, Node
from .schema import MarkType, NodeType, Schema, build_schema, default_schema
from .transaction import Transaction
from .viewport import HeadlessViewport, Rect, Viewport
from .workspace import EditorWindow, EditorWorkspace

__all__ = [
    "Document",
    "DocumentEditor",
    "EditorWindow",
    "EditorWorkspace",
    "HeadlessViewport",
    "Mark",
    "MarkSpan",
    "MarkType",
    "Node",
    "NodeType",
    "Rect",
    "Schema",
    "Transaction",
    "Viewport",
    "build_schema",
    "default_schema",
]
