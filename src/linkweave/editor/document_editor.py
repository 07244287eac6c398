"""Headless editor instance: a document, a selection and a viewport."""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Callable, Mapping, Protocol

from ..core.ranges import TextRange
from ..errors import DocumentParseError, StaleTransactionError
from .document_model import Document
from .schema import Schema, default_schema
from .transaction import Transaction
from .viewport import HeadlessViewport, Viewport

LOGGER = logging.getLogger(__name__)


class TransactionListener(Protocol):
    def __call__(self, editor: "DocumentEditor", transaction: Transaction) -> None:
        ...


def _hash_json(payload: Mapping[str, Any]) -> str:
    return hashlib.sha1(repr(payload).encode("utf-8")).hexdigest()


class DocumentEditor:
    """One open editor.

    The editor owns its document exclusively. Every change goes through
    :meth:`apply_transaction`, which swaps in the transaction's document
    atomically and notifies listeners afterwards.
    """

    def __init__(
        self,
        editor_id: str,
        *,
        schema: Schema | None = None,
        document: Document | None = None,
        viewport: Viewport | None = None,
    ) -> None:
        if not editor_id:
            raise ValueError("editor_id must be a non-empty string")
        self.editor_id = editor_id
        self.schema = schema or (document.schema if document is not None else default_schema())
        if document is not None and document.schema is not self.schema:
            raise ValueError("Document was built from a different schema")
        self._document = document or Document.empty(self.schema)
        self._selection = TextRange.caret(self._document.start_position())
        self._version_id = 0
        self._listeners: list[TransactionListener] = []
        self.viewport: Viewport = viewport or HeadlessViewport()
        self.viewport.sync(self._document)

    def __repr__(self) -> str:
        return f"DocumentEditor({self.editor_id!r}, version={self._version_id})"

    # ------------------------------------------------------------------
    # Document access
    # ------------------------------------------------------------------
    @property
    def document(self) -> Document:
        return self._document

    @property
    def version_id(self) -> int:
        return self._version_id

    @property
    def selection(self) -> TextRange:
        return self._selection

    def set_selection(self, selection: Any) -> TextRange:
        """Set the selection, clamping it to the document bounds."""

        self._selection = TextRange.from_value(selection).clamp(upper=self._document.content_size)
        return self._selection

    def has_mark_type(self, name: str) -> bool:
        return self.schema.has_mark(name)

    def load_json(self, payload: Any) -> bool:
        """Replace the document with a serialized one.

        Malformed payloads are logged and replaced with an empty document so
        the editor always ends up usable.

        Returns:
            ``True`` when the payload was loaded, ``False`` on fallback.
        """

        try:
            document = Document.from_json(self.schema, payload)
            loaded = True
        except DocumentParseError as exc:
            LOGGER.warning("Editor %s received an invalid document; starting empty: %s", self.editor_id, exc)
            document = Document.empty(self.schema)
            loaded = False
        self._replace_document(document)
        return loaded

    def load_text(self, text: str) -> None:
        self._replace_document(Document.from_text(self.schema, text))

    def to_json(self) -> dict[str, Any]:
        return self._document.to_json()

    def content_hash(self) -> str:
        return _hash_json(self.to_json())

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    def transaction(self) -> Transaction:
        return Transaction(self._document)

    def apply_transaction(self, transaction: Transaction) -> bool:
        """Commit ``transaction`` to this editor.

        Returns:
            ``True`` when the document changed.

        Raises:
            StaleTransactionError: If the transaction was built against a
                document that has since been replaced.
        """

        if transaction.before is not self._document:
            raise StaleTransactionError(
                f"Transaction for editor {self.editor_id} was built against an outdated document"
            )
        if not transaction.doc_changed:
            return False
        start, end = self._selection
        self._document = transaction.doc
        self._version_id += 1
        self._selection = TextRange(transaction.map_pos(start), transaction.map_pos(end)).clamp(
            upper=self._document.content_size
        )
        self.viewport.sync(self._document)
        LOGGER.debug(
            "Editor %s applied %d step(s); version=%s",
            self.editor_id,
            len(transaction.steps),
            self._version_id,
        )
        for listener in list(self._listeners):
            listener(self, transaction)
        return True

    def insert_text(self, text: str, *, selection: Any | None = None) -> bool:
        """Replace the selection with ``text`` and put the caret after it."""

        target = self._selection if selection is None else TextRange.from_value(selection)
        tr = self.transaction().replace_text(target.start, target.end, text)
        changed = self.apply_transaction(tr)
        self._selection = TextRange.caret(target.start + len(text)).clamp(upper=self._document.content_size)
        return changed

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_transaction_listener(self, listener: TransactionListener | Callable[..., None]) -> None:
        self._listeners.append(listener)  # type: ignore[arg-type]

    def remove_transaction_listener(self, listener: TransactionListener | Callable[..., None]) -> None:
        try:
            self._listeners.remove(listener)  # type: ignore[arg-type]
        except ValueError:
            pass

    def _replace_document(self, document: Document) -> None:
        self._document = document
        self._version_id += 1
        self._selection = TextRange.caret(document.start_position())
        self.viewport.sync(document)


__all__ = ["DocumentEditor", "TransactionListener"]
