"""annodoc: annotated rich-text documents with comments, suggestions and Markdown export."""

from annodoc.annotations import (
    accept_all_suggestions,
    accept_suggestion,
    add_comment,
    collect_suggestions,
    reject_all_suggestions,
    reject_suggestion,
)
from annodoc.document import EditorDocument
from annodoc.exceptions import (
    AnnodocError,
    InvalidStepError,
    NotFoundError,
    PersistenceError,
    RangeError,
    ReadOnlyError,
)
from annodoc.interchange import export_markdown, import_markdown, paste_text
from annodoc.markdown import looks_like_markdown, parse_markdown, to_annotated_markdown, to_markdown
from annodoc.modes import EditorMode, ModeState
from annodoc.positions import Range
from annodoc.session import EditorSession
from annodoc.store import DocumentStore, InMemoryStore, RestStore
from annodoc.transactions import Transaction, TransactionBuilder, TransactionResult

__all__ = [
    "AnnodocError",
    "DocumentStore",
    "EditorDocument",
    "EditorMode",
    "EditorSession",
    "InMemoryStore",
    "InvalidStepError",
    "ModeState",
    "NotFoundError",
    "PersistenceError",
    "Range",
    "RangeError",
    "ReadOnlyError",
    "RestStore",
    "Transaction",
    "TransactionBuilder",
    "TransactionResult",
    "accept_all_suggestions",
    "accept_suggestion",
    "add_comment",
    "collect_suggestions",
    "export_markdown",
    "import_markdown",
    "looks_like_markdown",
    "parse_markdown",
    "paste_text",
    "reject_all_suggestions",
    "reject_suggestion",
    "to_annotated_markdown",
    "to_markdown",
]
