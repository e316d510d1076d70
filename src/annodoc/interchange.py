"""Markdown import, paste handling and export for an editing session."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

from annodoc.markdown import (
    looks_like_markdown,
    parse_markdown,
    to_annotated_markdown,
    to_markdown,
)
from annodoc.output_formatter import format_export
from annodoc.projection import load_projection
from annodoc.schemas import ExportResult
from annodoc.session import EditorSession
from annodoc.transactions import TransactionResult

_FILENAME_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def import_markdown(session: EditorSession, text: str) -> None:
    """Replace the session's document with parsed Markdown.

    Raises:
        ReadOnlyError: In viewing mode.
    """
    session.replace_content(load_projection(parse_markdown(text)))


def paste_text(session: EditorSession, pos: int, text: str) -> TransactionResult | None:
    """Paste plain text at ``pos``.

    Markdown-looking text pasted into an empty document replaces it as an
    import. Anything else is inserted as a normal edit, so it is tracked in
    suggesting mode.

    Returns:
        The transaction result, or None when the paste was imported.
    """
    if session.document.is_empty and looks_like_markdown(text):
        import_markdown(session, text)
        return None
    return session.insert_text(pos, text)


def export_filename(title: str | None, annotated: bool = False) -> str:
    """File name for an export, e.g. ``My Doc`` -> ``my_doc.md``."""
    stem = _FILENAME_RE.sub("_", title or "").lower() or "untitled"
    return f"{stem}_annotated.md" if annotated else f"{stem}.md"


def export_markdown(session: EditorSession, annotated: bool = False) -> ExportResult:
    """Export the session's document as clean or annotated Markdown."""
    projection = session.document.serialize_to_projection()
    comments = session.comment_data()
    suggestions = session.suggestion_data()
    if annotated:
        content = to_annotated_markdown(projection, comments, suggestions)
    else:
        content = to_markdown(projection)
    return format_export(
        title=session.title,
        content=content,
        filename=export_filename(session.title, annotated),
        annotated=annotated,
        comments=comments,
        suggestions=suggestions,
    )


async def write_markdown_file(path: Path, content: str, encoding: str = "utf-8") -> Path:
    """Write an export to disk asynchronously using a thread pool.

    Args:
        path: Target file; missing parent directories are created.
        content: Markdown text.
        encoding: Text encoding to use.

    Returns:
        The path written.
    """
    await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
    await asyncio.to_thread(path.write_text, content, encoding=encoding)
    return path
