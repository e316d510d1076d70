"""Comment marks and suggestion accept/reject over a document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from annodoc.document import EditorDocument
from annodoc.exceptions import InvalidStepError
from annodoc.positions import CharToken, Range, Token, char_runs, text_between
from annodoc.schemas.marks import (
    TRACK_MARK_TYPES,
    CommentMark,
    MarkType,
    TrackDelete,
    TrackInsert,
    TrackMark,
    find_mark,
)
from annodoc.schemas.records import Comment, Suggestion, User, new_id
from annodoc.schemas.steps import AddMark, DeleteRange, RemoveMark, Step
from annodoc.transactions import Transaction, TransactionResult

logger = logging.getLogger(__name__)

Resolution = Literal["accept", "reject"]


@dataclass(frozen=True)
class SuggestionRun:
    """Maximal run of characters carrying one track mark."""

    start: int
    end: int
    mark: TrackMark


def add_comment(
    document: EditorDocument,
    rng: Range,
    text: str,
    user: User,
    document_id: str,
    *,
    comment_id: str | None = None,
) -> Comment:
    """Mark ``rng`` with a new comment and return the comment record.

    Raises:
        InvalidStepError: If ``rng`` is empty.
        RangeError: If ``rng`` lies outside the document.
    """
    if rng.empty:
        raise InvalidStepError("A comment needs a non-empty selection")
    comment_id = comment_id or new_id()
    document.apply_transaction(
        Transaction.of(AddMark(start=rng.start, end=rng.end, mark=CommentMark(comment_id=comment_id)))
    )
    return Comment(
        id=comment_id,
        document_id=document_id,
        user_id=user.id,
        user_name=user.display_name,
        content=text,
        position_from=rng.start,
        position_to=rng.end,
    )


def comment_ranges(document: EditorDocument, comment_id: str | None = None) -> list[tuple[Range, str]]:
    """Runs carrying a comment mark, optionally only those for ``comment_id``."""

    def key(token: CharToken) -> str | None:
        mark = find_mark(token.marks, MarkType.COMMENT)
        return mark.comment_id if mark is not None else None

    return [
        (Range(start, end), found)
        for start, end, found in char_runs(document.tokens(), key)
        if comment_id is None or found == comment_id
    ]


def remove_comment_mark(document: EditorDocument, comment_id: str) -> TransactionResult:
    """Strip the comment mark carrying ``comment_id`` wherever it is."""
    steps: list[Step] = [
        RemoveMark(start=rng.start, end=rng.end, mark_type=MarkType.COMMENT, mark_id=comment_id)
        for rng, _ in comment_ranges(document, comment_id)
    ]
    return document.apply_transaction(Transaction(steps=steps))


def find_suggestion_runs(tokens: list[Token], suggestion_id: str | None = None) -> list[SuggestionRun]:
    """Runs carrying a track mark, in document order."""

    def key(token: CharToken) -> TrackMark | None:
        for mark in token.marks:
            if mark.mark_type in TRACK_MARK_TYPES:
                return mark
        return None

    return [
        SuggestionRun(start, end, mark)
        for start, end, mark in char_runs(tokens, key)
        if suggestion_id is None or mark.suggestion_id == suggestion_id
    ]


def _resolution_steps(runs: list[SuggestionRun], resolution: Resolution) -> list[Step]:
    """Mark removals first, then deletions from the end of the document backwards."""
    removals: list[Step] = []
    deletions: list[DeleteRange] = []
    for run in runs:
        keeps_text = isinstance(run.mark, TrackInsert) == (resolution == "accept")
        if keeps_text:
            removals.append(
                RemoveMark(
                    start=run.start,
                    end=run.end,
                    mark_type=run.mark.mark_type,
                    mark_id=run.mark.suggestion_id,
                )
            )
        else:
            deletions.append(DeleteRange(start=run.start, end=run.end))
    deletions.sort(key=lambda step: step.start, reverse=True)
    return [*removals, *deletions]


def resolve_suggestion(
    document: EditorDocument, suggestion_id: str, resolution: Resolution
) -> TransactionResult:
    runs = find_suggestion_runs(document.tokens(), suggestion_id)
    if not runs:
        logger.debug("Suggestion %s not found; nothing to %s", suggestion_id, resolution)
        return TransactionResult(changed=False)
    return document.apply_transaction(Transaction(steps=_resolution_steps(runs, resolution)))


def accept_suggestion(document: EditorDocument, suggestion_id: str) -> TransactionResult:
    """Keep an insertion's text or carry out a deletion. Unknown ids are a no-op."""
    return resolve_suggestion(document, suggestion_id, "accept")


def reject_suggestion(document: EditorDocument, suggestion_id: str) -> TransactionResult:
    """Drop an insertion's text or restore a deletion. Unknown ids are a no-op."""
    return resolve_suggestion(document, suggestion_id, "reject")


def resolve_all_suggestions(document: EditorDocument, resolution: Resolution) -> TransactionResult:
    runs = find_suggestion_runs(document.tokens())
    if not runs:
        return TransactionResult(changed=False)
    return document.apply_transaction(Transaction(steps=_resolution_steps(runs, resolution)))


def accept_all_suggestions(document: EditorDocument) -> TransactionResult:
    return resolve_all_suggestions(document, "accept")


def reject_all_suggestions(document: EditorDocument) -> TransactionResult:
    return resolve_all_suggestions(document, "reject")


def collect_suggestions(document: EditorDocument) -> list[Suggestion]:
    """Group track-marked runs by suggestion id, in document order.

    ``content`` is the marked text; for deletions it falls back to the
    recorded original text. The range spans from the first run to the last.
    """
    tokens = document.tokens()
    grouped: dict[str, list[SuggestionRun]] = {}
    for run in find_suggestion_runs(tokens):
        grouped.setdefault(run.mark.suggestion_id, []).append(run)

    suggestions: list[Suggestion] = []
    for suggestion_id, runs in grouped.items():
        first = runs[0].mark
        kind = "insert" if isinstance(first, TrackInsert) else "delete"
        content = "".join(text_between(tokens, run.start, run.end) for run in runs)
        if not content and isinstance(first, TrackDelete):
            content = first.original_text
        suggestions.append(
            Suggestion(
                id=suggestion_id,
                type=kind,
                content=content,
                start=runs[0].start,
                end=runs[-1].end,
                user_id=first.user_id,
            )
        )
    return suggestions
