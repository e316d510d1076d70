"""Export models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from annodoc.schemas.records import Comment, Suggestion


class CommentData(BaseModel):
    """Comment as listed in the annotated Markdown footer."""

    id: str
    content: str
    author: str | None = None
    resolved: bool = False

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentData":
        return cls(
            id=comment.id,
            content=comment.content,
            author=comment.user_name or comment.user_id,
            resolved=comment.resolved,
        )


class SuggestionData(BaseModel):
    """Suggestion as listed in the annotated Markdown footer."""

    id: str
    type: Literal["insert", "delete"]
    content: str
    author: str | None = None

    @classmethod
    def from_suggestion(
        cls, suggestion: Suggestion, authors: dict[str, str] | None = None
    ) -> "SuggestionData":
        author = suggestion.user_id
        if authors and suggestion.user_id in authors:
            author = authors[suggestion.user_id]
        return cls(
            id=suggestion.id,
            type=suggestion.type,
            content=suggestion.content,
            author=author,
        )


class ExportResult(BaseModel):
    """Final export output."""

    summary: str
    content: str
    filename: str
