"""Records exchanged with the external record store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class User(BaseModel):
    """The signed-in collaborator."""

    id: str
    display_name: str
    avatar_url: str | None = None
    email: str | None = None


class DocumentRecord(BaseModel):
    """A stored document; ``content`` is the serialized tree (JSON blob)."""

    id: str
    user_id: str
    title: str = "Untitled"
    content: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Comment(BaseModel):
    """A comment anchored to a raw offset pair captured at creation time.

    The anchor is not re-anchored by the core when the document is edited
    elsewhere, so ``position_from``/``position_to`` may drift from the text
    the comment mark still covers.
    """

    id: str = Field(default_factory=new_id)
    document_id: str
    user_id: str
    user_name: str | None = None
    content: str
    position_from: int
    position_to: int
    resolved: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class Suggestion(BaseModel):
    """A pending tracked change, derived from track marks in the tree."""

    id: str
    type: Literal["insert", "delete"]
    content: str
    start: int
    end: int
    user_id: str | None = None
