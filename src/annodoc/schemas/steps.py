"""Primitive transaction steps."""

from __future__ import annotations

from typing import Annotated, Callable, Literal, Union

from pydantic import BaseModel, Field

from annodoc.schemas.marks import Mark, MarkType
from annodoc.schemas.nodes import BlockType

# (position, assoc) -> position; assoc < 0 keeps a point left of inserted content.
PositionMapper = Callable[[int, int], int]


class InsertText(BaseModel):
    """Insert ``text`` at ``pos``.

    ``marks=None`` lets the text inherit formatting from the character
    before ``pos``.
    """

    type: Literal["insert_text"] = "insert_text"
    pos: int
    text: str
    marks: tuple[Mark, ...] | None = None

    def map(self, mapper: PositionMapper) -> "InsertText":
        return self.model_copy(update={"pos": mapper(self.pos, 1)})


class DeleteRange(BaseModel):
    type: Literal["delete_range"] = "delete_range"
    start: int
    end: int

    def map(self, mapper: PositionMapper) -> "DeleteRange":
        start = mapper(self.start, 1)
        return self.model_copy(update={"start": start, "end": max(start, mapper(self.end, -1))})


class AddMark(BaseModel):
    type: Literal["add_mark"] = "add_mark"
    start: int
    end: int
    mark: Mark

    def map(self, mapper: PositionMapper) -> "AddMark":
        start = mapper(self.start, 1)
        return self.model_copy(update={"start": start, "end": max(start, mapper(self.end, -1))})


class RemoveMark(BaseModel):
    """Remove marks of ``mark_type`` (optionally only the one with ``mark_id``)."""

    type: Literal["remove_mark"] = "remove_mark"
    start: int
    end: int
    mark_type: MarkType
    mark_id: str | None = None

    def map(self, mapper: PositionMapper) -> "RemoveMark":
        start = mapper(self.start, 1)
        return self.model_copy(update={"start": start, "end": max(start, mapper(self.end, -1))})


class SetBlockType(BaseModel):
    """Toggle the textblock at ``pos`` to ``block_type``, or a list/blockquote wrapper around it."""

    type: Literal["set_block_type"] = "set_block_type"
    pos: int
    block_type: BlockType
    level: int | None = None
    language: str | None = None

    def map(self, mapper: PositionMapper) -> "SetBlockType":
        return self.model_copy(update={"pos": mapper(self.pos, 1)})


Step = Annotated[
    Union[InsertText, DeleteRange, AddMark, RemoveMark, SetBlockType],
    Field(discriminator="type"),
]
