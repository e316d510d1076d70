"""Shared schemas for annodoc."""

from annodoc.schemas.export import CommentData, ExportResult, SuggestionData
from annodoc.schemas.marks import (
    Bold,
    Code,
    CommentMark,
    Italic,
    Link,
    Mark,
    MarkType,
    Strike,
    TrackDelete,
    TrackInsert,
    Underline,
)
from annodoc.schemas.nodes import BlockNode, BlockType, Node, TextNode
from annodoc.schemas.records import Comment, DocumentRecord, Suggestion, User
from annodoc.schemas.steps import (
    AddMark,
    DeleteRange,
    InsertText,
    RemoveMark,
    SetBlockType,
    Step,
)

__all__ = [
    "AddMark",
    "BlockNode",
    "BlockType",
    "Bold",
    "Code",
    "Comment",
    "CommentData",
    "CommentMark",
    "DeleteRange",
    "DocumentRecord",
    "ExportResult",
    "InsertText",
    "Italic",
    "Link",
    "Mark",
    "MarkType",
    "Node",
    "RemoveMark",
    "SetBlockType",
    "Step",
    "Strike",
    "Suggestion",
    "SuggestionData",
    "TextNode",
    "TrackDelete",
    "TrackInsert",
    "Underline",
    "User",
]
