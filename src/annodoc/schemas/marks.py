"""Mark models attached to runs of inline text."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Iterable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class MarkType(str, Enum):
    """Closed set of mark kinds, in projection nesting order (outermost first)."""

    COMMENT = "comment"
    TRACK_INSERT = "track_insert"
    TRACK_DELETE = "track_delete"
    LINK = "link"
    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINE = "underline"
    STRIKE = "strike"
    CODE = "code"


TRACK_MARK_TYPES = frozenset({MarkType.TRACK_INSERT, MarkType.TRACK_DELETE})
# Marks that newly typed text picks up from the character before it.
INHERITED_MARK_TYPES = frozenset(
    {MarkType.BOLD, MarkType.ITALIC, MarkType.UNDERLINE, MarkType.STRIKE, MarkType.CODE}
)

_RANK = {mark_type: index for index, mark_type in enumerate(MarkType)}


class _BaseMark(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str

    @property
    def mark_type(self) -> MarkType:
        return MarkType(self.type)

    @property
    def mark_id(self) -> str | None:
        """Comment or suggestion id carried by the mark, if any."""
        return None

    def excludes(self, other: "_BaseMark") -> bool:
        """Whether applying this mark must drop ``other`` from the same run."""
        if self.mark_type == other.mark_type:
            return True
        return {self.mark_type, other.mark_type} == TRACK_MARK_TYPES


class Bold(_BaseMark):
    type: Literal["bold"] = "bold"


class Italic(_BaseMark):
    type: Literal["italic"] = "italic"


class Underline(_BaseMark):
    type: Literal["underline"] = "underline"


class Strike(_BaseMark):
    type: Literal["strike"] = "strike"


class Code(_BaseMark):
    type: Literal["code"] = "code"


class Link(_BaseMark):
    type: Literal["link"] = "link"
    href: str


class CommentMark(_BaseMark):
    """Anchors a run of text to a Comment record."""

    type: Literal["comment"] = "comment"
    comment_id: str

    @property
    def mark_id(self) -> str | None:
        return self.comment_id


class TrackInsert(_BaseMark):
    """Text proposed for insertion."""

    type: Literal["track_insert"] = "track_insert"
    suggestion_id: str
    user_id: str | None = None

    @property
    def mark_id(self) -> str | None:
        return self.suggestion_id


class TrackDelete(_BaseMark):
    """Text proposed for deletion; the text stays in place until accepted."""

    type: Literal["track_delete"] = "track_delete"
    suggestion_id: str
    user_id: str | None = None
    original_text: str = ""

    @property
    def mark_id(self) -> str | None:
        return self.suggestion_id


Mark = Annotated[
    Union[Bold, Italic, Underline, Strike, Code, Link, CommentMark, TrackInsert, TrackDelete],
    Field(discriminator="type"),
]
TrackMark = Union[TrackInsert, TrackDelete]


def normalize_marks(marks: Iterable[Mark]) -> tuple[Mark, ...]:
    """Return marks deduplicated by exclusion (last one wins) in canonical order."""
    result: list[Mark] = []
    for mark in marks:
        result = [existing for existing in result if not mark.excludes(existing)]
        result.append(mark)
    return tuple(sorted(result, key=lambda mark: _RANK[mark.mark_type]))


def add_mark(marks: tuple[Mark, ...], mark: Mark) -> tuple[Mark, ...]:
    return normalize_marks((*marks, mark))


def has_mark(marks: Iterable[Mark], mark_type: MarkType) -> bool:
    return any(mark.mark_type == mark_type for mark in marks)


def find_mark(marks: Iterable[Mark], mark_type: MarkType) -> Mark | None:
    for mark in marks:
        if mark.mark_type == mark_type:
            return mark
    return None
