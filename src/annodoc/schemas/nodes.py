"""Document tree models."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, Field

from annodoc.schemas.marks import Mark

MAX_HEADING_LEVEL = 3


class BlockType(str, Enum):
    """Block node kinds."""

    DOC = "doc"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BULLET_LIST = "bullet_list"
    ORDERED_LIST = "ordered_list"
    LIST_ITEM = "list_item"
    BLOCKQUOTE = "blockquote"
    CODE_BLOCK = "code_block"


TEXTBLOCK_TYPES = frozenset({BlockType.PARAGRAPH, BlockType.HEADING, BlockType.CODE_BLOCK})
LIST_TYPES = frozenset({BlockType.BULLET_LIST, BlockType.ORDERED_LIST})


class TextNode(BaseModel):
    """A run of text sharing one set of marks."""

    type: Literal["text"] = "text"
    text: str
    marks: tuple[Mark, ...] = ()

    @property
    def size(self) -> int:
        return len(self.text)


class BlockNode(BaseModel):
    """A block owning an ordered list of child blocks or text runs.

    Attributes:
        type: Kind of block.
        level: Heading level (1-3); headings only.
        language: Fence language; code blocks only.
        start: First item number; ordered lists only.
        children: Child blocks, or text runs for textblocks.
    """

    type: BlockType
    level: int | None = Field(default=None, ge=1, le=MAX_HEADING_LEVEL)
    language: str | None = None
    start: int | None = None
    children: list[Union[TextNode, "BlockNode"]] = Field(default_factory=list)

    @property
    def is_textblock(self) -> bool:
        """Whether this block holds inline text rather than blocks.

        The root ``doc`` block holds text directly while it has no block
        children (a plain-text document).
        """
        if self.type in TEXTBLOCK_TYPES:
            return True
        if self.type == BlockType.DOC:
            return not any(isinstance(child, BlockNode) for child in self.children)
        return False

    @property
    def content_size(self) -> int:
        return sum(child.size for child in self.children)

    @property
    def size(self) -> int:
        return self.content_size + 2

    @property
    def text_content(self) -> str:
        if self.is_textblock:
            return "".join(child.text for child in self.children if isinstance(child, TextNode))
        return "\n".join(
            child.text_content for child in self.children if isinstance(child, BlockNode)
        )

    def shell(self) -> "BlockNode":
        """Copy of this block's attributes without children."""
        return self.model_copy(update={"children": []})

    def append_text(self, text: str, marks: tuple[Mark, ...] = ()) -> None:
        """Append text, merging into the last run when the marks match."""
        if not text:
            return
        last = self.children[-1] if self.children else None
        if isinstance(last, TextNode) and last.marks == marks:
            last.text += text
        else:
            self.children.append(TextNode(text=text, marks=marks))

    def iter_blocks(self):
        """Yield this block and every descendant block, depth first."""
        yield self
        for child in self.children:
            if isinstance(child, BlockNode):
                yield from child.iter_blocks()


Node = Union[TextNode, BlockNode]

BlockNode.model_rebuild()
