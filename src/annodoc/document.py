"""The editable document: a block tree mutated only through transactions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from annodoc.positions import (
    CharToken,
    Range,
    Token,
    build,
    check_position,
    check_range,
    flatten,
    resolve,
    text_between,
    validate_tree,
)
from annodoc.schemas.marks import Mark, MarkType
from annodoc.schemas.nodes import BlockNode, BlockType, TextNode
from annodoc.transactions import Transaction, TransactionResult, apply_step

if TYPE_CHECKING:
    from bs4 import BeautifulSoup

    from annodoc.tracking import TrackChanges

logger = logging.getLogger(__name__)


class EditorDocument:
    """Canonical content of one document.

    The tree is replaced wholesale after each successful transaction, so a
    ``root`` obtained earlier stays a valid snapshot of the older state.
    """

    def __init__(self, root: BlockNode | None = None) -> None:
        root = root if root is not None else BlockNode(type=BlockType.DOC)
        if root.type != BlockType.DOC:
            root = BlockNode(type=BlockType.DOC, children=[root])
        validate_tree(root)
        self._root = root

    @classmethod
    def from_text(cls, text: str) -> "EditorDocument":
        """Plain-text document whose root holds ``text`` directly."""
        root = BlockNode(type=BlockType.DOC)
        root.append_text(text)
        return cls(root)

    @classmethod
    def from_markdown(cls, text: str) -> "EditorDocument":
        from annodoc.markdown import parse_markdown
        from annodoc.projection import load_projection

        return cls(load_projection(parse_markdown(text)))

    @classmethod
    def from_projection(cls, soup: "BeautifulSoup") -> "EditorDocument":
        from annodoc.projection import load_projection

        return cls(load_projection(soup))

    @classmethod
    def from_json(cls, data: dict[str, Any] | None) -> "EditorDocument":
        """Load the persisted content blob; ``None`` gives an empty document."""
        if not data:
            return cls()
        return cls(BlockNode.model_validate(data))

    def to_json(self) -> dict[str, Any]:
        return self._root.model_dump(mode="json", exclude_none=True)

    @property
    def root(self) -> BlockNode:
        return self._root

    @property
    def content_size(self) -> int:
        return self._root.content_size

    @property
    def text_content(self) -> str:
        return self._root.text_content

    @property
    def is_empty(self) -> bool:
        return not self.text_content.strip()

    def tokens(self) -> list[Token]:
        return flatten(self._root)

    def apply_transaction(
        self, transaction: Transaction, tracking: "TrackChanges | None" = None
    ) -> TransactionResult:
        """Apply every step of ``transaction`` or none of them.

        Args:
            transaction: Steps to apply, in order.
            tracking: When given, insertions and deletions are rewritten into
                suggestion marks for its user.

        Returns:
            The applied steps, their offset maps and any new suggestion ids.

        Raises:
            RangeError: If a step addresses a position outside the document.
            InvalidStepError: If a step is incompatible with the node types it
                touches. The document is left unchanged in both cases.
        """
        tokens = flatten(self._root)
        result = TransactionResult()
        if tracking is not None:
            tracking.begin()
        for step in transaction.steps:
            concrete = tracking.rewrite(tokens, step) if tracking is not None else [step]
            for applied in concrete:
                result.maps.extend(apply_step(tokens, applied))
                result.steps.append(applied)
        root = build(tokens, self._root)
        validate_tree(root)
        if tracking is not None:
            result.suggestion_ids = list(tracking.created)
        result.changed = root != self._root
        self._root = root
        logger.debug("Applied %d step(s), changed=%s", len(result.steps), result.changed)
        return result

    def replace_content(self, root: BlockNode) -> None:
        """Swap in a whole new tree (imports); not a tracked edit."""
        if root.type != BlockType.DOC:
            root = BlockNode(type=BlockType.DOC, children=[root])
        validate_tree(root)
        self._root = root

    def marks_at(self, pos: int) -> tuple[Mark, ...]:
        """Marks in effect at ``pos``.

        Taken from the character before ``pos``, or from the character after
        it at the start of a textblock.
        """
        tokens = flatten(self._root)
        check_position(tokens, pos)
        if pos > 0 and isinstance(tokens[pos - 1], CharToken):
            return tokens[pos - 1].marks
        if pos < len(tokens) and isinstance(tokens[pos], CharToken):
            return tokens[pos].marks
        return ()

    def block_type_at(self, pos: int) -> BlockType:
        resolved = resolve(flatten(self._root), pos)
        found = resolved.textblock()
        if found is not None:
            return found[1].type
        parent = resolved.parent
        return parent.type if parent is not None else BlockType.DOC

    def heading_level_at(self, pos: int) -> int | None:
        found = resolve(flatten(self._root), pos).textblock()
        if found is None or found[1].type != BlockType.HEADING:
            return None
        return found[1].level

    def is_mark_active(self, mark_type: MarkType, start: int, end: int | None = None) -> bool:
        """Whether every character of ``[start, end)`` carries ``mark_type``.

        An empty range asks about the marks in effect at ``start``.
        """
        end = start if end is None else end
        if start == end:
            return any(mark.mark_type == mark_type for mark in self.marks_at(start))
        tokens = flatten(self._root)
        check_range(tokens, start, end)
        chars = [token for token in tokens[start:end] if isinstance(token, CharToken)]
        return bool(chars) and all(
            any(mark.mark_type == mark_type for mark in char.marks) for char in chars
        )

    def text_between(self, start: int, end: int) -> str:
        return text_between(flatten(self._root), start, end)

    def find_text(self, needle: str, start: int = 0) -> Range | None:
        """Range of the first occurrence of ``needle`` at or after ``start``.

        Matches never span a block boundary.
        """
        if not needle:
            return None
        haystack = "".join(
            token.char if isinstance(token, CharToken) else "\x00"
            for token in flatten(self._root)
        )
        index = haystack.find(needle, start)
        if index < 0:
            return None
        return Range(index, index + len(needle))

    def text_nodes(self) -> list[TextNode]:
        return [
            child
            for block in self._root.iter_blocks()
            for child in block.children
            if isinstance(child, TextNode)
        ]

    def serialize_to_projection(self) -> "BeautifulSoup":
        from annodoc.projection import render_projection

        return render_projection(self._root)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EditorDocument):
            return NotImplemented
        return self._root == other._root

    def __repr__(self) -> str:
        return f"EditorDocument(size={self.content_size}, text={self.text_content[:40]!r})"
