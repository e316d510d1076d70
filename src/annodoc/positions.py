"""Flattened offset space over the document tree.

Every block open, block close and character is one unit; a position is the
gap before a unit, counted from the start of the root's content. The tree is
flattened into a token list whose indices are exactly those positions, which
lets every step operate on plain list slices.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Union

from annodoc.exceptions import InvalidStepError, RangeError
from annodoc.schemas.marks import Mark
from annodoc.schemas.nodes import LIST_TYPES, TEXTBLOCK_TYPES, BlockNode, BlockType, TextNode


@dataclass(frozen=True)
class OpenToken:
    block: BlockNode


@dataclass(frozen=True)
class CloseToken:
    pass


@dataclass(frozen=True)
class CharToken:
    char: str
    marks: tuple[Mark, ...] = ()


Token = Union[OpenToken, CloseToken, CharToken]

CLOSE = CloseToken()


@dataclass(frozen=True)
class Range:
    """Half-open interval ``[start, end)`` over the offset space."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise RangeError(f"Invalid range [{self.start}, {self.end})")

    @property
    def empty(self) -> bool:
        return self.start == self.end

    @property
    def size(self) -> int:
        return self.end - self.start

    def contains(self, pos: int) -> bool:
        return self.start <= pos < self.end


@dataclass(frozen=True)
class StepMap:
    """Offset shift produced by one size-changing step.

    A positive ``delta`` inserted units at ``position``; a negative one
    removed ``[position, position - delta)``.
    """

    position: int
    delta: int

    def map_point(self, pos: int, assoc: int = 1) -> int:
        if self.delta >= 0:
            if pos > self.position or (pos == self.position and assoc > 0):
                return pos + self.delta
            return pos
        deleted_end = self.position - self.delta
        if pos >= deleted_end:
            return pos + self.delta
        if pos > self.position:
            return self.position
        return pos

    def map_range(self, rng: Range) -> Range:
        start = self.map_point(rng.start, 1)
        end = self.map_point(rng.end, -1)
        return Range(start, max(start, end))


def map_through(maps: Iterable[StepMap], pos: int, assoc: int = 1) -> int:
    for step_map in maps:
        pos = step_map.map_point(pos, assoc)
    return pos


def shift_ranges_after(ranges: Iterable[Range], position: int, delta: int) -> list[Range]:
    """Shift externally held ranges for an edit of ``delta`` units at ``position``.

    The document never calls this on stored comment anchors itself; callers
    that want anchors to follow edits must apply it.
    """
    step_map = StepMap(position, delta)
    return [step_map.map_range(rng) for rng in ranges]


@dataclass
class ResolvedPos:
    """A position with the chain of blocks enclosing it (root excluded)."""

    pos: int
    path: list[tuple[int, BlockNode]] = field(default_factory=list)

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def parent(self) -> BlockNode | None:
        return self.path[-1][1] if self.path else None

    def textblock(self) -> tuple[int, BlockNode] | None:
        """Innermost enclosing textblock as ``(open_index, block)``."""
        for index, block in reversed(self.path):
            if block.type in TEXTBLOCK_TYPES:
                return index, block
        return None


def flatten(root: BlockNode) -> list[Token]:
    """Flatten the root's content into tokens (the root itself is not emitted)."""
    tokens: list[Token] = []
    for child in root.children:
        _flatten_node(child, tokens)
    return tokens


def _flatten_node(node: TextNode | BlockNode, tokens: list[Token]) -> None:
    if isinstance(node, TextNode):
        tokens.extend(CharToken(char, node.marks) for char in node.text)
        return
    tokens.append(OpenToken(node.shell()))
    for child in node.children:
        _flatten_node(child, tokens)
    tokens.append(CLOSE)


def build(tokens: Iterable[Token], root: BlockNode | None = None) -> BlockNode:
    """Rebuild a tree from tokens under a copy of ``root``'s attributes.

    Raises:
        InvalidStepError: If opens and closes do not balance.
    """
    built = root.shell() if root is not None else BlockNode(type=BlockType.DOC)
    stack = [built]
    buffer: list[str] = []
    buffer_marks: tuple[Mark, ...] = ()

    def flush() -> None:
        if buffer:
            stack[-1].append_text("".join(buffer), buffer_marks)
            buffer.clear()

    for token in tokens:
        if isinstance(token, CharToken):
            if buffer and token.marks != buffer_marks:
                flush()
            buffer_marks = token.marks
            buffer.append(token.char)
            continue
        flush()
        if isinstance(token, OpenToken):
            block = token.block.shell()
            stack[-1].children.append(block)
            stack.append(block)
        else:
            if len(stack) == 1:
                raise InvalidStepError("Unbalanced block close in document content")
            stack.pop()
    flush()
    if len(stack) != 1:
        raise InvalidStepError("Unbalanced block open in document content")
    return built


def validate_tree(root: BlockNode) -> None:
    """Check node-type compatibility of every block.

    Raises:
        InvalidStepError: On a schema violation.
    """
    has_blocks = any(isinstance(child, BlockNode) for child in root.children)
    has_text = any(isinstance(child, TextNode) for child in root.children)
    if has_blocks and has_text:
        raise InvalidStepError("Document root cannot mix text and blocks")
    for block in root.iter_blocks():
        if block is root:
            continue
        _validate_block(block)


def _validate_block(block: BlockNode) -> None:
    if block.type == BlockType.DOC:
        raise InvalidStepError("A document node cannot be nested")
    if block.type in TEXTBLOCK_TYPES:
        if any(isinstance(child, BlockNode) for child in block.children):
            raise InvalidStepError(f"{block.type.value} can only contain text")
        return
    if any(isinstance(child, TextNode) for child in block.children):
        raise InvalidStepError(f"{block.type.value} can only contain blocks")
    if not block.children:
        raise InvalidStepError(f"{block.type.value} cannot be empty")
    if block.type in LIST_TYPES:
        if any(child.type != BlockType.LIST_ITEM for child in block.children):
            raise InvalidStepError("Lists can only contain list items")


def check_position(tokens: list[Token], pos: int) -> None:
    if pos < 0 or pos > len(tokens):
        raise RangeError(f"Position {pos} outside document bounds [0, {len(tokens)}]")


def check_range(tokens: list[Token], start: int, end: int) -> None:
    if start < 0 or end < start or end > len(tokens):
        raise RangeError(f"Range [{start}, {end}) outside document bounds [0, {len(tokens)}]")


def resolve(tokens: list[Token], pos: int) -> ResolvedPos:
    check_position(tokens, pos)
    path: list[tuple[int, BlockNode]] = []
    for index in range(pos):
        token = tokens[index]
        if isinstance(token, OpenToken):
            path.append((index, token.block))
        elif isinstance(token, CloseToken):
            path.pop()
    return ResolvedPos(pos=pos, path=path)


def accepts_inline(tokens: list[Token], resolved: ResolvedPos) -> bool:
    """Whether text may be inserted at ``resolved``."""
    parent = resolved.parent
    if parent is not None:
        return parent.type in TEXTBLOCK_TYPES
    return not any(isinstance(token, OpenToken) for token in tokens)


def matching_close(tokens: list[Token], open_index: int) -> int:
    depth = 0
    for index in range(open_index, len(tokens)):
        token = tokens[index]
        if isinstance(token, OpenToken):
            depth += 1
        elif isinstance(token, CloseToken):
            depth -= 1
            if depth == 0:
                return index
    raise InvalidStepError(f"No matching close for block at {open_index}")


def text_between(
    tokens: list[Token],
    start: int,
    end: int,
    include: Callable[[CharToken], bool] | None = None,
) -> str:
    """Text of ``[start, end)``; separate textblocks are joined with newlines."""
    check_range(tokens, start, end)
    parts: list[str] = []
    pending_break = False
    for token in tokens[start:end]:
        if isinstance(token, CharToken):
            if include is not None and not include(token):
                continue
            if pending_break:
                parts.append("\n")
                pending_break = False
            parts.append(token.char)
        elif parts:
            pending_break = True
    return "".join(parts)


def char_runs(
    tokens: list[Token],
    key: Callable[[CharToken], object],
    start: int = 0,
    end: int | None = None,
) -> list[tuple[int, int, object]]:
    """Maximal runs of consecutive characters with the same non-None ``key``.

    Runs never cross block boundaries.
    """
    end = len(tokens) if end is None else end
    runs: list[tuple[int, int, object]] = []
    run_start: int | None = None
    run_key: object = None
    for index in range(start, end):
        token = tokens[index]
        value = key(token) if isinstance(token, CharToken) else None
        if run_start is not None and value != run_key:
            runs.append((run_start, index, run_key))
            run_start = None
        if value is not None and run_start is None:
            run_start, run_key = index, value
    if run_start is not None:
        runs.append((run_start, end, run_key))
    return runs
