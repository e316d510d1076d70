"""Transactions: ordered primitive steps applied atomically to a document."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from annodoc.exceptions import InvalidStepError
from annodoc.positions import (
    CLOSE,
    CharToken,
    CloseToken,
    OpenToken,
    Range,
    StepMap,
    Token,
    accepts_inline,
    check_position,
    check_range,
    map_through,
    matching_close,
    resolve,
)
from annodoc.schemas.marks import INHERITED_MARK_TYPES, Mark, MarkType, add_mark, normalize_marks
from annodoc.schemas.nodes import LIST_TYPES, TEXTBLOCK_TYPES, BlockNode, BlockType
from annodoc.schemas.steps import (
    AddMark,
    DeleteRange,
    InsertText,
    RemoveMark,
    SetBlockType,
    Step,
)


class Transaction(BaseModel):
    """Ordered list of steps; each step addresses the state left by the previous one."""

    steps: list[Step] = Field(default_factory=list)

    @classmethod
    def of(cls, *steps: Step) -> "Transaction":
        return cls(steps=list(steps))


@dataclass
class TransactionResult:
    """Outcome of applying a transaction.

    Attributes:
        changed: Whether the document content changed.
        steps: Concrete steps applied (after suggestion rewriting).
        maps: Offset shifts, in application order.
        suggestion_ids: Suggestions created while tracking changes.
    """

    changed: bool = False
    steps: list[Step] = field(default_factory=list)
    maps: list[StepMap] = field(default_factory=list)
    suggestion_ids: list[str] = field(default_factory=list)

    def map_point(self, pos: int, assoc: int = 1) -> int:
        return map_through(self.maps, pos, assoc)

    def map_range(self, rng: Range) -> Range:
        start = self.map_point(rng.start, 1)
        return Range(start, max(start, self.map_point(rng.end, -1)))


class TransactionBuilder:
    """Collects steps and applies them in one atomic transaction.

    Usage:
        result = (
            TransactionBuilder(apply=session.apply)
            .insert_text(7, "big ")
            .add_mark(7, 11, Bold())
            .commit()
        )
    """

    def __init__(self, apply=None) -> None:
        self._steps: list[Step] = []
        self._apply = apply

    def insert_text(self, pos: int, text: str, marks: tuple[Mark, ...] | None = None) -> "TransactionBuilder":
        self._steps.append(InsertText(pos=pos, text=text, marks=marks))
        return self

    def delete(self, start: int, end: int) -> "TransactionBuilder":
        self._steps.append(DeleteRange(start=start, end=end))
        return self

    def add_mark(self, start: int, end: int, mark: Mark) -> "TransactionBuilder":
        self._steps.append(AddMark(start=start, end=end, mark=mark))
        return self

    def remove_mark(
        self, start: int, end: int, mark_type: MarkType, mark_id: str | None = None
    ) -> "TransactionBuilder":
        self._steps.append(RemoveMark(start=start, end=end, mark_type=mark_type, mark_id=mark_id))
        return self

    def set_block_type(
        self,
        pos: int,
        block_type: BlockType,
        *,
        level: int | None = None,
        language: str | None = None,
    ) -> "TransactionBuilder":
        self._steps.append(
            SetBlockType(pos=pos, block_type=block_type, level=level, language=language)
        )
        return self

    def build(self) -> Transaction:
        return Transaction(steps=list(self._steps))

    def commit(self) -> "TransactionResult":
        if self._apply is None:
            raise RuntimeError("TransactionBuilder has no target to apply to")
        return self._apply(self.build())


def apply_step(tokens: list[Token], step: Step) -> list[StepMap]:
    """Apply one step to a working token list in place.

    Every check runs before the list is touched, so a raising step leaves
    ``tokens`` as it found them.

    Returns:
        Offset shifts caused by the step, in order.

    Raises:
        RangeError: If a position falls outside the document.
        InvalidStepError: If the step does not fit the node types at its position.
    """
    if isinstance(step, InsertText):
        return _insert_text(tokens, step)
    if isinstance(step, DeleteRange):
        return _delete_range(tokens, step)
    if isinstance(step, AddMark):
        return _add_mark(tokens, step)
    if isinstance(step, RemoveMark):
        return _remove_mark(tokens, step)
    if isinstance(step, SetBlockType):
        return _set_block_type(tokens, step)
    raise InvalidStepError(f"Unknown step {step!r}")


def inherited_marks(tokens: list[Token], pos: int) -> tuple[Mark, ...]:
    if pos > 0 and isinstance(tokens[pos - 1], CharToken):
        marks = tokens[pos - 1].marks
        return tuple(mark for mark in marks if mark.mark_type in INHERITED_MARK_TYPES)
    return ()


def _insert_text(tokens: list[Token], step: InsertText) -> list[StepMap]:
    resolved = resolve(tokens, step.pos)
    if not step.text:
        return []
    if not accepts_inline(tokens, resolved):
        raise InvalidStepError(f"Cannot insert text at {step.pos}: position is not inside a textblock")
    if step.marks is None:
        marks = inherited_marks(tokens, step.pos)
    else:
        marks = normalize_marks(step.marks)
    tokens[step.pos:step.pos] = [CharToken(char, marks) for char in step.text]
    return [StepMap(step.pos, len(step.text))]


def _delete_range(tokens: list[Token], step: DeleteRange) -> list[StepMap]:
    check_range(tokens, step.start, step.end)
    if step.start == step.end:
        return []
    depth = 0
    unmatched_closes = 0
    for token in tokens[step.start:step.end]:
        if isinstance(token, OpenToken):
            depth += 1
        elif isinstance(token, CloseToken):
            if depth:
                depth -= 1
            else:
                unmatched_closes += 1
    # Partially covered blocks are joined; that only works when as many
    # blocks are closed as are opened inside the range.
    if unmatched_closes != depth:
        raise InvalidStepError(
            f"Cannot delete [{step.start}, {step.end}): range does not join blocks of equal depth"
        )
    del tokens[step.start:step.end]
    return [StepMap(step.start, step.start - step.end)]


def _add_mark(tokens: list[Token], step: AddMark) -> list[StepMap]:
    check_range(tokens, step.start, step.end)
    for index in range(step.start, step.end):
        token = tokens[index]
        if isinstance(token, CharToken):
            tokens[index] = CharToken(token.char, add_mark(token.marks, step.mark))
    return []


def _remove_mark(tokens: list[Token], step: RemoveMark) -> list[StepMap]:
    check_range(tokens, step.start, step.end)
    for index in range(step.start, step.end):
        token = tokens[index]
        if not isinstance(token, CharToken):
            continue
        kept = tuple(
            mark
            for mark in token.marks
            if not (
                mark.mark_type == step.mark_type
                and (step.mark_id is None or mark.mark_id == step.mark_id)
            )
        )
        if kept != token.marks:
            tokens[index] = CharToken(token.char, kept)
    return []


def _textblock_shell(step: SetBlockType) -> BlockNode:
    if step.block_type == BlockType.HEADING:
        return BlockNode(type=BlockType.HEADING, level=step.level or 1)
    if step.block_type == BlockType.CODE_BLOCK:
        return BlockNode(type=BlockType.CODE_BLOCK, language=step.language)
    return BlockNode(type=step.block_type)


def _set_block_type(tokens: list[Token], step: SetBlockType) -> list[StepMap]:
    check_position(tokens, step.pos)
    if step.block_type in {BlockType.DOC, BlockType.LIST_ITEM}:
        raise InvalidStepError(f"Cannot set block type to {step.block_type.value}")
    resolved = resolve(tokens, step.pos)
    found = resolved.textblock()

    if found is None:
        if not accepts_inline(tokens, resolved):
            raise InvalidStepError(f"No textblock at position {step.pos}")
        # Plain-text root: give its text a block of its own first.
        first = _textblock_shell(step) if step.block_type in TEXTBLOCK_TYPES else BlockNode(type=BlockType.PARAGRAPH)
        tokens.append(CLOSE)
        tokens.insert(0, OpenToken(first))
        maps = [StepMap(len(tokens) - 2, 1), StepMap(0, 1)]
        if step.block_type in TEXTBLOCK_TYPES:
            return maps
        inner = step.model_copy(update={"pos": map_through(maps, step.pos)})
        return maps + _set_block_type(tokens, inner)

    open_index, block = found
    if step.block_type in TEXTBLOCK_TYPES:
        shell = _textblock_shell(step)
        # Headings and code blocks toggle back to a paragraph.
        if shell.type != BlockType.PARAGRAPH and block.type == shell.type and (
            shell.type != BlockType.HEADING or block.level == shell.level
        ):
            shell = BlockNode(type=BlockType.PARAGRAPH)
        tokens[open_index] = OpenToken(shell)
        return []

    close_index = matching_close(tokens, open_index)
    path = resolved.path
    depth = next(i for i, (index, _) in enumerate(path) if index == open_index)

    if step.block_type == BlockType.BLOCKQUOTE:
        if depth >= 1 and path[depth - 1][1].type == BlockType.BLOCKQUOTE:
            return _unwrap(tokens, path[depth - 1][0], levels=1)
        return _wrap(tokens, open_index, close_index, [BlockNode(type=BlockType.BLOCKQUOTE)])

    if (
        depth >= 2
        and path[depth - 1][1].type == BlockType.LIST_ITEM
        and path[depth - 2][1].type in LIST_TYPES
    ):
        list_index, list_block = path[depth - 2]
        if list_block.type == step.block_type:
            return _unwrap(tokens, list_index, levels=2)
        tokens[list_index] = OpenToken(list_block.model_copy(update={"type": step.block_type}))
        return []
    return _wrap(
        tokens,
        open_index,
        close_index,
        [BlockNode(type=step.block_type), BlockNode(type=BlockType.LIST_ITEM)],
    )


def _wrap(tokens: list[Token], open_index: int, close_index: int, wrappers: list[BlockNode]) -> list[StepMap]:
    count = len(wrappers)
    tokens[close_index + 1:close_index + 1] = [CLOSE] * count
    tokens[open_index:open_index] = [OpenToken(block) for block in wrappers]
    return [StepMap(close_index + 1, count), StepMap(open_index, count)]


def _unwrap(tokens: list[Token], open_index: int, levels: int) -> list[StepMap]:
    """Remove the wrapper opened at ``open_index`` and, for lists, its items."""
    close_index = matching_close(tokens, open_index)
    doomed = [open_index, close_index]
    if levels == 2:
        depth = 0
        for index in range(open_index + 1, close_index):
            token = tokens[index]
            if isinstance(token, OpenToken):
                if depth == 0:
                    doomed.extend([index, matching_close(tokens, index)])
                depth += 1
            elif isinstance(token, CloseToken):
                depth -= 1
    maps: list[StepMap] = []
    for index in sorted(doomed, reverse=True):
        del tokens[index]
        maps.append(StepMap(index, -1))
    return maps

