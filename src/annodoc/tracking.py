"""Suggestion capture: rewrite edits into tracked insert/delete marks."""

from __future__ import annotations

from typing import Callable

from annodoc.positions import CharToken, Token, check_position, check_range, text_between
from annodoc.schemas.marks import MarkType, TrackDelete, TrackInsert, find_mark, has_mark
from annodoc.schemas.records import new_id
from annodoc.schemas.steps import AddMark, DeleteRange, InsertText, Step


class TrackChanges:
    """Rewrites one user's edits into suggestions.

    Steps reach :meth:`rewrite` with offsets in the caller's view, where
    tracked deletions are gone. Text kept on the page as a pending deletion is
    remembered per transaction so later steps land where the caller meant.
    """

    def __init__(self, user_id: str, id_factory: Callable[[], str] = new_id) -> None:
        self.user_id = user_id
        self._id_factory = id_factory
        self.created: list[str] = []
        # (caller offset, units kept in place) for deletions turned into marks.
        self._hidden: list[tuple[int, int]] = []

    def begin(self) -> None:
        self.created = []
        self._hidden = []

    def rewrite(self, tokens: list[Token], step: Step) -> list[Step]:
        mapped = step.map(self._to_document)
        if isinstance(step, InsertText):
            concrete = self._track_insert(tokens, mapped)
            if step.text:
                self._shift_hidden(step.pos, len(step.text))
            return concrete
        if isinstance(step, DeleteRange):
            concrete, kept = self._track_delete(tokens, mapped)
            self._collapse_hidden(step.start, step.end, kept)
            return concrete
        return [mapped]

    def _to_document(self, pos: int, assoc: int) -> int:
        return pos + sum(
            kept for at, kept in self._hidden if at < pos or (at == pos and assoc > 0)
        )

    def _shift_hidden(self, pos: int, size: int) -> None:
        self._hidden = [(at + size if at > pos else at, kept) for at, kept in self._hidden]

    def _collapse_hidden(self, start: int, end: int, kept: int) -> None:
        hidden: list[tuple[int, int]] = []
        for at, units in self._hidden:
            if at >= end:
                hidden.append((at - (end - start), units))
            elif at <= start:
                hidden.append((at, units))
        if kept:
            hidden.append((start, kept))
        self._hidden = hidden

    def _suggestion_id(self, tokens: list[Token], pos: int) -> str:
        if pos > 0 and isinstance(tokens[pos - 1], CharToken):
            mark = find_mark(tokens[pos - 1].marks, MarkType.TRACK_INSERT)
            if mark is not None and mark.user_id == self.user_id:
                return mark.suggestion_id
        suggestion_id = self._id_factory()
        self.created.append(suggestion_id)
        return suggestion_id

    def _track_insert(self, tokens: list[Token], step: InsertText) -> list[Step]:
        check_position(tokens, step.pos)
        if not step.text:
            return [step]
        mark = TrackInsert(
            suggestion_id=self._suggestion_id(tokens, step.pos), user_id=self.user_id
        )
        return [step, AddMark(start=step.pos, end=step.pos + len(step.text), mark=mark)]

    def _track_delete(self, tokens: list[Token], step: DeleteRange) -> tuple[list[Step], int]:
        """Mark ``step``'s text as deleted; drop pending insertions outright.

        Returns the concrete steps and the number of units left in place.
        """
        check_range(tokens, step.start, step.end)
        marked: list[tuple[int, int]] = []
        withdrawn: list[tuple[int, int]] = []
        for index in range(step.start, step.end):
            token = tokens[index]
            if not isinstance(token, CharToken):
                continue
            target = withdrawn if has_mark(token.marks, MarkType.TRACK_INSERT) else marked
            if target and target[-1][1] == index:
                target[-1] = (target[-1][0], index + 1)
            else:
                target.append((index, index + 1))
        if not marked and not withdrawn:
            return [], step.end - step.start

        steps: list[Step] = []
        if marked:
            suggestion_id = self._id_factory()
            self.created.append(suggestion_id)
            for start, end in marked:
                mark = TrackDelete(
                    suggestion_id=suggestion_id,
                    user_id=self.user_id,
                    original_text=text_between(tokens, start, end),
                )
                steps.append(AddMark(start=start, end=end, mark=mark))
        for start, end in reversed(withdrawn):
            steps.append(DeleteRange(start=start, end=end))
        removed = sum(end - start for start, end in withdrawn)
        return steps, step.end - step.start - removed
