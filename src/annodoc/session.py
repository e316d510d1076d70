"""Editing session: one user's document, comments, mode and persistence."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable

from annodoc import annotations as overlay
from annodoc.autosave import AutoSaver, ErrorCallback, SaveStatus
from annodoc.config import (
    ANNODOC_HISTORY_LIMIT,
    ANNODOC_REANCHOR_COMMENTS,
    ANNODOC_SAVE_DEBOUNCE_S,
)
from annodoc.document import EditorDocument
from annodoc.exceptions import NotFoundError, PersistenceError
from annodoc.modes import EditorMode, ModeState
from annodoc.positions import Range
from annodoc.schemas import (
    BlockNode,
    BlockType,
    Comment,
    CommentData,
    Mark,
    MarkType,
    Suggestion,
    SuggestionData,
    User,
)
from annodoc.schemas.steps import AddMark, DeleteRange, InsertText, RemoveMark, SetBlockType
from annodoc.store import DocumentStore
from annodoc.tracking import TrackChanges
from annodoc.transactions import Transaction, TransactionBuilder, TransactionResult

logger = logging.getLogger(__name__)


class EditorSession:
    """Context for one editing session.

    Every mutation goes through the session so that the current mode decides
    whether it is applied, tracked as a suggestion, or rejected. Mutations are
    synchronous; persistence runs in background tasks on the running loop, or
    waits for the next ``flush`` when there is no running loop.

    Usage:
        session = await EditorSession.load(store, document_id)
        session.set_mode("suggesting")
        session.insert_text(7, "big ")
        await session.flush()
    """

    def __init__(
        self,
        document_id: str,
        user: User,
        *,
        document: EditorDocument | None = None,
        title: str = "Untitled",
        comments: list[Comment] | None = None,
        store: DocumentStore | None = None,
        mode: EditorMode | str = EditorMode.EDITING,
        on_error: ErrorCallback | None = None,
        save_wait: float = ANNODOC_SAVE_DEBOUNCE_S,
        reanchor_comments: bool = ANNODOC_REANCHOR_COMMENTS,
        history_limit: int = ANNODOC_HISTORY_LIMIT,
    ) -> None:
        self.document_id = document_id
        self.user = user
        self.document = document or EditorDocument()
        self.title = title
        self.comments: list[Comment] = list(comments or [])
        self.mode_state = ModeState(EditorMode(mode))
        self.reanchor_comments = reanchor_comments
        self.history_limit = history_limit
        self._undo_stack: list[BlockNode] = []
        self._redo_stack: list[BlockNode] = []
        self._store = store
        self._on_error = on_error
        self._tasks: set[asyncio.Task] = set()
        self._deferred: list[Callable[[], Awaitable[None]]] = []
        self._autosaver = (
            AutoSaver(store, document_id, wait=save_wait, on_error=on_error)
            if store is not None
            else None
        )

    @classmethod
    async def load(
        cls, store: DocumentStore, document_id: str, **kwargs
    ) -> "EditorSession":
        """Load a stored document and its comments for the current user.

        Raises:
            NotFoundError: If there is no signed-in user or no such document.
            PersistenceError: If the store fails.
        """
        user = await store.get_current_user()
        if user is None:
            raise NotFoundError("No signed-in user")
        record = await store.load_document(document_id)
        comments = await store.list_comments(document_id)
        return cls(
            document_id,
            user,
            document=EditorDocument.from_json(record.content),
            title=record.title,
            comments=comments,
            store=store,
            **kwargs,
        )

    @property
    def mode(self) -> EditorMode:
        return self.mode_state.mode

    def set_mode(self, mode: EditorMode | str) -> EditorMode:
        return self.mode_state.set_mode(mode)

    @property
    def save_status(self) -> SaveStatus:
        return self._autosaver.status if self._autosaver is not None else SaveStatus.SAVED

    # Document edits

    def apply(self, transaction: Transaction) -> TransactionResult:
        """Apply ``transaction`` according to the current mode.

        Raises:
            ReadOnlyError: In viewing mode.
            RangeError: If a step addresses a position outside the document.
            InvalidStepError: If a step does not fit the document structure.
        """
        self.mode_state.ensure_writable("edit the document")
        tracking = TrackChanges(self.user.id) if self.mode_state.tracks_changes else None
        before = self.document.root
        result = self.document.apply_transaction(transaction, tracking)
        return self._after_change(result, before)

    def transaction(self) -> TransactionBuilder:
        return TransactionBuilder(apply=self.apply)

    def insert_text(self, pos: int, text: str, marks: tuple[Mark, ...] | None = None) -> TransactionResult:
        return self.apply(Transaction.of(InsertText(pos=pos, text=text, marks=marks)))

    def delete(self, start: int, end: int) -> TransactionResult:
        return self.apply(Transaction.of(DeleteRange(start=start, end=end)))

    def add_mark(self, start: int, end: int, mark: Mark) -> TransactionResult:
        return self.apply(Transaction.of(AddMark(start=start, end=end, mark=mark)))

    def remove_mark(self, start: int, end: int, mark_type: MarkType) -> TransactionResult:
        return self.apply(Transaction.of(RemoveMark(start=start, end=end, mark_type=mark_type)))

    def toggle_mark(self, start: int, end: int, mark: Mark) -> TransactionResult:
        """Remove ``mark``'s type if it covers the whole range, else add ``mark``."""
        if self.document.is_mark_active(mark.mark_type, start, end):
            return self.remove_mark(start, end, mark.mark_type)
        return self.add_mark(start, end, mark)

    def set_block_type(
        self,
        pos: int,
        block_type: BlockType,
        *,
        level: int | None = None,
        language: str | None = None,
    ) -> TransactionResult:
        return self.apply(
            Transaction.of(
                SetBlockType(pos=pos, block_type=block_type, level=level, language=language)
            )
        )

    def replace_content(self, root: BlockNode) -> None:
        """Replace the whole document (imports); never tracked."""
        self.mode_state.ensure_writable("import content")
        before = self.document.root
        self.document.replace_content(root)
        if self.document.root != before:
            self._remember(before)
        self._schedule_save()

    def set_title(self, title: str) -> None:
        self.mode_state.ensure_writable("rename the document")
        self.title = title
        if self._store is not None:
            self._spawn(self._store.save_document_title, self.document_id, title)

    async def delete_document(self) -> None:
        """Delete the stored document and end the session."""
        self.mode_state.ensure_writable("delete the document")
        self.close()
        if self._store is not None:
            await self._store.delete_document(self.document_id)

    # Comments

    def get_comment(self, comment_id: str) -> Comment:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        raise NotFoundError(f"Comment {comment_id} not found")

    def add_comment(self, rng: Range, text: str) -> Comment:
        self.mode_state.ensure_writable("add a comment")
        before = self.document.root
        comment = overlay.add_comment(self.document, rng, text, self.user, self.document_id)
        self.comments.append(comment)
        self._remember(before)
        self._schedule_save()
        if self._store is not None:
            self._spawn(self._store.insert_comment, comment)
        return comment

    def resolve_comment(self, comment_id: str, resolved: bool | None = None) -> Comment:
        """Flip (or set) a comment's resolved flag; its highlight stays."""
        self.mode_state.ensure_writable("resolve a comment")
        comment = self.get_comment(comment_id)
        comment.resolved = (not comment.resolved) if resolved is None else resolved
        if self._store is not None:
            self._spawn(self._store.update_comment, comment_id, resolved=comment.resolved)
        return comment

    def delete_comment(self, comment_id: str, *, remove_mark: bool = True) -> None:
        """Delete a comment.

        With ``remove_mark=True`` the highlight carrying its id is removed as
        well; ``False`` leaves that highlight in the text with a dangling id.
        """
        self.mode_state.ensure_writable("delete a comment")
        comment = self.get_comment(comment_id)
        self.comments.remove(comment)
        if remove_mark:
            before = self.document.root
            self._after_change(overlay.remove_comment_mark(self.document, comment_id), before)
        if self._store is not None:
            self._spawn(self._store.delete_comment, comment_id)

    def comment_data(self) -> list[CommentData]:
        return [CommentData.from_comment(comment) for comment in self.comments]

    # Suggestions

    def suggestions(self) -> list[Suggestion]:
        return overlay.collect_suggestions(self.document)

    def suggestion_data(self) -> list[SuggestionData]:
        authors = {self.user.id: self.user.display_name}
        for comment in self.comments:
            if comment.user_name:
                authors.setdefault(comment.user_id, comment.user_name)
        return [SuggestionData.from_suggestion(s, authors) for s in self.suggestions()]

    def accept_suggestion(self, suggestion_id: str) -> TransactionResult:
        self.mode_state.ensure_writable("accept a suggestion")
        before = self.document.root
        return self._after_change(overlay.accept_suggestion(self.document, suggestion_id), before)

    def reject_suggestion(self, suggestion_id: str) -> TransactionResult:
        self.mode_state.ensure_writable("reject a suggestion")
        before = self.document.root
        return self._after_change(overlay.reject_suggestion(self.document, suggestion_id), before)

    def accept_all_suggestions(self) -> TransactionResult:
        self.mode_state.ensure_writable("accept suggestions")
        before = self.document.root
        return self._after_change(overlay.accept_all_suggestions(self.document), before)

    def reject_all_suggestions(self) -> TransactionResult:
        self.mode_state.ensure_writable("reject suggestions")
        before = self.document.root
        return self._after_change(overlay.reject_all_suggestions(self.document), before)

    # History

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    def undo(self) -> bool:
        """Restore the document as it was before the last change.

        Covers document content only; comment records and the title are not
        rolled back. Returns ``False`` when there is nothing to undo.

        Raises:
            ReadOnlyError: In viewing mode.
        """
        self.mode_state.ensure_writable("undo")
        return self._restore(self._undo_stack, self._redo_stack)

    def redo(self) -> bool:
        """Re-apply the last undone change; ``False`` when there is none."""
        self.mode_state.ensure_writable("redo")
        return self._restore(self._redo_stack, self._undo_stack)

    def _restore(self, source: list[BlockNode], target: list[BlockNode]) -> bool:
        if not source:
            return False
        target.append(self.document.root)
        self.document.replace_content(source.pop())
        self._schedule_save()
        return True

    def _remember(self, before: BlockNode) -> None:
        self._undo_stack.append(before)
        del self._undo_stack[: max(0, len(self._undo_stack) - self.history_limit)]
        self._redo_stack.clear()

    # Persistence

    async def flush(self) -> None:
        """Wait for the pending save and every background write."""
        deferred, self._deferred = self._deferred, []
        for operation in deferred:
            await self._guard(operation())
        if self._autosaver is not None:
            await self._autosaver.flush()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Drop the pending save; writes already dispatched still complete."""
        if self._autosaver is not None:
            self._autosaver.cancel()

    def _after_change(self, result: TransactionResult, before: BlockNode) -> TransactionResult:
        if result.changed:
            self._remember(before)
            if self.reanchor_comments and result.maps:
                self._reanchor(result)
            self._schedule_save()
        return result

    def _reanchor(self, result: TransactionResult) -> None:
        for comment in self.comments:
            moved = result.map_range(Range(comment.position_from, comment.position_to))
            comment.position_from, comment.position_to = moved.start, moved.end

    def _schedule_save(self) -> None:
        if self._autosaver is not None:
            self._autosaver.schedule(self.document.to_json())

    def _spawn(self, func: Callable[..., Awaitable[None]], *args: Any, **kwargs: Any) -> None:
        operation = partial(func, *args, **kwargs)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; write waits for flush")
            self._deferred.append(operation)
            return
        task = loop.create_task(self._guard(operation()))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guard(self, operation: Awaitable[None]) -> None:
        try:
            await operation
        except (PersistenceError, NotFoundError) as exc:
            logger.error("Background save for document %s failed: %s", self.document_id, exc)
            if self._on_error is not None:
                self._on_error(exc)
