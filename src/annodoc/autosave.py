"""Debounced background saving of document content."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from annodoc.config import ANNODOC_SAVE_DEBOUNCE_S
from annodoc.exceptions import AnnodocError, NotFoundError, PersistenceError
from annodoc.store import DocumentStore

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[AnnodocError], None]


class SaveStatus(str, Enum):
    SAVED = "saved"
    SAVING = "saving"
    UNSAVED = "unsaved"


class Debouncer:
    """Run an async function once a quiet period has passed since the last call.

    Each call cancels the pending timer and starts a new one with the latest
    arguments. Without a running event loop the call stays pending until
    ``flush``. ``cancel`` drops the pending call only; a call already
    dispatched runs to completion.
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], wait: float) -> None:
        self._func = func
        self._wait = wait
        self._handle: asyncio.TimerHandle | None = None
        self._pending: tuple[tuple[Any, ...], dict[str, Any]] | None = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = (args, kwargs)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; call waits for flush")
            return
        self._handle = loop.call_later(self._wait, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = None

    async def flush(self) -> None:
        """Run a pending call now and wait for every dispatched call."""
        if self._handle is not None:
            self._handle.cancel()
        if self._pending is not None:
            self._fire()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    def _fire(self) -> None:
        self._handle = None
        if self._pending is None:
            return
        args, kwargs = self._pending
        self._pending = None
        task = asyncio.ensure_future(self._func(*args, **kwargs))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)


class AutoSaver:
    """Persist document content after edits settle.

    Failures are logged and reported through ``on_error``; the status drops
    back to ``unsaved`` and the next edit schedules another attempt.
    """

    def __init__(
        self,
        store: DocumentStore,
        document_id: str,
        *,
        wait: float = ANNODOC_SAVE_DEBOUNCE_S,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._store = store
        self._document_id = document_id
        self._on_error = on_error
        self._debouncer = Debouncer(self._save, wait)
        self.status = SaveStatus.SAVED
        self.last_saved_at: datetime | None = None

    def schedule(self, content: dict[str, Any]) -> None:
        self.status = SaveStatus.UNSAVED
        self._debouncer(content, datetime.now(timezone.utc))

    def cancel(self) -> None:
        self._debouncer.cancel()

    async def flush(self) -> None:
        await self._debouncer.flush()

    async def _save(self, content: dict[str, Any], updated_at: datetime) -> None:
        self.status = SaveStatus.SAVING
        try:
            await self._store.save_document_content(self._document_id, content, updated_at)
        except (PersistenceError, NotFoundError) as exc:
            logger.error("Failed to save document %s: %s", self._document_id, exc)
            self.status = SaveStatus.UNSAVED
            if self._on_error is not None:
                self._on_error(exc)
            return
        self.last_saved_at = updated_at
        if not self._debouncer.pending:
            self.status = SaveStatus.SAVED
        logger.info("Saved document %s", self._document_id)
