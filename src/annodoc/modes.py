"""Editing mode state held by each session."""

from __future__ import annotations

import logging
from enum import Enum

from annodoc.exceptions import ReadOnlyError

logger = logging.getLogger(__name__)


class EditorMode(str, Enum):
    """How edits are captured."""

    EDITING = "editing"
    SUGGESTING = "suggesting"
    VIEWING = "viewing"


class ModeState:
    """Current mode of one editing session.

    Switching into ``suggesting`` only affects later edits; switching out of
    it leaves existing suggestion marks in place.
    """

    def __init__(self, mode: EditorMode = EditorMode.EDITING) -> None:
        self._mode = EditorMode(mode)

    @property
    def mode(self) -> EditorMode:
        return self._mode

    def set_mode(self, mode: EditorMode | str) -> EditorMode:
        new_mode = EditorMode(mode)
        if new_mode != self._mode:
            logger.debug("Mode change: %s -> %s", self._mode.value, new_mode.value)
        self._mode = new_mode
        return new_mode

    @property
    def read_only(self) -> bool:
        return self._mode == EditorMode.VIEWING

    @property
    def tracks_changes(self) -> bool:
        return self._mode == EditorMode.SUGGESTING

    def ensure_writable(self, action: str = "edit") -> None:
        """Raise :class:`ReadOnlyError` while viewing."""
        if self.read_only:
            raise ReadOnlyError(f"Cannot {action}: document is in viewing mode")
