from __future__ import annotations

from collections import deque
from typing import Deque, Optional

from .state import GameState

DEFAULT_LIMIT = 200


class HistoryStack:
    """Bounded undo/redo stacks of GameState snapshots.

    Entries are stored as independent snapshots; the live state passed in is
    never retained.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT) -> None:
        if limit <= 0:
            raise ValueError("history limit must be positive")
        self.limit = limit
        self._undo: Deque[GameState] = deque(maxlen=limit)
        self._redo: Deque[GameState] = deque(maxlen=limit)

    def __len__(self) -> int:
        return len(self._undo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    def record(self, state: GameState) -> None:
        """Pushes a pre-mutation snapshot and invalidates the redo branch."""
        self.push(state.snapshot())

    def push(self, snap: GameState) -> None:
        self._undo.append(snap)  # deque(maxlen) drops the oldest entry
        self.drop_redo()

    def drop_redo(self) -> None:
        self._redo.clear()

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    def undo(self, live: GameState) -> Optional[GameState]:
        """Swaps ``live`` onto the redo stack and returns the state to restore."""
        if not self._undo:
            return None
        prev = self._undo.pop()
        self._redo.append(live.snapshot())
        prev.game_over = False
        return prev

    def redo(self, live: GameState) -> Optional[GameState]:
        if not self._redo:
            return None
        nxt = self._redo.pop()
        self._undo.append(live.snapshot())
        return nxt
