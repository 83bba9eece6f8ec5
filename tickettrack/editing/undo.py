from __future__ import annotations

import logging
from typing import Generic, TypeVar

from tickettrack.core.errors import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UndoRedoBuffer(Generic[T]):
    """Bounded linear history of state snapshots addressed by a cursor.

    ``update`` drops every snapshot after the cursor before appending, so a
    new edit made after an undo discards the redo branch. When the history
    grows past ``max_history_size`` the oldest snapshot is evicted.
    """

    def __init__(self, initial: T, *, max_history_size: int = 50) -> None:
        if max_history_size < 1:
            raise ValidationError(f"max_history_size must be >= 1, got {max_history_size}")
        self._max_history_size = max_history_size
        self._history: list[T] = [initial]
        self._current_index = 0

    @property
    def state(self) -> T:
        return self._history[self._current_index]

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def history_size(self) -> int:
        return len(self._history)

    @property
    def max_history_size(self) -> int:
        return self._max_history_size

    @property
    def can_undo(self) -> bool:
        return self._current_index > 0

    @property
    def can_redo(self) -> bool:
        return self._current_index < len(self._history) - 1

    def update(self, state: T) -> T:
        del self._history[self._current_index + 1 :]
        self._history.append(state)
        self._current_index += 1
        if len(self._history) > self._max_history_size:
            self._history.pop(0)
            self._current_index -= 1
        logger.debug("Recorded snapshot %d/%d", self._current_index + 1, len(self._history))
        return state

    def undo(self) -> T:
        if self.can_undo:
            self._current_index -= 1
        return self.state

    def redo(self) -> T:
        if self.can_redo:
            self._current_index += 1
        return self.state

    def reset(self, state: T) -> T:
        self._history = [state]
        self._current_index = 0
        return state
