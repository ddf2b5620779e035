from __future__ import annotations

import logging
from collections import deque

from quiklens.domain.entities.edit_params import EditParams

logger = logging.getLogger(__name__)

MAX_HISTORY_LENGTH = 20


class HistoryStack:
    """Bounded undo/redo history of immutable ``EditParams`` snapshots.

    The deque evicts the oldest entry on overflow, which shifts every index down by one;
    the cursor always ends on the entry that was just pushed.
    """

    def __init__(self, max_length: int = MAX_HISTORY_LENGTH) -> None:
        if max_length < 1:
            raise ValueError("max_length must be >= 1")
        self.max_length = max_length
        self._entries: deque[EditParams] = deque(maxlen=max_length)
        self._index = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        return self._index

    @property
    def entries(self) -> tuple[EditParams, ...]:
        return tuple(self._entries)

    @property
    def current(self) -> EditParams | None:
        if self._index < 0:
            return None
        return self._entries[self._index]

    def reset(self, initial: EditParams | None = None) -> None:
        """Clear the stack, optionally seeding it with the pristine state."""
        self._entries.clear()
        self._index = -1
        if initial is not None:
            self.push(initial)

    def push(self, entry: EditParams) -> None:
        # drop the redo branch
        while len(self._entries) > self._index + 1:
            self._entries.pop()
        self._entries.append(entry)
        self._index = len(self._entries) - 1
        logger.debug("History push: %d entries, index %d", len(self._entries), self._index)

    def can_undo(self) -> bool:
        return self._index > 0

    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def undo(self) -> EditParams | None:
        if not self.can_undo():
            return None
        self._index -= 1
        return self._entries[self._index]

    def redo(self) -> EditParams | None:
        if not self.can_redo():
            return None
        self._index += 1
        return self._entries[self._index]
