"""Undo stack of one open session.

Snapshots share structure with the live state: towns, round events and card
plays are immutable records, so a snapshot only keeps references to the
records that were current when it was taken.
"""

from typing import List, Optional

from resilience_game.errors import NothingToRevertError
from resilience_game.models.schema_models import Snapshot


class UndoManager:
    def __init__(self):
        self._stack: List[Snapshot] = []

    def save_snapshot(self, snapshot: Snapshot) -> None:
        self._stack.append(snapshot)

    def peek(self) -> Snapshot:
        """Return the latest snapshot without removing it.

        Raises:
            NothingToRevertError: the stack is empty.
        """
        if not self._stack:
            raise NothingToRevertError()
        return self._stack[-1]

    def pop(self) -> Snapshot:
        snapshot = self.peek()
        self._stack.pop()
        return snapshot

    def discard_latest(self) -> Optional[Snapshot]:
        """Drop the snapshot of an action that did not happen."""
        return self._stack.pop() if self._stack else None

    def clear(self) -> None:
        self._stack.clear()

    @property
    def can_revert(self) -> bool:
        return bool(self._stack)

    def __len__(self) -> int:
        return len(self._stack)
