"""
Linear undo/redo history for the graph document.

Whole-graph snapshots are kept on two stacks. ``past`` is bounded; when it
overflows the oldest snapshot is discarded.
"""

from typing import List, Optional

from .models import HistorySnapshot


DEFAULT_HISTORY_LIMIT = 50


class HistoryManager:
    """Bounded past/future snapshot stacks."""

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError(f"History limit must be positive, got {limit}")
        self.limit = limit
        self.past: List[HistorySnapshot] = []
        self.future: List[HistorySnapshot] = []

    def record(self, snapshot: HistorySnapshot):
        """Push a pre-mutation snapshot and invalidate redo."""
        self.past.append(snapshot)
        if len(self.past) > self.limit:
            del self.past[:len(self.past) - self.limit]
        self.future.clear()

    def undo(self, current: HistorySnapshot) -> Optional[HistorySnapshot]:
        """Return the snapshot to restore, or None if there is nothing to undo."""
        if not self.past:
            return None
        previous = self.past.pop()
        self.future.append(current)
        return previous

    def redo(self, current: HistorySnapshot) -> Optional[HistorySnapshot]:
        if not self.future:
            return None
        following = self.future.pop()
        self.past.append(current)
        if len(self.past) > self.limit:
            del self.past[:len(self.past) - self.limit]
        return following

    def clear(self):
        self.past.clear()
        self.future.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)
