"""
Submission Tracker - Turns whose automated reveal the server accepted.

Per-session and ephemeral. A turn is added only after acceptance and
removed when the server says the turn is wrong (BAD_TURN), so a turn
can never get stuck as "submitted" without the server agreeing.
"""

from __future__ import annotations
from typing import FrozenSet


class SubmissionTracker:
    """Copy-on-write set of turn numbers."""

    def __init__(self, turns: FrozenSet[int] = frozenset()):
        self._turns: FrozenSet[int] = frozenset(turns)

    def __contains__(self, turn: int) -> bool:
        return turn in self._turns

    def __len__(self) -> int:
        return len(self._turns)

    def add(self, turn: int):
        self._turns = self._turns | {turn}

    def discard(self, turn: int) -> bool:
        """Remove turn. Returns True if it was present."""
        if turn not in self._turns:
            return False
        self._turns = self._turns - {turn}
        return True

    def snapshot(self) -> FrozenSet[int]:
        return self._turns
