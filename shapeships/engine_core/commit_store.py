"""
Commit Store - Commit/reveal bookkeeping on a GameState.

All functions operate on state.commitments in place; callers pass a
state the reducer has already cloned. Protocol violations raise
CommitError carrying the rejection code, so the reducer can turn them
into rejections without re-deriving the reason.
"""

from __future__ import annotations
from typing import Any, Iterable

from .hashing import validate_reveal
from .intent import RejectionCode
from .state import CommitRecord, GameState


class CommitError(Exception):
    """A commit/reveal protocol violation."""

    def __init__(self, code: RejectionCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def get_commit(state: GameState, instance_key: str, player_id: str) -> CommitRecord | None:
    return state.commit_for(instance_key, player_id)


def has_revealed(state: GameState, instance_key: str, player_id: str) -> bool:
    record = get_commit(state, instance_key, player_id)
    return record is not None and record.is_revealed


def store_commit(state: GameState, instance_key: str, player_id: str, commit_hash: str, now_ms: int) -> CommitRecord:
    """
    Record a commitment.

    Raises:
        CommitError(DUPLICATE_COMMIT): player already committed this instance
    """
    records = state.commitments.setdefault(instance_key, {})
    if player_id in records:
        raise CommitError(
            RejectionCode.DUPLICATE_COMMIT,
            f"Already committed for {instance_key}",
        )
    record = CommitRecord(commit_hash=commit_hash, committed_at=now_ms)
    records[player_id] = record
    return record


def verify_reveal(state: GameState, instance_key: str, player_id: str, payload: Any, nonce: str) -> CommitRecord:
    """
    Check a reveal against the stored commitment without recording it.

    Raises:
        CommitError(MISSING_COMMIT): nothing was committed
        CommitError(ALREADY_REVEALED): reveal already recorded
        CommitError(HASH_MISMATCH): payload + nonce don't hash to the commitment
    """
    record = get_commit(state, instance_key, player_id)
    if record is None:
        raise CommitError(RejectionCode.MISSING_COMMIT, f"No commitment for {instance_key}")
    if record.is_revealed:
        raise CommitError(RejectionCode.ALREADY_REVEALED, f"Already revealed for {instance_key}")
    if not validate_reveal(payload, nonce, record.commit_hash):
        raise CommitError(RejectionCode.HASH_MISMATCH, "Reveal does not match commitment")
    return record


def store_reveal(state: GameState, instance_key: str, player_id: str, payload: Any, nonce: str, now_ms: int) -> CommitRecord:
    """Verify and record a reveal. Raises CommitError like verify_reveal()."""
    record = verify_reveal(state, instance_key, player_id, payload, nonce)
    record.reveal_payload = payload
    record.nonce = nonce
    record.revealed_at = now_ms
    return record


def all_committed_revealed(state: GameState, instance_key: str) -> bool:
    """True if every player who committed has revealed (vacuously true with no commits)."""
    return all(r.is_revealed for r in state.commitments.get(instance_key, {}).values())


def all_players_revealed(state: GameState, instance_key: str, player_ids: Iterable[str]) -> bool:
    """True if each of player_ids has a revealed commitment."""
    player_ids = list(player_ids)
    if not player_ids:
        return False
    return all(has_revealed(state, instance_key, pid) for pid in player_ids)
