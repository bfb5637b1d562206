"""
Intent System - Intent requests, rejections, events and results.

Intents are the only way a player changes server state:
1. Hidden choices go through commit/reveal (species, builds)
2. Readiness declarations advance the phase machine
3. Surrender ends the game

The reducer answers every intent with an IntentResult: either the new
state plus events, or a typed rejection with a machine-readable code.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .ships import is_known_ship


class IntentType(str, Enum):
    """Types of intents a player may submit."""
    SPECIES_SUBMIT = "SPECIES_SUBMIT"  # commit + reveal in one request
    BUILD_COMMIT = "BUILD_COMMIT"
    BUILD_REVEAL = "BUILD_REVEAL"
    DECLARE_READY = "DECLARE_READY"
    SURRENDER = "SURRENDER"


class RejectionCode(str, Enum):
    """Machine-readable rejection reasons."""
    GAME_NOT_FOUND = "GAME_NOT_FOUND"
    GAME_FINISHED = "GAME_FINISHED"
    NOT_PARTICIPANT = "NOT_PARTICIPANT"
    SPECTATOR_RESTRICTED = "SPECTATOR_RESTRICTED"
    BAD_TURN = "BAD_TURN"
    WRONG_PHASE = "WRONG_PHASE"
    DUPLICATE_COMMIT = "DUPLICATE_COMMIT"
    MISSING_COMMIT = "MISSING_COMMIT"
    HASH_MISMATCH = "HASH_MISMATCH"
    ALREADY_REVEALED = "ALREADY_REVEALED"
    BAD_PAYLOAD = "BAD_PAYLOAD"
    INVALID_SPECIES = "INVALID_SPECIES"
    INVALID_SHIP = "INVALID_SHIP"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Only these intents are accepted while species are being chosen
SETUP_INTENTS = frozenset({IntentType.SPECIES_SUBMIT, IntentType.SURRENDER})

MAX_BUILD_COUNT = 20


def species_instance_key(turn_number: int) -> str:
    return f"SPECIES_{turn_number}"


def build_instance_key(turn_number: int) -> str:
    return f"BUILD_{turn_number}"


@dataclass
class IntentRequest:
    """
    An intent as received by the server.

    The acting player is never taken from the request body; the reducer
    is given the authenticated session player separately.
    """
    intent_type: IntentType
    turn_number: int
    commit_hash: str | None = None
    payload: Any | None = None
    nonce: str | None = None
    game_id: str | None = None

    @classmethod
    def species_submit(cls, turn_number: int, species: str, nonce: str, commit_hash: str) -> IntentRequest:
        return cls(
            intent_type=IntentType.SPECIES_SUBMIT,
            turn_number=turn_number,
            commit_hash=commit_hash,
            payload={"species": species},
            nonce=nonce,
        )

    @classmethod
    def build_commit(cls, turn_number: int, commit_hash: str) -> IntentRequest:
        return cls(
            intent_type=IntentType.BUILD_COMMIT,
            turn_number=turn_number,
            commit_hash=commit_hash,
        )

    @classmethod
    def build_reveal(cls, turn_number: int, payload: Any, nonce: str) -> IntentRequest:
        return cls(
            intent_type=IntentType.BUILD_REVEAL,
            turn_number=turn_number,
            payload=payload,
            nonce=nonce,
        )

    @classmethod
    def declare_ready(cls, turn_number: int) -> IntentRequest:
        return cls(intent_type=IntentType.DECLARE_READY, turn_number=turn_number)

    @classmethod
    def surrender(cls, turn_number: int) -> IntentRequest:
        return cls(intent_type=IntentType.SURRENDER, turn_number=turn_number)


@dataclass
class Rejection:
    code: RejectionCode
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code.value, "message": self.message}


@dataclass
class GameEvent:
    """Something that happened while applying an intent (for logs and clients)."""
    type: str
    at_ms: int
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "at_ms": self.at_ms, **self.data}


@dataclass
class IntentResult:
    """
    Result of applying an intent.

    Contains:
    - Whether the intent was accepted
    - The state after applying (unchanged input state on rejection)
    - Events emitted while applying
    - The rejection (if rejected)
    """
    ok: bool
    state: Any  # GameState
    events: list[GameEvent] = field(default_factory=list)
    rejection: Rejection | None = None

    @classmethod
    def accepted(cls, state: Any, events: list[GameEvent] | None = None) -> IntentResult:
        """Create an accepted result with the new state."""
        return cls(ok=True, state=state, events=events or [])

    @classmethod
    def rejected(cls, state: Any, code: RejectionCode, message: str) -> IntentResult:
        """Create a rejected result; state is returned untouched."""
        return cls(ok=False, state=state, rejection=Rejection(code=code, message=message))

    @property
    def code(self) -> RejectionCode | None:
        return self.rejection.code if self.rejection else None


# =============================================================================
# Build payloads
# =============================================================================

def canonical_build_payload(counts: dict[str, int]) -> dict[str, list[dict[str, Any]]]:
    """
    Canonical build payload from a {ship_def_id: count} draft.

    Entries with count <= 0 are dropped and the rest sorted by ship id, so
    the same draft always hashes to the same commitment.
    """
    builds = [
        {"ship_def_id": ship_def_id, "count": count}
        for ship_def_id, count in sorted(counts.items())
        if count > 0
    ]
    return {"builds": builds}


def parse_build_payload(payload: Any) -> tuple[list[tuple[str, int]] | None, Rejection | None]:
    """
    Validate a revealed build payload.

    Returns (entries, None) on success or (None, rejection) on failure.
    Unknown ship ids give INVALID_SHIP; anything else malformed gives
    BAD_PAYLOAD. Counts must be ints in 1..MAX_BUILD_COUNT.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("builds"), list):
        return None, Rejection(RejectionCode.BAD_PAYLOAD, "Build payload must contain a builds list")

    entries: list[tuple[str, int]] = []
    for entry in payload["builds"]:
        if not isinstance(entry, dict):
            return None, Rejection(RejectionCode.BAD_PAYLOAD, "Build entries must be objects")
        ship_def_id = entry.get("ship_def_id")
        count = entry.get("count")
        if not isinstance(ship_def_id, str) or not ship_def_id:
            return None, Rejection(RejectionCode.BAD_PAYLOAD, "Build entry is missing ship_def_id")
        if not is_known_ship(ship_def_id):
            return None, Rejection(RejectionCode.INVALID_SHIP, f"Unknown ship: {ship_def_id}")
        if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= MAX_BUILD_COUNT:
            return None, Rejection(
                RejectionCode.BAD_PAYLOAD,
                f"Build count for {ship_def_id} must be an integer 1-{MAX_BUILD_COUNT}",
            )
        entries.append((ship_def_id, count))

    return entries, None
