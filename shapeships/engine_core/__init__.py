"""
Engine Core - Server-authoritative game state and intent application.

The engine:
1. Defines the phase table (single source of truth for ordering)
2. Holds GameState and its commitments
3. Validates commit/reveal intents
4. Applies intents via the reducer
5. Advances phases and runs on-enter hooks
"""

from .state import GameState, GameStatus, Player, ShipInstance, CommitRecord, TurnData
from .intent import (
    IntentType,
    IntentRequest,
    IntentResult,
    RejectionCode,
    GameEvent,
    build_instance_key,
    species_instance_key,
    canonical_build_payload,
)
from .reducer import IntentReducer, apply_intent
from .phase import (
    PHASE_SEQUENCE,
    GAME_OVER,
    UNKNOWN_PHASE,
    MajorPhase,
    PhaseError,
    next_phase,
)
from .hashing import canonical_json, make_commit_hash, validate_reveal, generate_nonce
from .dice import roll_d6, roll_dice

__all__ = [
    "GameState",
    "GameStatus",
    "Player",
    "ShipInstance",
    "CommitRecord",
    "TurnData",
    "IntentType",
    "IntentRequest",
    "IntentResult",
    "RejectionCode",
    "GameEvent",
    "build_instance_key",
    "species_instance_key",
    "canonical_build_payload",
    "IntentReducer",
    "apply_intent",
    "PHASE_SEQUENCE",
    "GAME_OVER",
    "UNKNOWN_PHASE",
    "MajorPhase",
    "PhaseError",
    "next_phase",
    "canonical_json",
    "make_commit_hash",
    "validate_reveal",
    "generate_nonce",
    "roll_d6",
    "roll_dice",
]
