"""
Phase Table - Single source of truth for phase ordering.

A phase key is "major.sub", e.g. "build.drawing" or "battle.reveal".
Major phases run setup -> build -> battle; after the last battle subphase
the table wraps to the first build subphase of the next turn, or to the
terminal GAME_OVER key when the game-over condition holds.

No other module may hardcode the sequence. Ask the table instead.

Two sentinels live outside the table:
- GAME_OVER: terminal result state, has no successor
- UNKNOWN_PHASE: display fallback for empty/malformed keys
"""

from __future__ import annotations
from enum import Enum
from typing import Any


class MajorPhase(str, Enum):
    """Major phases in play order."""
    SETUP = "setup"
    BUILD = "build"
    BATTLE = "battle"


SUBPHASES: dict[MajorPhase, tuple[str, ...]] = {
    MajorPhase.SETUP: (
        "species_selection",
    ),
    MajorPhase.BUILD: (
        "dice_roll",
        "line_generation",
        "ships_that_build",
        "drawing",
        "end_of_build",
    ),
    MajorPhase.BATTLE: (
        "reveal",
        "first_strike",
        "charge_declaration",
        "charge_response",
        "end_of_turn_resolution",
    ),
}

PHASE_SEQUENCE: tuple[str, ...] = tuple(
    f"{major.value}.{sub}" for major in MajorPhase for sub in SUBPHASES[major]
)

INITIAL_PHASE = PHASE_SEQUENCE[0]
TURN_START_PHASE = f"{MajorPhase.BUILD.value}.{SUBPHASES[MajorPhase.BUILD][0]}"
GAME_OVER = "game_over"
UNKNOWN_PHASE = "unknown"


class PhaseError(ValueError):
    """Raised when asking for the successor of an unknown or terminal key."""


def is_valid_phase_key(key: Any) -> bool:
    """True if key is in the phase table."""
    return isinstance(key, str) and key in PHASE_SEQUENCE


def is_terminal(key: Any) -> bool:
    return key == GAME_OVER


def normalize_phase_token(token: Any) -> str:
    """Lowercase + trim a raw token. Not applied automatically."""
    if token is None:
        return ""
    return str(token).strip().lower()


def build_phase_key(major: Any, sub: Any) -> str | None:
    """Join major + sub into a phase key, or None if not in the table (strict)."""
    if isinstance(major, MajorPhase):
        major = major.value
    key = f"{major}.{sub}"
    return key if is_valid_phase_key(key) else None


def major_phase_of(key: Any) -> MajorPhase | None:
    """Major phase of a valid key, else None."""
    if not is_valid_phase_key(key):
        return None
    return MajorPhase(key.split(".", 1)[0])


def sub_phase_of(key: Any) -> str | None:
    if not is_valid_phase_key(key):
        return None
    return key.split(".", 1)[1]


def advances_turn(key: str) -> bool:
    """True if leaving this key starts a new turn."""
    return key == PHASE_SEQUENCE[-1]


def next_phase(key: str, game_over: bool = False) -> str:
    """
    Successor of a phase key.

    Total for every key in the table. From the last battle subphase the
    successor is TURN_START_PHASE (next turn), or GAME_OVER if game_over.

    Raises:
        PhaseError: key is unknown or terminal
    """
    if is_terminal(key):
        raise PhaseError("game_over is terminal and has no successor")
    if not is_valid_phase_key(key):
        raise PhaseError(f"Unknown phase key: {key!r}")

    if advances_turn(key):
        return GAME_OVER if game_over else TURN_START_PHASE

    idx = PHASE_SEQUENCE.index(key)
    return PHASE_SEQUENCE[idx + 1]


def total_subphases() -> int:
    return len(PHASE_SEQUENCE)


# =============================================================================
# Labels (display only)
# =============================================================================

MAJOR_PHASE_LABELS = {
    MajorPhase.SETUP: "SETUP",
    MajorPhase.BUILD: "BUILD",
    MajorPhase.BATTLE: "BATTLE",
}

SUBPHASE_LABELS = {
    "setup.species_selection": "Species Selection",
    "build.dice_roll": "Dice Roll",
    "build.line_generation": "Line Generation",
    "build.ships_that_build": "Ships That Build",
    "build.drawing": "Drawing",
    "build.end_of_build": "End of Build",
    "battle.reveal": "Reveal",
    "battle.first_strike": "First Strike",
    "battle.charge_declaration": "Charge Declaration",
    "battle.charge_response": "Charge Response",
    "battle.end_of_turn_resolution": "End of Turn Resolution",
}


def major_phase_label(key: Any) -> str:
    """
    "BUILD PHASE" style label for a phase key.

    Empty, malformed or unknown keys (common while state is still
    loading) give "UNKNOWN PHASE".
    """
    if is_terminal(key):
        return "GAME OVER"
    if not isinstance(key, str) or not key or key == UNKNOWN_PHASE:
        return "UNKNOWN PHASE"
    segment = key.split(".", 1)[0]
    try:
        major = MajorPhase(segment)
    except ValueError:
        return "UNKNOWN PHASE"
    return f"{MAJOR_PHASE_LABELS[major]} PHASE"


def sub_phase_label(key: Any) -> str:
    """Human-readable subphase label, "Unknown" when it can't be derived."""
    if is_terminal(key):
        return "Game Over"
    if not isinstance(key, str) or not key or key == UNKNOWN_PHASE:
        return "Unknown"
    if key in SUBPHASE_LABELS:
        return SUBPHASE_LABELS[key]

    last = key.split(".")[-1]
    if not last:
        return "Unknown"
    return last.replace("_", " ").title()
