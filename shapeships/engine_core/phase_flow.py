"""
Phase Flow - Advancing the phase machine on a GameState.

advance_phase() moves to the successor from the phase table:
- Player-driven advances need every seated player ready for this phase
- System advances (all reveals in, species chosen, no input needed) skip that
- Readiness is cleared on every advance
- Leaving the last battle subphase bumps the turn, starts fresh turn data
  and credits the clock increment, or ends the game when the game-over
  condition holds

enter_phase() runs on-enter hooks and keeps auto-advancing through phases
that need no player input, bounded by the number of subphases.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import secrets

from .clock import apply_increment
from .commit_store import all_committed_revealed
from .dice import ByteSource, roll_d6
from .intent import GameEvent, build_instance_key
from .phase import (
    GAME_OVER,
    PhaseError,
    advances_turn,
    is_terminal,
    next_phase,
    total_subphases,
)
from .state import GameState, GameStatus, TurnData

logger = logging.getLogger(__name__)

MAX_AUTO_ADVANCES = total_subphases()

SPECIES_PHASE = "setup.species_selection"
DICE_PHASE = "build.dice_roll"
LINES_PHASE = "build.line_generation"
DRAWING_PHASE = "build.drawing"
REVEAL_PHASE = "battle.reveal"


@dataclass
class AdvanceResult:
    """Result of an advance attempt. Failures never raise."""
    ok: bool
    events: list[GameEvent] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> AdvanceResult:
        return cls(ok=False, error=error)


def all_players_ready(state: GameState) -> bool:
    seated = state.seated_players
    if not seated:
        return False
    return all(state.readiness.get(p.player_id) == state.phase_key for p in seated)


def is_game_over(state: GameState) -> bool:
    """Game-over condition checked when a turn ends."""
    if state.is_finished:
        return True
    return state.max_turns is not None and state.turn_number >= state.max_turns


def requires_input(state: GameState) -> bool:
    """True if the current phase waits for players instead of auto-advancing."""
    key = state.phase_key
    seated = state.seated_players

    if key == SPECIES_PHASE:
        return len(seated) < 2 or any(p.faction is None for p in seated)
    if key == DRAWING_PHASE:
        return any(p.lines > 0 for p in seated)
    if key == REVEAL_PHASE:
        return not all_committed_revealed(state, build_instance_key(state.turn_number))
    return False


def advance_phase(state: GameState, now_ms: int, system: bool = False) -> AdvanceResult:
    """Move state to the next phase in place. Does not run on-enter hooks."""
    current = state.phase_key

    if state.is_finished or is_terminal(current):
        return AdvanceResult.failure("Game is over")
    if not system and not all_players_ready(state):
        return AdvanceResult.failure("Not all players are ready")

    wraps = advances_turn(current)
    game_over = wraps and is_game_over(state)
    try:
        successor = next_phase(current, game_over=game_over)
    except PhaseError as e:
        logger.warning(f"Cannot advance game {state.game_id}: {e}")
        return AdvanceResult.failure(str(e))

    events = []
    if wraps and not game_over:
        state.turn_number += 1
        state.turn_data = TurnData(turn_number=state.turn_number)
        apply_increment(state, state.turn_number)
        events.append(GameEvent("TURN_STARTED", now_ms, {"turn_number": state.turn_number}))

    state.readiness = {}
    state.phase_key = successor

    if successor == GAME_OVER:
        state.status = GameStatus.FINISHED
        state.end_reason = state.end_reason or "turn_limit"
        events.append(GameEvent("GAME_OVER", now_ms, {"winner": state.winner}))

    events.insert(0, GameEvent("PHASE_ADVANCED", now_ms, {
        "from": current,
        "to": successor,
        "turn_number": state.turn_number,
    }))
    logger.info(f"Game {state.game_id} turn {state.turn_number}: {current} -> {successor}")
    return AdvanceResult(ok=True, events=events)


def _on_enter(state: GameState, now_ms: int, randbytes: ByteSource) -> list[GameEvent]:
    events = []
    turn_data = state.turn_data

    if state.phase_key == DICE_PHASE and turn_data.dice_roll is None:
        turn_data.dice_roll = roll_d6(randbytes)
        turn_data.dice_finalized = True
        events.append(GameEvent("DICE_ROLLED", now_ms, {
            "turn_number": state.turn_number,
            "value": turn_data.dice_roll,
        }))
        logger.debug(f"Game {state.game_id} turn {state.turn_number} rolled {turn_data.dice_roll}")

    elif state.phase_key == LINES_PHASE and not turn_data.lines_distributed:
        if not turn_data.dice_finalized or turn_data.dice_roll is None:
            logger.warning(f"Game {state.game_id}: cannot grant lines before the dice roll")
            return events
        for player in state.seated_players:
            player.lines += turn_data.dice_roll
            events.append(GameEvent("LINES_GRANTED", now_ms, {
                "player_id": player.player_id,
                "lines": turn_data.dice_roll,
                "total": player.lines,
            }))
        turn_data.lines_distributed = True

    return events


def enter_phase(state: GameState, now_ms: int, randbytes: ByteSource = secrets.token_bytes) -> list[GameEvent]:
    """
    Run on-enter hooks for the current phase and auto-advance while no
    input is required. Stops at game over or after MAX_AUTO_ADVANCES.
    """
    events = []
    for _ in range(MAX_AUTO_ADVANCES):
        if state.is_finished:
            break
        events.extend(_on_enter(state, now_ms, randbytes))
        if requires_input(state):
            break
        result = advance_phase(state, now_ms, system=True)
        if not result.ok:
            break
        events.extend(result.events)
    else:
        logger.warning(f"Game {state.game_id}: hit MAX_AUTO_ADVANCES at {state.phase_key}")
    return events


def advance_and_enter(state: GameState, now_ms: int, system: bool = False,
                      randbytes: ByteSource = secrets.token_bytes) -> AdvanceResult:
    """advance_phase() followed by enter_phase() on success."""
    result = advance_phase(state, now_ms, system=system)
    if result.ok:
        result.events.extend(enter_phase(state, now_ms, randbytes))
    return result
