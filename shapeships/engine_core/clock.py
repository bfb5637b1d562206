"""
Clock - Server-side chess clock.

Rules:
- Every seated player starts with BASE_TIME_MS
- Clocks only run once both seated players have a species
- A player's time runs while the game waits on them: not ready for the
  current phase, or holding an unrevealed build commit in battle.reveal
- Each player is credited the increment once per new turn
- A player at zero loses; both at zero in the same accrual is a draw

Server time only. Functions mutate the state they are given, so callers
pass a clone.
"""

from __future__ import annotations
import logging

from .intent import GameEvent, build_instance_key
from .phase import GAME_OVER
from .state import GameState, GameStatus

logger = logging.getLogger(__name__)

REVEAL_PHASE = "battle.reveal"


def ensure_player_clock(state: GameState, player_id: str) -> None:
    """Give a newly seated player the base time. Existing entries are kept."""
    clock = state.clock
    clock.remaining_ms.setdefault(player_id, clock.base_ms)


def is_running_for(state: GameState, player_id: str) -> bool:
    if state.phase_key == REVEAL_PHASE:
        record = state.commit_for(build_instance_key(state.turn_number), player_id)
        return record is not None and not record.is_revealed
    return state.readiness.get(player_id) != state.phase_key


def accrue_clocks(state: GameState, now_ms: int) -> list[GameEvent]:
    """
    Charge elapsed server time since the last accrual.

    Paused clocks still move last_update_ms forward so time spent before
    the clocks went live is never charged later.
    """
    clock = state.clock
    if state.is_finished:
        return []

    last = clock.last_update_ms if clock.last_update_ms is not None else now_ms
    elapsed = max(0, now_ms - last)
    clock.last_update_ms = now_ms
    if not state.clocks_live or elapsed == 0:
        return []

    for player in state.seated_players:
        pid = player.player_id
        if pid in clock.remaining_ms and is_running_for(state, pid):
            clock.remaining_ms[pid] = max(0, clock.remaining_ms[pid] - elapsed)

    timed_out = [
        p.player_id for p in state.seated_players
        if clock.remaining_ms.get(p.player_id, 1) <= 0
    ]
    if not timed_out:
        return []
    return _end_on_timeout(state, timed_out, now_ms)


def _end_on_timeout(state: GameState, timed_out: list[str], now_ms: int) -> list[GameEvent]:
    if len(timed_out) == 1:
        opponent = state.opponent_of(timed_out[0])
        state.winner = opponent.player_id if opponent else None
        state.end_reason = "timeout"
    else:
        state.winner = None
        state.end_reason = "timeout_draw"

    state.status = GameStatus.FINISHED
    state.phase_key = GAME_OVER
    state.readiness = {}
    logger.info(f"Game {state.game_id} ended on time: {', '.join(timed_out)} flagged")
    return [
        GameEvent("CLOCK_TIMEOUT", now_ms, {"player_ids": list(timed_out)}),
        GameEvent("GAME_OVER", now_ms, {"winner": state.winner, "reason": state.end_reason}),
    ]


def apply_increment(state: GameState, turn_number: int) -> None:
    """Credit the increment for turn_number, at most once per player."""
    clock = state.clock
    for pid in clock.remaining_ms:
        if clock.increment_turn.get(pid) == turn_number:
            continue
        clock.remaining_ms[pid] += clock.increment_ms
        clock.increment_turn[pid] = turn_number
