"""
Intent Reducer - Applies intents to game state.

The reducer is the single point of server state mutation.
All state changes must go through apply_intent().

Design principles:
- Works on a clone: the input state is never modified
- The acting player comes from the session, never from the request body
- Validates before applying, in a fixed order:
  finished game, participant, seated role, turn number, setup restriction,
  then the per-intent rules
- Returns IntentResult with the new state or a typed rejection
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import secrets
import uuid

from .clock import accrue_clocks
from .commit_store import (
    CommitError,
    all_committed_revealed,
    all_players_revealed,
    store_commit,
    store_reveal,
)
from .dice import ByteSource
from .hashing import is_commit_hash
from .intent import (
    GameEvent,
    IntentRequest,
    IntentResult,
    IntentType,
    RejectionCode,
    SETUP_INTENTS,
    build_instance_key,
    parse_build_payload,
    species_instance_key,
)
from .phase import GAME_OVER, MajorPhase
from .phase_flow import (
    REVEAL_PHASE,
    SPECIES_PHASE,
    advance_and_enter,
)
from .ships import get_ship, is_valid_species
from .state import GameState, GameStatus, ShipInstance

logger = logging.getLogger(__name__)


@dataclass
class IntentReducer:
    """
    Reducer applies intents to game state.

    Stateless apart from the dice byte source - all game state is in GameState.
    """
    randbytes: ByteSource = field(default=secrets.token_bytes)

    def apply(self, state: GameState, player_id: str, request: IntentRequest, now_ms: int) -> IntentResult:
        """
        Apply an intent for the authenticated player.

        Clocks are accrued first, so an intent from a flagged game is
        rejected as GAME_FINISHED and the result carries the finished state.

        Returns IntentResult with new state or rejection.
        """
        state, clock_events = self.accrue(state, now_ms)

        rejection = self._validate_intent(state, player_id, request)
        if rejection:
            logger.warning(
                f"Rejected {request.intent_type.value} from {player_id} "
                f"in game {state.game_id}: {rejection.rejection.code.value}"
            )
            rejection.events = clock_events
            return rejection

        handler = self._get_handler(request.intent_type)
        if not handler:
            unsupported = IntentResult.rejected(
                state, RejectionCode.BAD_PAYLOAD,
                f"Unsupported intent type: {request.intent_type}",
            )
            unsupported.events = clock_events
            return unsupported

        working = state.clone()
        try:
            result = handler(working, player_id, request, now_ms)
        except CommitError as e:
            result = IntentResult.rejected(state, e.code, e.message)
        except Exception as e:
            logger.exception(f"Handler for {request.intent_type.value} failed in game {state.game_id}")
            result = IntentResult.rejected(state, RejectionCode.INTERNAL_ERROR, str(e))

        if not result.ok:
            # Never leak a half-mutated clone
            result.state = state
            logger.warning(
                f"Rejected {request.intent_type.value} from {player_id} "
                f"in game {state.game_id}: {result.code.value}"
            )
        result.events = clock_events + result.events
        return result

    def accrue(self, state: GameState, now_ms: int) -> tuple[GameState, list[GameEvent]]:
        """
        Run clock accrual on a clone.

        The input state comes back as is when no clock has started.
        """
        if state.is_finished or not state.clock.remaining_ms:
            return state, []
        accrued = state.clone()
        return accrued, accrue_clocks(accrued, now_ms)

    def _validate_intent(self, state: GameState, player_id: str, request: IntentRequest) -> IntentResult | None:
        """
        Checks shared by every intent.

        Returns a rejected IntentResult if invalid, None if valid.
        """
        if state.is_finished:
            return IntentResult.rejected(state, RejectionCode.GAME_FINISHED, "Game is finished")

        player = state.get_player(player_id)
        if not player:
            return IntentResult.rejected(
                state, RejectionCode.NOT_PARTICIPANT,
                "Player is not a participant in this game",
            )
        if not player.is_seated:
            return IntentResult.rejected(
                state, RejectionCode.SPECTATOR_RESTRICTED,
                "Spectators cannot submit intents",
            )

        if request.intent_type != IntentType.SURRENDER and request.turn_number != state.turn_number:
            return IntentResult.rejected(
                state, RejectionCode.BAD_TURN,
                f"Intent is for turn {request.turn_number}, current turn is {state.turn_number}",
            )

        if state.major_phase == MajorPhase.SETUP and request.intent_type not in SETUP_INTENTS:
            return IntentResult.rejected(
                state, RejectionCode.WRONG_PHASE,
                "Only species selection is allowed during setup",
            )

        return None

    def _get_handler(self, intent_type: IntentType):
        """Get the handler function for an intent type."""
        handlers = {
            IntentType.SPECIES_SUBMIT: self._handle_species_submit,
            IntentType.BUILD_COMMIT: self._handle_build_commit,
            IntentType.BUILD_REVEAL: self._handle_build_reveal,
            IntentType.DECLARE_READY: self._handle_declare_ready,
            IntentType.SURRENDER: self._handle_surrender,
        }
        return handlers.get(intent_type)

    def _handle_species_submit(self, state: GameState, player_id: str, request: IntentRequest, now_ms: int) -> IntentResult:
        """Commit and reveal a species in one step."""
        if state.phase_key != SPECIES_PHASE:
            return IntentResult.rejected(state, RejectionCode.WRONG_PHASE, "Species selection is over")

        payload = request.payload
        if (
            not is_commit_hash(request.commit_hash)
            or not isinstance(request.nonce, str)
            or not isinstance(payload, dict)
            or "species" not in payload
        ):
            return IntentResult.rejected(
                state, RejectionCode.BAD_PAYLOAD,
                "SPECIES_SUBMIT needs commit_hash, nonce and a species payload",
            )
        if not is_valid_species(payload["species"]):
            return IntentResult.rejected(
                state, RejectionCode.INVALID_SPECIES,
                f"Unknown species: {payload['species']!r}",
            )

        key = species_instance_key(state.turn_number)
        store_commit(state, key, player_id, request.commit_hash, now_ms)
        store_reveal(state, key, player_id, payload, request.nonce, now_ms)

        events = [GameEvent("SPECIES_SUBMITTED", now_ms, {"player_id": player_id})]
        seated = state.seated_players
        if len(seated) >= 2 and all_players_revealed(state, key, [p.player_id for p in seated]):
            for p in seated:
                p.faction = state.commit_for(key, p.player_id).reveal_payload["species"]
            events.append(GameEvent("SPECIES_LOCKED", now_ms, {
                "factions": {p.player_id: p.faction for p in seated},
            }))
            events.extend(advance_and_enter(state, now_ms, system=True, randbytes=self.randbytes).events)

        return IntentResult.accepted(state, events)

    def _handle_build_commit(self, state: GameState, player_id: str, request: IntentRequest, now_ms: int) -> IntentResult:
        if state.major_phase != MajorPhase.BUILD:
            return IntentResult.rejected(state, RejectionCode.WRONG_PHASE, "Builds are committed during the build phase")
        if not is_commit_hash(request.commit_hash):
            return IntentResult.rejected(state, RejectionCode.BAD_PAYLOAD, "BUILD_COMMIT needs a sha256 commit_hash")

        key = build_instance_key(state.turn_number)
        store_commit(state, key, player_id, request.commit_hash, now_ms)
        logger.info(f"Game {state.game_id}: {player_id} committed {key}")
        return IntentResult.accepted(state, [
            GameEvent("BUILD_COMMITTED", now_ms, {"player_id": player_id, "instance_key": key}),
        ])

    def _handle_build_reveal(self, state: GameState, player_id: str, request: IntentRequest, now_ms: int) -> IntentResult:
        """
        Reveal a committed build.

        Once every committed player has revealed, ships are created for all
        of them at once and the phase advances.
        A reveal that matches its commitment but names an unusable build is
        recorded as an empty build.
        """
        if state.phase_key != REVEAL_PHASE:
            return IntentResult.rejected(state, RejectionCode.WRONG_PHASE, "Builds are revealed in battle.reveal")
        if not isinstance(request.nonce, str) or request.payload is None:
            return IntentResult.rejected(state, RejectionCode.BAD_PAYLOAD, "BUILD_REVEAL needs payload and nonce")

        key = build_instance_key(state.turn_number)
        store_reveal(state, key, player_id, request.payload, request.nonce, now_ms)
        logger.info(f"Game {state.game_id}: {player_id} revealed {key}")
        events = [GameEvent("BUILD_REVEALED", now_ms, {"player_id": player_id, "instance_key": key})]

        # The hash matched, so the commitment is settled even if the build is not
        _, rejection = parse_build_payload(request.payload)
        if rejection:
            logger.warning(f"Game {state.game_id}: {player_id} revealed an unusable build for {key}: {rejection.message}")
            events.append(GameEvent("BUILD_VOIDED", now_ms, {
                "player_id": player_id,
                "instance_key": key,
                "code": rejection.code.value,
                "message": rejection.message,
            }))

        if all_committed_revealed(state, key):
            events.extend(self._create_ships(state, key, now_ms))
            events.extend(advance_and_enter(state, now_ms, system=True, randbytes=self.randbytes).events)

        return IntentResult.accepted(state, events)

    def _create_ships(self, state: GameState, instance_key: str, now_ms: int) -> list[GameEvent]:
        events = []
        for owner_id, record in state.commitments.get(instance_key, {}).items():
            entries, _ = parse_build_payload(record.reveal_payload)
            owner = state.get_player(owner_id)
            fleet = state.ships.setdefault(owner_id, [])
            spent = 0
            for ship_def_id, count in entries or []:
                for _ in range(count):
                    fleet.append(ShipInstance(
                        instance_id=str(uuid.uuid4()),
                        ship_def_id=ship_def_id,
                        owner_id=owner_id,
                        created_turn=state.turn_number,
                    ))
                spent += (get_ship(ship_def_id).line_cost or 0) * count
            if owner:
                owner.lines = max(0, owner.lines - spent)
            events.append(GameEvent("SHIPS_BUILT", now_ms, {
                "player_id": owner_id,
                "count": sum(count for _, count in entries or []),
            }))
        return events

    def _handle_declare_ready(self, state: GameState, player_id: str, request: IntentRequest, now_ms: int) -> IntentResult:
        if state.phase_key == REVEAL_PHASE and not all_committed_revealed(state, build_instance_key(state.turn_number)):
            return IntentResult.rejected(state, RejectionCode.WRONG_PHASE, "Waiting for build reveals")

        state.readiness[player_id] = state.phase_key
        events = [GameEvent("PLAYER_READY", now_ms, {"player_id": player_id, "phase_key": state.phase_key})]

        result = advance_and_enter(state, now_ms, randbytes=self.randbytes)
        events.extend(result.events)
        return IntentResult.accepted(state, events)

    def _handle_surrender(self, state: GameState, player_id: str, request: IntentRequest, now_ms: int) -> IntentResult:
        opponent = state.opponent_of(player_id)
        state.status = GameStatus.FINISHED
        state.winner = opponent.player_id if opponent else None
        state.end_reason = "surrender"
        state.phase_key = GAME_OVER
        state.readiness = {}
        logger.info(f"Game {state.game_id}: {player_id} surrendered")
        return IntentResult.accepted(state, [
            GameEvent("SURRENDERED", now_ms, {"player_id": player_id}),
            GameEvent("GAME_OVER", now_ms, {"winner": state.winner}),
        ])


def apply_intent(state: GameState, player_id: str, request: IntentRequest, now_ms: int,
                 randbytes: ByteSource = secrets.token_bytes) -> IntentResult:
    """
    Convenience function to apply an intent.

    Creates an IntentReducer and applies the intent.
    """
    reducer = IntentReducer(randbytes=randbytes)
    return reducer.apply(state, player_id, request, now_ms)
