"""
Auto-Reveal Orchestrator - Submits my build reveal exactly once per turn.

Each evaluation re-reads every gating input from the latest server
snapshot. A reveal is submitted only if ALL of these hold:
1. the phase is the policy's reveal subphase (battle.reveal for builds)
2. the server has my commit hash under the current turn's instance key
3. the server has no reveal from me for that instance
4. the turn is not in the submission tracker
5. no submission for that instance key is in flight

Per-instance states (transitions checked against REVEAL_TRANSITIONS):

    NOT_ELIGIBLE -> AWAITING_COMMIT -> READY_TO_REVEAL -> SUBMITTING -> SUBMITTED
                                            ^                |
                                            +---- failure ---+

Outcomes of a submission:
- accepted: turn added to the tracker, cache entry cleared
- rejected / transport failure: tracker untouched; BAD_TURN removes the turn
- stale (server turn moved while awaiting): response discarded
- retry budget used up: EXHAUSTED until the instance changes
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
import logging
import os

from .channel import (
    IntentChannel,
    IntentEnvelope,
    IntentReceipt,
    IntentRejected,
    IntentTransportError,
)
from .commit_cache import CommitCache, cache_key, instance_turn
from .identity import derive_identity
from .snapshot import GameSnapshot, commit_hash_of
from .tracker import SubmissionTracker
from ..engine_core.hashing import validate_reveal
from ..engine_core.intent import IntentType, RejectionCode, build_instance_key
from ..engine_core.phase import build_phase_key

logger = logging.getLogger(__name__)

# Environment configuration
SHAPESHIPS_REVEAL_RETRY_BUDGET = int(os.getenv("SHAPESHIPS_REVEAL_RETRY_BUDGET", "5"))


class RevealState(str, Enum):
    NOT_ELIGIBLE = "not_eligible"
    AWAITING_COMMIT = "awaiting_commit"
    READY_TO_REVEAL = "ready_to_reveal"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


REVEAL_TRANSITIONS: dict[RevealState, frozenset[RevealState]] = {
    RevealState.NOT_ELIGIBLE: frozenset({
        RevealState.AWAITING_COMMIT,
        RevealState.READY_TO_REVEAL,
        RevealState.SUBMITTED,
    }),
    RevealState.AWAITING_COMMIT: frozenset({
        RevealState.NOT_ELIGIBLE,
        RevealState.READY_TO_REVEAL,
        RevealState.SUBMITTED,
    }),
    RevealState.READY_TO_REVEAL: frozenset({
        RevealState.NOT_ELIGIBLE,
        RevealState.AWAITING_COMMIT,
        RevealState.SUBMITTING,
        RevealState.SUBMITTED,
    }),
    RevealState.SUBMITTING: frozenset({
        RevealState.SUBMITTED,
        RevealState.READY_TO_REVEAL,
    }),
    RevealState.SUBMITTED: frozenset(),
}


class InvalidTransition(ValueError):
    pass


class RevealValidationError(Exception):
    """The cached payload/nonce don't hash to the server's commitment."""

    def __init__(self, instance_key: str, message: str):
        super().__init__(message)
        self.instance_key = instance_key


def _before_turn(instance_key: str, turn: int) -> bool:
    key_turn = instance_turn(instance_key)
    return key_turn is not None and key_turn < turn


class RevealStateMachine:
    """Per-instance reveal states. Knows nothing about the network."""

    def __init__(self):
        self._states: dict[str, RevealState] = {}

    def state_of(self, instance_key: str) -> RevealState:
        return self._states.get(instance_key, RevealState.NOT_ELIGIBLE)

    def can_transition(self, instance_key: str, target: RevealState) -> bool:
        current = self.state_of(instance_key)
        return target == current or target in REVEAL_TRANSITIONS[current]

    def transition(self, instance_key: str, target: RevealState) -> RevealState:
        """Move to target. Staying put is always allowed."""
        current = self.state_of(instance_key)
        if target != current and target not in REVEAL_TRANSITIONS[current]:
            raise InvalidTransition(f"{instance_key}: {current.value} -> {target.value}")
        self._states[instance_key] = target
        return target

    def observe(self, instance_key: str, target: RevealState) -> RevealState:
        """Apply a state read from a snapshot; ignored while submitting or once submitted."""
        current = self.state_of(instance_key)
        if current in (RevealState.SUBMITTING, RevealState.SUBMITTED):
            return current
        return self.transition(instance_key, target)

    def forget_before(self, min_turn: int) -> None:
        """Drop states of instances from turns before min_turn."""
        self._states = {
            key: state for key, state in self._states.items()
            if not _before_turn(key, min_turn)
        }


class RevealOutcome(str, Enum):
    SKIPPED = "skipped"  # gate closed
    IN_FLIGHT = "in_flight"
    NO_CACHED_PAYLOAD = "no_cached_payload"
    SUBMITTED = "submitted"
    ALREADY_REVEALED = "already_revealed"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"
    STALE = "stale"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RevealPolicy:
    """Which intent reveals, in which subphase, under which instance key."""
    intent_type: IntentType
    reveal_phase: str
    instance_key_fn: Callable[[int], str]

    def instance_key(self, turn_number: int) -> str:
        return self.instance_key_fn(turn_number)


BUILD_REVEAL_POLICY = RevealPolicy(
    intent_type=IntentType.BUILD_REVEAL,
    reveal_phase=build_phase_key("battle", "reveal"),
    instance_key_fn=build_instance_key,
)


@dataclass(frozen=True)
class GateResult:
    state: RevealState
    reason: str
    turn_number: int | None = None
    instance_key: str | None = None
    player_id: str | None = None
    commit_hash: str | None = None

    @property
    def eligible(self) -> bool:
        return self.state == RevealState.READY_TO_REVEAL


@dataclass(frozen=True)
class RevealDecision:
    outcome: RevealOutcome
    reason: str = ""
    instance_key: str | None = None
    turn_number: int | None = None
    code: str | None = None


class AutoRevealOrchestrator:
    """
    Drives the automatic reveal for one client session.

    snapshot_provider must return the latest server snapshot each time it
    is called; the orchestrator never keeps its own copy of turn, phase or
    commitments between evaluations.
    """

    def __init__(
        self,
        channel: IntentChannel,
        cache: CommitCache,
        tracker: SubmissionTracker,
        game_id: str,
        session_id: str,
        snapshot_provider: Callable[[], Optional[GameSnapshot]],
        policy: RevealPolicy = BUILD_REVEAL_POLICY,
        retry_budget: int = SHAPESHIPS_REVEAL_RETRY_BUDGET,
        on_receipt: Callable[[IntentReceipt], None] | None = None,
    ):
        self.channel = channel
        self.cache = cache
        self.tracker = tracker
        self.game_id = game_id
        self.session_id = session_id
        self.snapshot_provider = snapshot_provider
        self.policy = policy
        self.retry_budget = retry_budget
        self.on_receipt = on_receipt

        self.machine = RevealStateMachine()
        self._in_flight: set[str] = set()
        self._attempts: dict[str, int] = {}
        self.submissions = 0

    def is_in_flight(self, instance_key: str) -> bool:
        return instance_key in self._in_flight

    def attempts(self, instance_key: str) -> int:
        return self._attempts.get(instance_key, 0)

    def prune(self, current_turn: int) -> None:
        """Forget attempts and reveal states of earlier turns."""
        self._attempts = {
            key: count for key, count in self._attempts.items()
            if not _before_turn(key, current_turn)
        }
        self.machine.forget_before(current_turn)

    def check_gate(self, snapshot: GameSnapshot | None) -> GateResult:
        """Evaluate gate conditions 1-4 against one snapshot."""
        if snapshot is None:
            return GateResult(RevealState.NOT_ELIGIBLE, "no snapshot")

        identity = derive_identity(list(snapshot.players), self.session_id)
        if not identity.is_player:
            return GateResult(RevealState.NOT_ELIGIBLE, "not a seated player")

        turn = snapshot.turn_number
        if turn is None:
            return GateResult(RevealState.NOT_ELIGIBLE, "no turn number")

        key = self.policy.instance_key(turn)
        me_id = identity.me_id
        common = dict(turn_number=turn, instance_key=key, player_id=me_id)

        if snapshot.phase_key != self.policy.reveal_phase:
            return GateResult(RevealState.NOT_ELIGIBLE, f"phase is {snapshot.phase_key}", **common)

        record = snapshot.commit_record(key, me_id)
        commit_hash = commit_hash_of(record)
        if commit_hash is None:
            return GateResult(RevealState.AWAITING_COMMIT, "no server commit", **common)
        if snapshot.has_reveal(key, me_id):
            return GateResult(RevealState.SUBMITTED, "server already has my reveal", **common)
        if turn in self.tracker:
            return GateResult(RevealState.SUBMITTED, "turn already submitted", **common)

        return GateResult(RevealState.READY_TO_REVEAL, "ready", commit_hash=commit_hash, **common)

    async def evaluate(self) -> RevealDecision:
        """
        Run one evaluation cycle.

        Raises:
            RevealValidationError: cached payload doesn't match the server commit
        """
        snapshot = self.snapshot_provider()
        if snapshot is not None and snapshot.turn_number is not None:
            self.prune(snapshot.turn_number)

        gate = self.check_gate(snapshot)
        if gate.instance_key:
            self.machine.observe(gate.instance_key, gate.state)

        if not gate.eligible:
            logger.debug(f"Auto-reveal skipped: {gate.reason}")
            return RevealDecision(RevealOutcome.SKIPPED, gate.reason, gate.instance_key, gate.turn_number)

        key = gate.instance_key
        turn = gate.turn_number

        if key in self._in_flight:
            return RevealDecision(RevealOutcome.IN_FLIGHT, "submission in flight", key, turn)
        if self.attempts(key) >= self.retry_budget:
            return RevealDecision(RevealOutcome.EXHAUSTED, "retry budget exhausted", key, turn)

        entry = self.cache.get(cache_key(self.game_id, self.session_id, key))
        if entry is None:
            logger.warning(f"Auto-reveal for {key}: committed on the server but no cached payload")
            return RevealDecision(RevealOutcome.NO_CACHED_PAYLOAD, "no cached payload", key, turn)

        if not validate_reveal(entry.payload, entry.nonce, gate.commit_hash):
            raise RevealValidationError(key, f"Cached payload for {key} does not match the server commit")

        envelope = IntentEnvelope(
            intent_type=self.policy.intent_type,
            instance_key=key,
            player_id=gate.player_id,
            turn_number=turn,
            payload=entry.payload,
            nonce=entry.nonce,
        )

        # Claimed before the only suspension point
        self._in_flight.add(key)
        self.machine.transition(key, RevealState.SUBMITTING)
        self._attempts[key] = self.attempts(key) + 1
        self.submissions += 1
        logger.info(f"Auto-submitting {self.policy.intent_type.value} for {key} (attempt {self._attempts[key]})")

        try:
            receipt = await self.channel.submit(envelope)
        except IntentRejected as e:
            return self._on_rejected(key, turn, e)
        except IntentTransportError as e:
            self.machine.transition(key, RevealState.READY_TO_REVEAL)
            logger.warning(f"Auto-reveal for {key} failed in transport, will retry: {e}")
            return self._failure(RevealOutcome.TRANSPORT_ERROR, str(e), key, turn)
        finally:
            self._in_flight.discard(key)

        if self._is_stale(turn):
            self.machine.transition(key, RevealState.READY_TO_REVEAL)
            logger.info(f"Discarding stale reveal response for {key}")
            return RevealDecision(RevealOutcome.STALE, "turn changed while submitting", key, turn)

        self.tracker.add(turn)
        self.cache.clear(cache_key(self.game_id, self.session_id, key))
        self.machine.transition(key, RevealState.SUBMITTED)
        self._attempts.pop(key, None)
        logger.info(f"Auto-reveal for {key} accepted")
        if self.on_receipt:
            self.on_receipt(receipt)
        return RevealDecision(RevealOutcome.SUBMITTED, "accepted", key, turn)

    def _on_rejected(self, key: str, turn: int, error: IntentRejected) -> RevealDecision:
        if error.code == RejectionCode.BAD_TURN.value:
            self.tracker.discard(turn)

        if error.code == RejectionCode.ALREADY_REVEALED.value and not self._is_stale(turn):
            self.tracker.add(turn)
            self.cache.clear(cache_key(self.game_id, self.session_id, key))
            self.machine.transition(key, RevealState.SUBMITTED)
            self._attempts.pop(key, None)
            return RevealDecision(RevealOutcome.ALREADY_REVEALED, error.message, key, turn, error.code)

        self.machine.transition(key, RevealState.READY_TO_REVEAL)
        logger.warning(f"Auto-reveal for {key} rejected: {error.code}")
        return self._failure(RevealOutcome.REJECTED, error.message, key, turn, error.code)

    def _failure(self, outcome: RevealOutcome, reason: str, key: str, turn: int,
                 code: str | None = None) -> RevealDecision:
        if self.attempts(key) >= self.retry_budget:
            logger.error(f"Auto-reveal for {key} gave up after {self.attempts(key)} attempts")
            return RevealDecision(RevealOutcome.EXHAUSTED, reason, key, turn, code)
        return RevealDecision(outcome, reason, key, turn, code)

    def _is_stale(self, issued_turn: int) -> bool:
        snapshot = self.snapshot_provider()
        return snapshot is None or snapshot.turn_number != issued_turn
