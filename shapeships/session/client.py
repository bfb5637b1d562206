"""
Client Session - One player's view of one game.

The session owns the per-game client state and nothing else:
- latest server snapshot (the only source of truth)
- commit cache (payload + nonce behind my pending commitments)
- submission tracker (turns whose auto-reveal the server accepted)
- auto-reveal orchestrator
- ready flash

Every snapshot applied triggers one orchestrator evaluation, so the
reveal fires as soon as the server reaches battle.reveal.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable
import logging
import time

from .channel import IntentChannel, IntentEnvelope, IntentReceipt, IntentRejected
from .commit_cache import CommitCache, cache_key
from .fleets import FleetView, derive_fleets
from .identity import PlayerIdentity, derive_identity
from .orchestrator import (
    SHAPESHIPS_REVEAL_RETRY_BUDGET,
    AutoRevealOrchestrator,
    RevealDecision,
)
from .ready_flash import ReadyFlash
from .snapshot import GameSnapshot
from .tracker import SubmissionTracker
from ..engine_core.hashing import generate_nonce, make_commit_hash
from ..engine_core.intent import (
    IntentType,
    RejectionCode,
    build_instance_key,
    canonical_build_payload,
    parse_build_payload,
    species_instance_key,
)
from ..engine_core.phase import major_phase_label, sub_phase_label
from ..engine_core.ships import is_valid_species

logger = logging.getLogger(__name__)


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def format_clock_ms(ms: int | None) -> str | None:
    """MM:SS for a remaining time, rounded down to the second."""
    if ms is None:
        return None
    minutes, seconds = divmod(max(0, ms) // 1000, 60)
    return f"{minutes:02d}:{seconds:02d}"


@dataclass
class SessionView:
    """Derived, display-only outputs for one snapshot."""
    phase_key: str
    major_label: str
    sub_label: str
    turn_number: int | None
    status: str | None
    winner: str | None
    dice_roll: int | None
    identity: PlayerIdentity
    fleets: FleetView
    me_ready: bool = False
    opponent_ready: bool = False
    ready_flash: bool = False
    pending_commits: list[str] = field(default_factory=list)
    clocks_live: bool = False
    my_clock: str | None = None
    opponent_clock: str | None = None


class ClientSession:
    """
    Usage:
        session = ClientSession(channel, game_id, session_id)
        await session.refresh()
        await session.submit_species("human")
        ...
        await session.commit_build({"FIG": 2})
        await session.declare_ready()   # reveal happens automatically later
    """

    def __init__(
        self,
        channel: IntentChannel,
        game_id: str,
        session_id: str,
        retry_budget: int = SHAPESHIPS_REVEAL_RETRY_BUDGET,
        clock_ms: Callable[[], int] = _monotonic_ms,
    ):
        self.channel = channel
        self.game_id = game_id
        self.session_id = session_id
        self.clock_ms = clock_ms

        self.snapshot: GameSnapshot | None = None
        self.cache = CommitCache()
        self.tracker = SubmissionTracker()
        self.ready_flash = ReadyFlash()
        self.orchestrator = AutoRevealOrchestrator(
            channel=channel,
            cache=self.cache,
            tracker=self.tracker,
            game_id=game_id,
            session_id=session_id,
            snapshot_provider=lambda: self.snapshot,
            retry_budget=retry_budget,
            on_receipt=self._store_receipt,
        )
        self.last_decision: RevealDecision | None = None

    # =========================================================================
    # Snapshots
    # =========================================================================

    @property
    def identity(self) -> PlayerIdentity:
        players = list(self.snapshot.players) if self.snapshot else []
        return derive_identity(players, self.session_id)

    def _set_snapshot(self, data: Any):
        self.snapshot = GameSnapshot.from_dict(data)
        if self.snapshot.turn_number is not None:
            self.cache.prune(self.snapshot.turn_number)
        self.ready_flash.observe(self.snapshot.phase_key, self.clock_ms(), self.snapshot.turn_number)

    def _store_receipt(self, receipt: IntentReceipt):
        # Called from inside an evaluation; must not evaluate again
        self._set_snapshot(receipt.state)

    async def apply_snapshot(self, data: Any) -> RevealDecision:
        """
        Replace the snapshot and run one auto-reveal evaluation.

        Raises:
            RevealValidationError: my cached build doesn't match my server commit
        """
        self._set_snapshot(data)
        self.last_decision = await self.orchestrator.evaluate()
        return self.last_decision

    async def refresh(self) -> RevealDecision:
        """Fetch the latest server state and apply it."""
        return await self.apply_snapshot(await self.channel.fetch_state())

    # =========================================================================
    # Intents
    # =========================================================================

    def _current_turn(self) -> int:
        if self.snapshot is None or self.snapshot.turn_number is None:
            raise RuntimeError("No server snapshot yet; call refresh() first")
        return self.snapshot.turn_number

    async def _submit(self, envelope: IntentEnvelope) -> IntentReceipt:
        receipt = await self.channel.submit(envelope)
        await self.apply_snapshot(receipt.state)
        return receipt

    async def submit_species(self, species: str) -> IntentReceipt | None:
        """
        Commit and reveal my species in one request.

        A DUPLICATE_COMMIT rejection means the server already has my
        species; the state is refreshed and None returned.
        """
        if not is_valid_species(species):
            raise ValueError(f"Unknown species: {species!r}")

        turn = self._current_turn()
        payload = {"species": species}
        nonce = generate_nonce()
        envelope = IntentEnvelope(
            intent_type=IntentType.SPECIES_SUBMIT,
            instance_key=species_instance_key(turn),
            player_id=self.identity.me_id,
            turn_number=turn,
            commit_hash=make_commit_hash(payload, nonce),
            payload=payload,
            nonce=nonce,
        )
        try:
            return await self._submit(envelope)
        except IntentRejected as e:
            if e.code != RejectionCode.DUPLICATE_COMMIT.value:
                raise
            logger.info("Species already submitted; refreshing")
            await self.refresh()
            return None

    async def commit_build(self, counts: dict[str, int]) -> IntentReceipt:
        """
        Commit a build for the current turn.

        The payload/nonce are cached before the request goes out so the
        reveal can be built as soon as the server confirms the commit. A
        rejection puts the previous cache entry back.

        Raises:
            ValueError: the draft could never be revealed (unknown ship, bad count)
        """
        payload = canonical_build_payload(counts)
        _, rejection = parse_build_payload(payload)
        if rejection:
            raise ValueError(rejection.message)

        turn = self._current_turn()
        key = build_instance_key(turn)
        nonce = generate_nonce()
        envelope = IntentEnvelope(
            intent_type=IntentType.BUILD_COMMIT,
            instance_key=key,
            player_id=self.identity.me_id,
            turn_number=turn,
            commit_hash=make_commit_hash(payload, nonce),
        )

        ck = cache_key(self.game_id, self.session_id, key)
        previous = self.cache.get(ck)
        self.cache.set(ck, payload, nonce)
        try:
            return await self._submit(envelope)
        except IntentRejected:
            self.cache.restore(ck, previous)
            raise

    async def declare_ready(self) -> IntentReceipt:
        envelope = IntentEnvelope(
            intent_type=IntentType.DECLARE_READY,
            instance_key=None,
            player_id=self.identity.me_id,
            turn_number=self._current_turn(),
        )
        self.ready_flash.arm()
        return await self._submit(envelope)

    async def surrender(self) -> IntentReceipt:
        envelope = IntentEnvelope(
            intent_type=IntentType.SURRENDER,
            instance_key=None,
            player_id=self.identity.me_id,
            turn_number=self.snapshot.turn_number if self.snapshot and self.snapshot.turn_number else 0,
        )
        return await self._submit(envelope)

    # =========================================================================
    # Derived view
    # =========================================================================

    def view(self) -> SessionView:
        snapshot = self.snapshot or GameSnapshot()
        identity = derive_identity(list(snapshot.players), self.session_id)
        fleets = derive_fleets(snapshot.ships, identity, snapshot.turn_number, snapshot.major_phase)
        return SessionView(
            phase_key=snapshot.phase_key,
            major_label=major_phase_label(snapshot.phase_key),
            sub_label=sub_phase_label(snapshot.phase_key),
            turn_number=snapshot.turn_number,
            status=snapshot.status,
            winner=snapshot.winner,
            dice_roll=snapshot.dice_roll,
            identity=identity,
            fleets=fleets,
            me_ready=snapshot.is_ready(identity.me_ready_key),
            opponent_ready=snapshot.is_ready(identity.opponent_ready_key),
            ready_flash=self.ready_flash.is_active(self.clock_ms()),
            pending_commits=sorted(self.cache.snapshot().keys()),
            clocks_live=snapshot.clocks_live,
            my_clock=format_clock_ms(snapshot.remaining_ms(identity.me_id)),
            opponent_clock=format_clock_ms(snapshot.remaining_ms(identity.opponent_id)),
        )
