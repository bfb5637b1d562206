"""
Game State - Server-authoritative state for one game.

Design principles:
- The reducer clones, mutates the clone, and returns it
- Serializable: to_dict() is the snapshot clients read
- Hidden information is masked per perspective at serialization time
- Phase and turn are stored once; everything else derives from them
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
from copy import deepcopy
from enum import Enum

from .intent import build_instance_key, species_instance_key
from .phase import (
    INITIAL_PHASE,
    MajorPhase,
    major_phase_of,
    sub_phase_of,
)


class GameStatus(str, Enum):
    """Lifecycle of a game."""
    WAITING = "waiting"  # Fewer than two seated players
    ACTIVE = "active"
    FINISHED = "finished"


ROLE_PLAYER = "player"
ROLE_SPECTATOR = "spectator"
SEATS = 2


@dataclass
class Player:
    """
    A participant in a game.

    player_id is the public identifier (commitments, ships and readiness
    are keyed by it). session_id is the caller's secret and is only ever
    serialized back to its owner.
    """
    player_id: str
    name: str
    session_id: str
    role: str = ROLE_PLAYER
    faction: str | None = None
    lines: int = 0

    @property
    def is_seated(self) -> bool:
        return self.role == ROLE_PLAYER

    def to_dict(self, include_session: bool = False) -> dict[str, Any]:
        return {
            "id": self.player_id,
            "player_id": self.player_id,
            "session_id": self.session_id if include_session else None,
            "name": self.name,
            "role": self.role,
            "faction": self.faction,
            "lines": self.lines,
        }


@dataclass
class ShipInstance:
    """A built ship. Created by the server on reveal, never edited after."""
    instance_id: str
    ship_def_id: str
    owner_id: str
    created_turn: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "ship_def_id": self.ship_def_id,
            "owner_id": self.owner_id,
            "created_turn": self.created_turn,
        }


@dataclass
class CommitRecord:
    """
    One player's commitment for one phase instance.

    Lifecycle: committed -> revealed. Immutable once revealed.
    """
    commit_hash: str
    committed_at: int
    reveal_payload: Any | None = None
    nonce: str | None = None
    revealed_at: int | None = None

    @property
    def is_revealed(self) -> bool:
        return self.revealed_at is not None

    def to_dict(self, masked: bool = False) -> dict[str, Any]:
        return {
            "commit_hash": self.commit_hash,
            "committed_at": self.committed_at,
            "revealed": self.is_revealed,
            "revealed_at": self.revealed_at,
            "reveal_payload": None if masked else deepcopy(self.reveal_payload),
            "nonce": None if masked else self.nonce,
        }


@dataclass
class TurnData:
    """Per-turn bookkeeping for the on-enter hooks."""
    turn_number: int
    dice_roll: int | None = None
    dice_finalized: bool = False
    lines_distributed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "turn_number": self.turn_number,
            "dice_roll": self.dice_roll,
            "dice_finalized": self.dice_finalized,
            "lines_distributed": self.lines_distributed,
        }


BASE_TIME_MS = 600_000
INCREMENT_MS = 15_000


@dataclass
class ClockState:
    """
    Chess clock for the seated players.

    remaining_ms gets an entry when a player takes a seat. increment_turn
    records the last turn each player was credited an increment for.
    """
    base_ms: int = BASE_TIME_MS
    increment_ms: int = INCREMENT_MS
    remaining_ms: dict[str, int] = field(default_factory=dict)
    last_update_ms: int | None = None
    increment_turn: dict[str, int] = field(default_factory=dict)

    def to_dict(self, live: bool = False) -> dict[str, Any]:
        return {
            "base_ms": self.base_ms,
            "increment_ms": self.increment_ms,
            "remaining_ms": dict(self.remaining_ms),
            "last_update_ms": self.last_update_ms,
            "live": live,
        }


@dataclass
class GameState:
    """
    Complete game state at a point in time.

    This is the canonical state that the server operates on.
    All state changes go through the intent reducer.
    """
    game_id: str
    status: GameStatus = GameStatus.WAITING

    # Phase machine
    phase_key: str = INITIAL_PHASE
    turn_number: int = 1
    turn_data: TurnData = field(default_factory=lambda: TurnData(turn_number=1))

    # Players (seated players and spectators)
    players: list[Player] = field(default_factory=list)

    # instance_key -> player_id -> record
    commitments: dict[str, dict[str, CommitRecord]] = field(default_factory=dict)

    # owner_id -> ships
    ships: dict[str, list[ShipInstance]] = field(default_factory=dict)

    # player_id -> phase_key the player declared ready for
    readiness: dict[str, str] = field(default_factory=dict)

    winner: str | None = None
    end_reason: str | None = None  # surrender, turn_limit, timeout, timeout_draw
    max_turns: int | None = None  # Game ends after this turn's resolution
    created_at: float = 0.0

    clock: ClockState = field(default_factory=ClockState)

    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_finished(self) -> bool:
        return self.status == GameStatus.FINISHED

    @property
    def major_phase(self) -> MajorPhase | None:
        return major_phase_of(self.phase_key)

    @property
    def seated_players(self) -> list[Player]:
        return [p for p in self.players if p.is_seated]

    def get_player(self, player_id: str) -> Player | None:
        """Get player by ID."""
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None

    def get_player_by_session(self, session_id: str) -> Player | None:
        for p in self.players:
            if p.session_id == session_id:
                return p
        return None

    def opponent_of(self, player_id: str) -> Player | None:
        for p in self.seated_players:
            if p.player_id != player_id:
                return p
        return None

    def commit_for(self, instance_key: str, player_id: str) -> CommitRecord | None:
        return self.commitments.get(instance_key, {}).get(player_id)

    def commit_window(self) -> str | None:
        """Instance key that still accepts commitments, if any."""
        major = self.major_phase
        if major == MajorPhase.SETUP:
            return species_instance_key(self.turn_number)
        if major == MajorPhase.BUILD:
            return build_instance_key(self.turn_number)
        return None

    def is_disclosed(self, instance_key: str) -> bool:
        """
        True once every payload of an instance may be shown to everyone.

        That is when every seated player has revealed, or when the instance
        no longer accepts commitments and every committed player has revealed.
        """
        records = self.commitments.get(instance_key, {})
        if not all(r.is_revealed for r in records.values()):
            return False
        seated = self.seated_players
        if len(seated) == SEATS and all(p.player_id in records for p in seated):
            return True
        return instance_key != self.commit_window()

    @property
    def clocks_live(self) -> bool:
        """Clocks run once both seated players have a species."""
        seated = self.seated_players
        return (
            self.status == GameStatus.ACTIVE
            and len(seated) == SEATS
            and all(p.faction is not None for p in seated)
        )

    def clone(self) -> GameState:
        """Deep copy the state."""
        return deepcopy(self)

    def to_dict(self, perspective: str | None = None) -> dict[str, Any]:
        """
        Serialize as a client snapshot.

        perspective is the viewing player's id. Other players' reveal
        payloads and nonces stay masked until is_disclosed() holds for
        that instance. A perspective of None masks all of them.
        """
        commitments: dict[str, dict[str, Any]] = {}
        for instance_key, records in self.commitments.items():
            disclosed = self.is_disclosed(instance_key)
            commitments[instance_key] = {
                player_id: record.to_dict(masked=player_id != perspective and not disclosed)
                for player_id, record in records.items()
            }

        return {
            "game_id": self.game_id,
            "status": self.status.value,
            "phase_key": self.phase_key,
            "current_phase": self.phase_key.split(".", 1)[0],
            "current_sub_phase": sub_phase_of(self.phase_key),
            "turn_number": self.turn_number,
            "winner": self.winner,
            "end_reason": self.end_reason,
            "max_turns": self.max_turns,
            "players": [
                p.to_dict(include_session=p.player_id == perspective)
                for p in self.players
            ],
            "commitments": commitments,
            "ships": {
                owner_id: [ship.to_dict() for ship in ships]
                for owner_id, ships in self.ships.items()
            },
            "readiness": dict(self.readiness),
            "turn_data": self.turn_data.to_dict(),
            "clock": self.clock.to_dict(live=self.clocks_live),
        }
