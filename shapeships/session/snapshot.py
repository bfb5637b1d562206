"""
Game Snapshot - The client's read model of server state.

A snapshot is rebuilt from every server response and is the only source
of truth for protocol decisions. Parsing is tolerant: snake_case and
camelCase keys are both accepted, a phase key may arrive whole or as
current_phase + current_sub_phase, and anything unparseable degrades to
None / UNKNOWN_PHASE instead of raising.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any

from ..engine_core.phase import (
    GAME_OVER,
    UNKNOWN_PHASE,
    build_phase_key,
    is_valid_phase_key,
)


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parse_phase_key(data: dict[str, Any]) -> str:
    raw = _pick(data, "phase_key", "phaseKey")
    if raw == GAME_OVER or is_valid_phase_key(raw):
        return raw
    major = _pick(data, "current_phase", "currentPhase")
    sub = _pick(data, "current_sub_phase", "currentSubPhase")
    if major == GAME_OVER:
        return GAME_OVER
    if isinstance(major, str) and isinstance(sub, str):
        key = build_phase_key(major, sub)
        if key:
            return key
    return UNKNOWN_PHASE


def commit_hash_of(record: Any) -> str | None:
    if not isinstance(record, dict):
        return None
    value = _pick(record, "commit_hash", "commitHash")
    return value if isinstance(value, str) and value else None


def is_record_revealed(record: Any) -> bool:
    """A server reveal exists if flagged, timestamped, or carrying a payload."""
    if not isinstance(record, dict):
        return False
    if record.get("revealed") is True:
        return True
    if _as_int(_pick(record, "revealed_at", "revealedAt")) is not None:
        return True
    return _pick(record, "reveal_payload", "revealPayload") is not None


@dataclass(frozen=True)
class GameSnapshot:
    """Immutable view of one server state response."""
    game_id: str | None = None
    status: str | None = None
    phase_key: str = UNKNOWN_PHASE
    turn_number: int | None = None
    players: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    commitments: dict[str, Any] = field(default_factory=dict)
    ships: dict[str, Any] = field(default_factory=dict)
    readiness: dict[str, Any] = field(default_factory=dict)
    turn_data: dict[str, Any] = field(default_factory=dict)
    winner: str | None = None
    clock: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> GameSnapshot:
        if not isinstance(data, dict):
            return cls()
        players = _pick(data, "players", default=[])
        return cls(
            game_id=_pick(data, "game_id", "gameId"),
            status=_pick(data, "status"),
            phase_key=_parse_phase_key(data),
            turn_number=_as_int(_pick(data, "turn_number", "turnNumber")),
            players=tuple(p for p in players if isinstance(p, dict)) if isinstance(players, list) else (),
            commitments=_as_dict(_pick(data, "commitments")),
            ships=_as_dict(_pick(data, "ships")),
            readiness=_as_dict(_pick(data, "readiness")),
            turn_data=_as_dict(_pick(data, "turn_data", "turnData")),
            winner=_pick(data, "winner"),
            clock=_as_dict(_pick(data, "clock")),
        )

    @property
    def major_phase(self) -> str | None:
        if not is_valid_phase_key(self.phase_key):
            return None
        return self.phase_key.split(".", 1)[0]

    @property
    def is_finished(self) -> bool:
        return self.status == "finished" or self.phase_key == GAME_OVER

    @property
    def dice_roll(self) -> int | None:
        return _as_int(_pick(self.turn_data, "dice_roll", "diceRoll"))

    def commit_record(self, instance_key: str, player_id: str | None) -> dict[str, Any] | None:
        if player_id is None:
            return None
        record = _as_dict(self.commitments.get(instance_key)).get(player_id)
        return record if isinstance(record, dict) else None

    def has_commit(self, instance_key: str, player_id: str | None) -> bool:
        return commit_hash_of(self.commit_record(instance_key, player_id)) is not None

    def has_reveal(self, instance_key: str, player_id: str | None) -> bool:
        return is_record_revealed(self.commit_record(instance_key, player_id))

    @property
    def clocks_live(self) -> bool:
        return self.clock.get("live") is True

    def remaining_ms(self, player_id: str | None) -> int | None:
        remaining = _as_dict(_pick(self.clock, "remaining_ms", "remainingMsByPlayerId"))
        return _as_int(remaining.get(player_id)) if player_id is not None else None

    def is_ready(self, ready_key: str | None) -> bool:
        return ready_key is not None and self.readiness.get(ready_key) == self.phase_key
