"""
Identity Resolver - Who is "me" and who is the opponent.

Derived from the server player list and the client's session id every
time either changes; never cached beyond that.

Rules:
- me: the entry whose id OR session_id equals the session id
  (the server may alias the identifier either way)
- opponent: only when me is a seated player; the other role == "player"
  entry, excluding me's id and session alias
- ready keys: player_id if present, else id (readiness is keyed by player_id)

Pure and total: malformed input yields None identities, never an exception.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PlayerIdentity:
    me: dict[str, Any] | None = None
    opponent: dict[str, Any] | None = None
    me_ready_key: str | None = None
    opponent_ready_key: str | None = None
    all_players: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    player_users: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def is_player(self) -> bool:
        return self.me is not None and self.me.get("role") == "player"

    @property
    def me_id(self) -> str | None:
        return self.me.get("id") if self.me else None

    @property
    def opponent_id(self) -> str | None:
        return self.opponent.get("id") if self.opponent else None


def ready_key(player: Any) -> str | None:
    """Key under which readiness is stored for a player entry."""
    if not isinstance(player, dict):
        return None
    key = player.get("player_id") or player.get("id")
    return key if isinstance(key, str) and key else None


def _matches_session(player: dict[str, Any], session_id: str) -> bool:
    return player.get("id") == session_id or player.get("session_id") == session_id


def derive_identity(players: Any, session_id: str | None) -> PlayerIdentity:
    """Resolve me/opponent from a raw player list."""
    if not isinstance(players, (list, tuple)):
        return PlayerIdentity()

    all_players = tuple(p for p in players if isinstance(p, dict))
    player_users = tuple(p for p in all_players if p.get("role") == "player")

    if not isinstance(session_id, str) or not session_id:
        return PlayerIdentity(all_players=all_players, player_users=player_users)

    me = next((p for p in all_players if _matches_session(p, session_id)), None)

    opponent = None
    if me is not None and me.get("role") == "player":
        me_aliases = [a for a in (session_id, me.get("id"), me.get("session_id")) if a is not None]
        opponent = next(
            (
                p for p in player_users
                if p.get("id") not in me_aliases and p.get("session_id") not in me_aliases
            ),
            None,
        )

    return PlayerIdentity(
        me=me,
        opponent=opponent,
        me_ready_key=ready_key(me),
        opponent_ready_key=ready_key(opponent),
        all_players=all_players,
        player_users=player_users,
    )
