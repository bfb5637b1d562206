"""
Fleet Visibility - What each side may see of the fleets.

Opponent ships built this turn stay hidden until the battle phase, the
same secrecy the build commit/reveal protects. An opponent ship is
visible iff:
- created_turn is missing or not an int (fail-open: treated as old), or
- created_turn < current turn, or
- created_turn == current turn and the major phase is battle

My own ships are always visible. Visible ships aggregate into
{ship_def_id: count}. Pure: malformed input never raises.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from .identity import PlayerIdentity

UNKNOWN_SHIP = "UNKNOWN"


@dataclass(frozen=True)
class FleetView:
    my_fleet: dict[str, int] = field(default_factory=dict)
    opponent_fleet: dict[str, int] = field(default_factory=dict)
    my_ships: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    opponent_ships: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    opponent_ships_visible: tuple[dict[str, Any], ...] = field(default_factory=tuple)


def _created_turn(ship: dict[str, Any]) -> Any:
    if "created_turn" in ship:
        return ship["created_turn"]
    return ship.get("createdTurn")


def _ship_def_id(ship: dict[str, Any]) -> str:
    value = ship.get("ship_def_id", ship.get("shipDefId"))
    return value if isinstance(value, str) and value else UNKNOWN_SHIP


def is_ship_visible(ship: Any, current_turn: Any, major_phase: Any) -> bool:
    """Visibility of one opponent ship."""
    if not isinstance(ship, dict):
        return False
    created_turn = _created_turn(ship)
    if isinstance(created_turn, bool) or not isinstance(created_turn, int):
        return True
    if isinstance(current_turn, bool) or not isinstance(current_turn, int):
        return True
    if created_turn < current_turn:
        return True
    if created_turn == current_turn:
        return major_phase == "battle"
    return False


def aggregate_fleet(ships: Any) -> dict[str, int]:
    """Group ships by definition id with counts."""
    if not isinstance(ships, (list, tuple)):
        return {}
    return dict(Counter(_ship_def_id(s) for s in ships if isinstance(s, dict)))


def _ships_of(ships_by_owner: Any, owner_id: Any) -> tuple[dict[str, Any], ...]:
    if not isinstance(ships_by_owner, dict) or not isinstance(owner_id, str):
        return ()
    ships = ships_by_owner.get(owner_id)
    if not isinstance(ships, (list, tuple)):
        return ()
    return tuple(s for s in ships if isinstance(s, dict))


def derive_fleets(ships_by_owner: Any, identity: PlayerIdentity, current_turn: Any, major_phase: Any) -> FleetView:
    """Fleets for me and the visible part of the opponent's."""
    my_ships = _ships_of(ships_by_owner, identity.me_id)
    opponent_ships = _ships_of(ships_by_owner, identity.opponent_id)
    visible = tuple(s for s in opponent_ships if is_ship_visible(s, current_turn, major_phase))

    return FleetView(
        my_fleet=aggregate_fleet(my_ships),
        opponent_fleet=aggregate_fleet(visible),
        my_ships=my_ships,
        opponent_ships=opponent_ships,
        opponent_ships_visible=visible,
    )
