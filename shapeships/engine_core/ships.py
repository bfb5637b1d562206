"""
Ship catalog - Species and the ship definitions a build may name.

Only identity data lives here (id, species, name, line cost). Ship powers
and combat values belong to the rules engine, which this package does
not implement.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class Species(str, Enum):
    """Playable species."""
    HUMAN = "human"
    XENITE = "xenite"
    CENTAUR = "centaur"
    ANCIENT = "ancient"


@dataclass(frozen=True)
class ShipDefinition:
    """A buildable ship type."""
    ship_def_id: str
    species: Species
    name: str
    line_cost: int | None = None


SHIP_DEFINITIONS: tuple[ShipDefinition, ...] = (
    # Human
    ShipDefinition("DEF", Species.HUMAN, "Defender", 2),
    ShipDefinition("FIG", Species.HUMAN, "Fighter", 3),
    ShipDefinition("COM", Species.HUMAN, "Commander", 4),
    ShipDefinition("INT", Species.HUMAN, "Interceptor", 4),
    ShipDefinition("ORB", Species.HUMAN, "Orbital", 6),
    ShipDefinition("CAR", Species.HUMAN, "Carrier", 6),
    ShipDefinition("STA", Species.HUMAN, "Starship", 8),
    ShipDefinition("FRI", Species.HUMAN, "Frigate", 8),
    ShipDefinition("TAC", Species.HUMAN, "Tactical Cruiser", 10),
    ShipDefinition("GUA", Species.HUMAN, "Guardian", 12),
    ShipDefinition("SCI", Species.HUMAN, "Science Vessel", 17),
    ShipDefinition("BAT", Species.HUMAN, "Battle Cruiser", 20),
    ShipDefinition("EAR", Species.HUMAN, "Earth Ship", 23),
    ShipDefinition("DRE", Species.HUMAN, "Dreadnought", 27),
    ShipDefinition("LEV", Species.HUMAN, "Leviathan", 44),
    # Xenite
    ShipDefinition("XEN", Species.XENITE, "Xenite", 2),
    ShipDefinition("ANT", Species.XENITE, "Antlion", 3),
    ShipDefinition("MAN", Species.XENITE, "Mantis", 4),
    ShipDefinition("EVO", Species.XENITE, "Evolver", 4),
    ShipDefinition("OXI", Species.XENITE, "Oxite", 2),
    ShipDefinition("AST", Species.XENITE, "Asterite", 2),
    ShipDefinition("HEL", Species.XENITE, "Hell Hornet", 6),
    ShipDefinition("BUG", Species.XENITE, "Bug Breeder", 6),
    ShipDefinition("ZEN", Species.XENITE, "Zenith", 9),
    ShipDefinition("DSW", Species.XENITE, "Defense Swarm", 9),
    ShipDefinition("QUE", Species.XENITE, "Queen", 20),
    # Centaur
    ShipDefinition("FEA", Species.CENTAUR, "Ship of Fear", 2),
    ShipDefinition("ANG", Species.CENTAUR, "Ship of Anger", 3),
    ShipDefinition("EQU", Species.CENTAUR, "Ship of Equality", 4),
    ShipDefinition("WIS", Species.CENTAUR, "Ship of Wisdom", 4),
    ShipDefinition("VIG", Species.CENTAUR, "Ship of Vigor", 6),
    ShipDefinition("FAM", Species.CENTAUR, "Ship of Family", 6),
    ShipDefinition("LEG", Species.CENTAUR, "Ship of Legacy", 8),
    ShipDefinition("TER", Species.CENTAUR, "Ark of Terror", 7),
    ShipDefinition("FUR", Species.CENTAUR, "Ark of Fury", 10),
    ShipDefinition("KNO", Species.CENTAUR, "Ark of Knowledge", 12),
    # Ancient
    ShipDefinition("MER", Species.ANCIENT, "Mercury Core", 4),
    ShipDefinition("PLU", Species.ANCIENT, "Pluto Core", 4),
    ShipDefinition("QUA", Species.ANCIENT, "Quantum Mystic", 5),
    ShipDefinition("SPI", Species.ANCIENT, "Spiral", 6),
    ShipDefinition("URA", Species.ANCIENT, "Uranus Core", 7),
    ShipDefinition("SOL", Species.ANCIENT, "Solar Grid", 8),
    ShipDefinition("CUB", Species.ANCIENT, "Cube", 9),
)

_BY_ID = {ship.ship_def_id: ship for ship in SHIP_DEFINITIONS}


def get_ship(ship_def_id: str) -> ShipDefinition | None:
    return _BY_ID.get(ship_def_id)


def is_known_ship(ship_def_id) -> bool:
    return isinstance(ship_def_id, str) and ship_def_id in _BY_ID


def is_valid_species(value) -> bool:
    try:
        Species(value)
    except ValueError:
        return False
    return True


def ships_for_species(species: Species | str) -> list[ShipDefinition]:
    """All ship definitions of a species, in catalog order."""
    species = Species(species)
    return [ship for ship in SHIP_DEFINITIONS if ship.species == species]
