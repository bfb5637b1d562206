"""
Shapeships - Turn synchronization for a two-player simultaneous-turn game.

The server owns game state and applies intents; clients mirror it and
drive their own protocol steps:
- Phase machine (setup, build, battle and their subphases)
- Commit/reveal of hidden choices with hash commitments
- Automatic, exactly-once build reveal on the client
- Opponent fleet visibility derived from turn and phase
"""

__version__ = "0.1.0"
