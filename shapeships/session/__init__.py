"""
Session Module - Client-side game sessions.

A session is one player's connection to one game:
- Mirrors server state as immutable snapshots
- Caches the payload/nonce behind pending commitments
- Reveals builds automatically, exactly once per turn
- Derives identity, visible fleets and phase labels for display

Sessions are EPHEMERAL: nothing is persisted, and a restarted client
rebuilds everything from the next server snapshot.
"""

from .channel import (
    IntentEnvelope,
    IntentReceipt,
    IntentRejected,
    IntentTransportError,
    LocalIntentChannel,
    HttpIntentChannel,
)
from .client import ClientSession, SessionView
from .commit_cache import CommitCache, CommitCacheEntry
from .fleets import FleetView, derive_fleets
from .game_loop import PollingLoop, LoopState, TickResult
from .identity import PlayerIdentity, derive_identity
from .orchestrator import (
    AutoRevealOrchestrator,
    RevealOutcome,
    RevealState,
    RevealStateMachine,
    RevealValidationError,
)
from .snapshot import GameSnapshot
from .tracker import SubmissionTracker

__all__ = [
    "IntentEnvelope",
    "IntentReceipt",
    "IntentRejected",
    "IntentTransportError",
    "LocalIntentChannel",
    "HttpIntentChannel",
    "ClientSession",
    "SessionView",
    "CommitCache",
    "CommitCacheEntry",
    "FleetView",
    "derive_fleets",
    "PollingLoop",
    "LoopState",
    "TickResult",
    "PlayerIdentity",
    "derive_identity",
    "AutoRevealOrchestrator",
    "RevealOutcome",
    "RevealState",
    "RevealStateMachine",
    "RevealValidationError",
    "GameSnapshot",
    "SubmissionTracker",
]
