"""
Commit Cache - The payload/nonce behind each of my pending commitments.

Client-owned and ephemeral (lost on restart). Keys are
"<game_id>:<session_id>:<instance_key>", so two sessions or two games in
one process never share entries.

Copy-on-write: every mutation swaps in a new mapping, and snapshot()
hands out a read-only view that later mutations don't affect.
"""

from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping
import copy
import logging
import re

logger = logging.getLogger(__name__)

_TURN_SUFFIX = re.compile(r"_(\d+)$")


def cache_key(game_id: str, session_id: str, instance_key: str) -> str:
    return f"{game_id}:{session_id}:{instance_key}"


def instance_turn(instance_key: str) -> int | None:
    """Turn number encoded in an instance key like BUILD_3, else None."""
    match = _TURN_SUFFIX.search(instance_key)
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class CommitCacheEntry:
    key: str
    payload: Any
    nonce: str


class CommitCache:
    """Per-session store of committed payloads awaiting reveal."""

    def __init__(self):
        self._entries: Mapping[str, CommitCacheEntry] = MappingProxyType({})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> CommitCacheEntry | None:
        return self._entries.get(key)

    def set(self, key: str, payload: Any, nonce: str) -> CommitCacheEntry:
        """Store (replacing) the entry for key. The payload is deep-copied."""
        entry = CommitCacheEntry(key=key, payload=copy.deepcopy(payload), nonce=nonce)
        entries = dict(self._entries)
        entries[key] = entry
        self._entries = MappingProxyType(entries)
        return entry

    def clear(self, key: str) -> CommitCacheEntry | None:
        """Remove and return the entry for key (None if absent)."""
        if key not in self._entries:
            return None
        entries = dict(self._entries)
        entry = entries.pop(key)
        self._entries = MappingProxyType(entries)
        return entry

    def restore(self, key: str, entry: CommitCacheEntry | None):
        """Put back a previous entry (or remove key if there was none)."""
        if entry is None:
            self.clear(key)
        else:
            self.set(key, entry.payload, entry.nonce)

    def prune(self, min_turn: int) -> list[str]:
        """Drop entries whose instance turn is below min_turn. Returns dropped keys."""
        dropped = []
        for key in self._entries:
            turn = instance_turn(key)
            if turn is not None and turn < min_turn:
                dropped.append(key)
        if dropped:
            self._entries = MappingProxyType({
                k: v for k, v in self._entries.items() if k not in dropped
            })
            logger.debug(f"Pruned {len(dropped)} stale commit cache entries")
        return dropped

    def snapshot(self) -> Mapping[str, CommitCacheEntry]:
        """Read-only view of the current entries."""
        return self._entries
