"""
Hashing - Commit hashes and nonces for the commit/reveal protocol.

Format:
    commit_hash = sha256(canonical_json(payload) + nonce)

Both the committing client and the validating server MUST go through
canonical_json(). Any difference in serialization (key order, whitespace,
number formatting) breaks every reveal, so there is exactly one encoder.

Canonical JSON rules:
- UTF-8, keys sorted, separators "," and ":" with no whitespace
- non-ASCII characters kept as-is (no \\u escapes)
- ints, strings, bools, null, lists and string-keyed objects only
- floats are rejected: their text form is not stable across runtimes
"""

from __future__ import annotations
import hashlib
import hmac
import json
import secrets
from typing import Any


NONCE_BYTES = 16  # 128 bits -> 32 hex chars


def _check_canonical(value: Any, path: str = "$") -> None:
    """Raise ValueError if value holds anything canonical_json can't encode stably."""
    if value is None or isinstance(value, (bool, str, int)):
        return
    if isinstance(value, float):
        raise ValueError(f"Floats are not allowed in commit payloads (at {path})")
    if isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            _check_canonical(item, f"{path}[{i}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"Object keys must be strings (at {path})")
            _check_canonical(item, f"{path}.{key}")
        return
    raise ValueError(f"Unsupported type {type(value).__name__} in commit payload (at {path})")


def canonical_json(payload: Any) -> str:
    """Serialize payload to its canonical JSON text."""
    _check_canonical(payload)
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def sha256_hex(text: str) -> str:
    """SHA-256 of UTF-8 text as lowercase hex."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def make_commit_hash(payload: Any, nonce: str) -> str:
    """Create a commit hash from payload + nonce."""
    return sha256_hex(canonical_json(payload) + nonce)


def validate_reveal(payload: Any, nonce: str, expected_hash: str) -> bool:
    """
    Check that a revealed payload/nonce matches a previously committed hash.

    Returns False (never raises) for payloads that can't be canonicalized
    or for a malformed expected hash.
    """
    if not isinstance(nonce, str) or not isinstance(expected_hash, str):
        return False
    try:
        computed = make_commit_hash(payload, nonce)
    except ValueError:
        return False
    return hmac.compare_digest(computed.encode("utf-8"), expected_hash.encode("utf-8"))


def generate_nonce() -> str:
    """Cryptographically random nonce, 32 lowercase hex characters."""
    return secrets.token_hex(NONCE_BYTES)


def is_commit_hash(value: Any) -> bool:
    """True if value looks like a sha256 hex digest."""
    if not isinstance(value, str) or len(value) != 64:
        return False
    return all(c in "0123456789abcdef" for c in value)
