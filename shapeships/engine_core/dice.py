"""
Dice - Cryptographically secure, unbiased d6 rolls.

Rejection sampling over single random bytes: bytes >= 252 are discarded
(252 = 6 * 42 is the largest multiple of 6 below 256), the rest map to
byte % 6 + 1. Every call is an independent draw; never reuse one roll
for two logical dice.
"""

from __future__ import annotations
import secrets
from typing import Callable


REJECTION_THRESHOLD = 252

ByteSource = Callable[[int], bytes]


def roll_d6(randbytes: ByteSource = secrets.token_bytes) -> int:
    """Roll a fair six-sided die (1-6)."""
    while True:
        byte = randbytes(1)[0]
        if byte < REJECTION_THRESHOLD:
            return byte % 6 + 1


def roll_dice(count: int, randbytes: ByteSource = secrets.token_bytes) -> list[int]:
    """Roll `count` independent dice."""
    if count < 0:
        raise ValueError("count must be non-negative")
    return [roll_d6(randbytes) for _ in range(count)]
