"""
Ready Flash - Brief UI signal after my readiness moved the phase on.

arm() when I declare ready; the next change of (turn, phase) then lights
the flash for FLASH_MS. The turn is part of the position because a ready
with nothing to reveal can run the server all the way round to the same
phase key of the next turn. The first observation only sets the baseline.
Display only: nothing in the protocol reads it.
"""

from __future__ import annotations

FLASH_MS = 500


class ReadyFlash:
    def __init__(self, duration_ms: int = FLASH_MS):
        self.duration_ms = duration_ms
        self._armed = False
        self._last_position: tuple[int | None, str] | None = None
        self._until_ms = 0

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self):
        self._armed = True

    def observe(self, phase_key: str, now_ms: int, turn_number: int | None = None):
        position = (turn_number, phase_key)
        if self._last_position is None:
            self._last_position = position
            return
        if position != self._last_position:
            if self._armed:
                self._until_ms = now_ms + self.duration_ms
                self._armed = False
            self._last_position = position

    def is_active(self, now_ms: int) -> bool:
        return now_ms < self._until_ms
