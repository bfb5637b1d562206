"""
Game Loop - Optional polling driver for a ClientSession.

The loop:
1. Fetch the latest server state
2. Apply it (which runs one auto-reveal evaluation)
3. Sleep, repeat until the game is over or the loop is stopped

Polling is only a refresh trigger; all decisions still come from the
snapshot each tick. Transport errors are logged and retried next tick.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
import asyncio
import logging

from .channel import IntentError
from .orchestrator import RevealDecision, RevealValidationError

if TYPE_CHECKING:
    from .client import ClientSession

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """State of the polling loop."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    GAME_OVER = "game_over"


@dataclass
class TickResult:
    """Result of one poll."""
    ok: bool
    decision: RevealDecision | None = None
    error: str | None = None


class PollingLoop:
    """
    Usage:
        loop = PollingLoop(session, interval=1.0)
        task = asyncio.create_task(loop.run())
        ...
        loop.stop()
    """

    def __init__(self, session: ClientSession, interval: float = 1.0):
        self.session = session
        self.interval = interval
        self.state = LoopState.IDLE
        self.ticks = 0
        self.last_error: Exception | None = None

    async def tick(self) -> TickResult:
        self.ticks += 1
        try:
            decision = await self.session.refresh()
        except IntentError as e:
            self.last_error = e
            logger.warning(f"Poll {self.ticks} failed: {e}")
            return TickResult(ok=False, error=str(e))
        except RevealValidationError as e:
            self.last_error = e
            logger.error(f"Poll {self.ticks}: {e}")
            return TickResult(ok=False, error=str(e))

        if self.session.snapshot and self.session.snapshot.is_finished:
            self.state = LoopState.GAME_OVER
        return TickResult(ok=True, decision=decision)

    async def run(self, max_ticks: int | None = None) -> LoopState:
        self.state = LoopState.RUNNING
        while self.state == LoopState.RUNNING:
            await self.tick()
            if self.state != LoopState.RUNNING:
                break
            if max_ticks is not None and self.ticks >= max_ticks:
                self.state = LoopState.STOPPED
                break
            await asyncio.sleep(self.interval)
        return self.state

    def stop(self):
        if self.state == LoopState.RUNNING:
            self.state = LoopState.STOPPED
