"""
Intent Channel - How a client submits intents and reads state.

Two implementations share one async interface:
- LocalIntentChannel: talks to an in-process GameService
- HttpIntentChannel: talks to the HTTP API with requests

Failures are typed so callers can tell them apart:
- IntentRejected: the server refused the intent (carries the code)
- IntentTransportError: the request never got a usable answer
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Protocol, TYPE_CHECKING
import asyncio
import logging
import os

import requests

from ..engine_core.intent import IntentRequest, IntentType

if TYPE_CHECKING:
    from ..api.service import GameService

logger = logging.getLogger(__name__)

# Environment configuration
SHAPESHIPS_INTENT_TIMEOUT = float(os.getenv("SHAPESHIPS_INTENT_TIMEOUT", "10"))

API_PREFIX = "/api/v1"
SESSION_HEADER = "X-Session-Id"


class IntentError(Exception):
    """Base class for intent submission failures."""


class IntentRejected(IntentError):
    """The server rejected the intent with a machine-readable code."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(f"{code}: {message}" if message else code)
        self.code = code
        self.message = message


class IntentTransportError(IntentError):
    """Network or server failure; the intent may or may not have been applied."""


@dataclass
class IntentEnvelope:
    """
    One intent as the client sends it.

    kind is "commit" for a hash-only submission, "reveal" when a payload
    and nonce are disclosed, and "action" otherwise.
    """
    intent_type: IntentType
    instance_key: str | None
    player_id: str | None
    turn_number: int
    commit_hash: str | None = None
    payload: Any | None = None
    nonce: str | None = None

    @property
    def kind(self) -> str:
        if self.nonce is not None:
            return "reveal"
        if self.commit_hash is not None:
            return "commit"
        return "action"

    def to_request(self) -> IntentRequest:
        return IntentRequest(
            intent_type=self.intent_type,
            turn_number=self.turn_number,
            commit_hash=self.commit_hash,
            payload=self.payload,
            nonce=self.nonce,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "intent_type": self.intent_type.value,
            "turn_number": self.turn_number,
            "commit_hash": self.commit_hash,
            "payload": self.payload,
            "nonce": self.nonce,
        }


@dataclass
class IntentReceipt:
    """An accepted intent and the state the server returned with it."""
    envelope: IntentEnvelope
    state: dict[str, Any]
    events: list[dict[str, Any]] = field(default_factory=list)


class IntentChannel(Protocol):
    async def submit(self, envelope: IntentEnvelope) -> IntentReceipt:
        ...

    async def fetch_state(self) -> dict[str, Any]:
        ...


class LocalIntentChannel:
    """Channel bound to one seat in an in-process GameService."""

    def __init__(self, service: GameService, game_id: str, session_id: str):
        self.service = service
        self.game_id = game_id
        self.session_id = session_id

    async def submit(self, envelope: IntentEnvelope) -> IntentReceipt:
        response = self.service.submit_intent(self.game_id, self.session_id, envelope.to_request())
        if not hasattr(response, "ok"):
            raise IntentRejected(response.error_code, response.error)
        if not response.ok:
            raise IntentRejected(response.rejection["code"], response.rejection["message"])
        return IntentReceipt(envelope=envelope, state=response.state, events=response.events)

    async def fetch_state(self) -> dict[str, Any]:
        response = self.service.get_state(self.game_id, self.session_id)
        if not isinstance(response, dict):
            raise IntentRejected(response.error_code, response.error)
        return response


class HttpIntentChannel:
    """
    Channel bound to one seat on a remote server.

    Blocking requests calls run in a worker thread so the session's event
    loop keeps running while a submission is outstanding.
    """

    def __init__(
        self,
        base_url: str,
        game_id: str,
        session_id: str,
        timeout: float = SHAPESHIPS_INTENT_TIMEOUT,
        http: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.game_id = game_id
        self.session_id = session_id
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def create_game(cls, base_url: str, player_name: str, max_turns: int | None = None,
                    http: requests.Session | None = None) -> tuple[HttpIntentChannel, dict[str, Any]]:
        """Create a game on the server and return a channel for the first seat."""
        http = http or requests.Session()
        body = _request(
            http, "POST", f"{base_url.rstrip('/')}{API_PREFIX}/games",
            json={"player_name": player_name, "max_turns": max_turns},
        )
        return cls(base_url, body["game_id"], body["session_id"], http=http), body

    @classmethod
    def join_game(cls, base_url: str, game_id: str, player_name: str,
                  http: requests.Session | None = None) -> tuple[HttpIntentChannel, dict[str, Any]]:
        http = http or requests.Session()
        body = _request(
            http, "POST", f"{base_url.rstrip('/')}{API_PREFIX}/games/{game_id}/join",
            json={"player_name": player_name},
        )
        return cls(base_url, game_id, body["session_id"], http=http), body

    def _url(self, suffix: str) -> str:
        return f"{self.base_url}{API_PREFIX}/games/{self.game_id}{suffix}"

    def _headers(self) -> dict[str, str]:
        return {SESSION_HEADER: self.session_id}

    async def submit(self, envelope: IntentEnvelope) -> IntentReceipt:
        body = await asyncio.to_thread(
            _request, self.http, "POST", self._url("/intents"),
            json=envelope.to_wire(), headers=self._headers(), timeout=self.timeout,
        )
        return IntentReceipt(envelope=envelope, state=body.get("state", {}), events=body.get("events", []))

    async def fetch_state(self) -> dict[str, Any]:
        return await asyncio.to_thread(
            _request, self.http, "GET", self._url("/state"),
            headers=self._headers(), timeout=self.timeout,
        )


def _request(http: requests.Session, method: str, url: str, timeout: float = SHAPESHIPS_INTENT_TIMEOUT,
             **kwargs) -> dict[str, Any]:
    """
    Perform one API call and decode the JSON body.

    Raises:
        IntentRejected: 4xx with an error_code body
        IntentTransportError: connection failure, timeout, 5xx, or a body that isn't JSON
    """
    try:
        resp = http.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        logger.warning(f"{method} {url} failed: {e}")
        raise IntentTransportError(str(e)) from e

    try:
        body = resp.json()
    except ValueError as e:
        raise IntentTransportError(f"{method} {url}: invalid JSON (HTTP {resp.status_code})") from e

    if resp.status_code >= 500:
        raise IntentTransportError(f"{method} {url}: HTTP {resp.status_code}")
    if resp.status_code >= 400:
        code = body.get("error_code") if isinstance(body, dict) else None
        if not code:
            raise IntentTransportError(f"{method} {url}: HTTP {resp.status_code}")
        raise IntentRejected(code, body.get("error", ""))
    if not isinstance(body, dict):
        raise IntentTransportError(f"{method} {url}: unexpected response body")
    return body
