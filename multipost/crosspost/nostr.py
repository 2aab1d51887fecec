"""Nostr publishing: sign a NIP-01 text note and send it to relays over WebSocket."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from multipost.crosspost.base import ErrorKind, PlatformKind, PublishFailure, PublishSuccess
from multipost.crosspost.nostr_keys import (
    build_text_note,
    decode_private_key,
    encode_npub,
    public_key_hex,
)
from multipost.exceptions import CredentialValidationError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from websockets.asyncio.client import ClientConnection

    from multipost.crosspost.base import PublishOutcome
    from multipost.schemas.credentials import NostrCredential

logger = logging.getLogger(__name__)

DEFAULT_RELAYS = (
    "wss://relay.damus.io",
    "wss://nos.lol",
    "wss://relay.snort.social",
    "wss://relay.nostr.band",
)
DEFAULT_TIMEOUT = 10.0
DEFAULT_RELAY_TIMEOUT = 8.0
CLOSE_TIMEOUT = 2.0


@dataclass(frozen=True)
class RelayResult:
    """What one relay did with a submitted event."""

    relay: str
    accepted: bool
    answered: bool
    message: str = ""


@asynccontextmanager
async def _relay_connection(relay: str) -> AsyncIterator[ClientConnection]:
    """Open a relay connection, closed normally on success.

    Errors and cancellation abort the transport without waiting for a close frame.
    """
    websocket = await connect(relay, open_timeout=None, close_timeout=CLOSE_TIMEOUT)
    try:
        yield websocket
        await websocket.close()
    except BaseException:
        websocket.transport.abort()
        raise


def _parse_message(raw: str | bytes) -> list[Any] | None:
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, list) or not data:
        return None
    return data


class NostrPublisher:
    """Publisher that broadcasts a signed event to a set of relays."""

    platform: PlatformKind = PlatformKind.NOSTR

    def __init__(
        self,
        relays: Sequence[str] = DEFAULT_RELAYS,
        default_timeout: float = DEFAULT_TIMEOUT,
        relay_timeout: float = DEFAULT_RELAY_TIMEOUT,
    ) -> None:
        self.relays = tuple(relays) or DEFAULT_RELAYS
        self.default_timeout = default_timeout
        self.relay_timeout = relay_timeout

    def relays_for(self, credential: NostrCredential) -> tuple[str, ...]:
        """Account relays when configured, otherwise the publisher's defaults."""
        return tuple(credential.relays) or self.relays

    async def _send_event(self, relay: str, event: dict[str, Any]) -> RelayResult:
        """Submit an event to one relay and wait for its OK message.

        The whole exchange is bounded by ``relay_timeout``. On timeout or
        cancellation the socket is aborted without a closing handshake.
        """
        try:
            async with asyncio.timeout(self.relay_timeout):
                async with _relay_connection(relay) as websocket:
                    await websocket.send(json.dumps(["EVENT", event]))
                    async for raw in websocket:
                        message = _parse_message(raw)
                        if message is None:
                            continue
                        if message[0] == "OK" and len(message) >= 3 and message[1] == event["id"]:
                            reason = str(message[3]) if len(message) >= 4 else ""
                            return RelayResult(relay, bool(message[2]), True, reason)
                        if message[0] == "NOTICE" and len(message) >= 2:
                            logger.info("Notice from %s: %s", relay, message[1])
        except TimeoutError:
            message = f"no acknowledgment within {self.relay_timeout:g}s"
            return RelayResult(relay, False, False, message)
        except (OSError, WebSocketException) as exc:
            logger.warning("Relay %s connection error: %s", relay, exc)
            return RelayResult(relay, False, False, f"connection error: {exc}")
        return RelayResult(relay, False, False, "connection closed before acknowledgment")

    async def _probe(self, relay: str) -> RelayResult:
        """Open a subscription on one relay and wait for any reply."""
        subscription_id = secrets.token_hex(8)
        try:
            async with asyncio.timeout(self.relay_timeout):
                async with _relay_connection(relay) as websocket:
                    await websocket.send(
                        json.dumps(["REQ", subscription_id, {"kinds": [1], "limit": 1}])
                    )
                    await websocket.recv()
                    await websocket.send(json.dumps(["CLOSE", subscription_id]))
                    return RelayResult(relay, True, True)
        except TimeoutError:
            return RelayResult(relay, False, False, f"no reply within {self.relay_timeout:g}s")
        except (OSError, WebSocketException) as exc:
            return RelayResult(relay, False, False, f"connection error: {exc}")

    async def publish(self, credential: NostrCredential, text: str) -> PublishOutcome:
        """Sign a text note and publish it; success means at least one relay accepted it."""
        try:
            private_key = decode_private_key(credential.private_key)
        except CredentialValidationError as exc:
            return PublishFailure(ErrorKind.INVALID_CREDENTIAL, str(exc))

        event = build_text_note(private_key, text)
        relays = self.relays_for(credential)
        logger.debug("Publishing event %s to %d relays", event["id"], len(relays))

        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(self._send_event(relay, event)) for relay in relays]
        results = [task.result() for task in tasks]

        accepted = [r.relay for r in results if r.accepted]
        if accepted:
            logger.info(
                "Event %s accepted by %d of %d relays", event["id"], len(accepted), len(results)
            )
            return PublishSuccess(remote_id=event["id"])

        errors = "; ".join(f"{r.relay}: {r.message or 'rejected'}" for r in results)
        rejected = any(r.answered for r in results)
        error_kind = ErrorKind.MALFORMED_REQUEST if rejected else ErrorKind.NETWORK
        return PublishFailure(error_kind, f"No relay accepted the event ({errors})")

    async def verify(self, credential: NostrCredential) -> PublishOutcome:
        """Check the key and that at least one relay answers."""
        try:
            private_key = decode_private_key(credential.private_key)
        except CredentialValidationError as exc:
            return PublishFailure(ErrorKind.INVALID_CREDENTIAL, str(exc))

        relays = self.relays_for(credential)
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(self._probe(relay)) for relay in relays]
        results = [task.result() for task in tasks]

        if not any(r.accepted for r in results):
            errors = "; ".join(f"{r.relay}: {r.message}" for r in results)
            return PublishFailure(ErrorKind.NETWORK, f"No relay reachable ({errors})")
        npub = encode_npub(bytes.fromhex(public_key_hex(private_key)))
        return PublishSuccess(remote_id=npub)
