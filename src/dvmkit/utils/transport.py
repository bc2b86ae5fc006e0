"""Relay transport: one nostr-sdk client bound to a single relay.

[RelayTransport][dvmkit.utils.transport.RelayTransport] is the seam between
[RelayPool][dvmkit.core.relay_pool.RelayPool] and the network. The pool only
ever calls ``connect``, ``query``, ``publish``, ``subscribe``,
``unsubscribe`` and ``close``; tests inject an in-memory implementation
through the pool's ``transport_factory``.

[ClientTransport][dvmkit.utils.transport.ClientTransport] is the production
implementation. It wraps a ``nostr_sdk.Client`` holding exactly one relay,
so that every relay of the pool succeeds or fails on its own:

```text
connect      Client.add_relay + Client.try_connect   (Output.success / failed)
query        Client.fetch_events, one per filter     (until EOSE or timeout)
publish      Client.send_event                       (Output.success / failed)
subscribe    Client.subscribe_with_id + handle_notifications
unsubscribe  Client.unsubscribe
close        Client.shutdown
```

Events cross the seam as wire dictionaries; conversion to and from
nostr-sdk objects goes through their JSON form.

Note:
    nostr-sdk reconnects dropped relays on its own. The pool's endpoint
    state machine never reopens a dropped connection, so an operation
    that finds the relay disconnected shuts the client down and the
    transport stays closed.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import secrets
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

from nostr_sdk import (
    Client,
    ClientBuilder,
    HandleNotification,
    RelayUrl,
    uniffi_set_event_loop,
)
from nostr_sdk import Event as NostrEvent
from nostr_sdk import Filter as NostrFilter

from dvmkit.core.exceptions import RelayConnectionError, RelayTimeoutError


if TYPE_CHECKING:
    from nostr_sdk import RelayMessage

    from dvmkit.models.event import Event
    from dvmkit.models.filter import Filter


DEFAULT_TIMEOUT: Final[float] = 10.0

_SHUTDOWN_TIMEOUT = 5.0
_SUB_ID_BYTES = 8


EventCallback = Callable[[dict[str, Any]], None]
EoseCallback = Callable[[], None]


logger = logging.getLogger(__name__)

# Silence nostr-sdk UniFFI callback stack traces (handled by our code)
logging.getLogger("nostr_sdk").setLevel(logging.CRITICAL)


@runtime_checkable
class RelayTransport(Protocol):
    """A single connection to one relay endpoint."""

    url: str

    @property
    def is_connected(self) -> bool: ...

    async def connect(self, timeout: float) -> None:  # noqa: ASYNC109
        """Open the connection.

        Raises:
            RelayConnectionError: The relay is unreachable.
            RelayTimeoutError: The handshake did not finish in *timeout* seconds.
        """
        ...

    async def query(
        self,
        filters: Sequence[Filter],
        timeout: float,  # noqa: ASYNC109
    ) -> list[dict[str, Any]]:
        """Collect stored events until ``EOSE`` and return the raw event objects."""
        ...

    async def publish(self, event: Event) -> tuple[bool, str]:
        """Send ``EVENT`` and return the relay's ``OK`` ``(accepted, message)``."""
        ...

    async def subscribe(
        self, filters: Sequence[Filter], on_event: EventCallback, on_eose: EoseCallback
    ) -> str:
        """Open a live subscription and return its id.

        *on_event* receives every raw event; *on_eose* is called once, after
        the stored events of every filter were delivered. The subscription
        stays open until [unsubscribe()][dvmkit.utils.transport.RelayTransport.unsubscribe].
        """
        ...

    async def unsubscribe(self, subscription_id: str) -> None:
        """Close a live subscription. Unknown ids are ignored."""
        ...

    async def close(self) -> None:
        """Close the connection. Idempotent."""
        ...


def create_client() -> Client:
    """Create a nostr-sdk client without a signer.

    Events reach the transport already signed, so the client never needs
    the requester keys.
    """
    return ClientBuilder().build()


def _to_sdk_filter(flt: Filter) -> NostrFilter:
    return NostrFilter.from_json(json.dumps(flt.to_dict()))


def _to_sdk_event(event: Event) -> NostrEvent:
    return NostrEvent.from_json(json.dumps(event.to_dict()))


@dataclass(slots=True)
class _Subscription:
    """Callbacks of one live subscription and the wire ids still owing ``EOSE``."""

    on_event: EventCallback
    on_eose: EoseCallback
    wire_ids: tuple[str, ...]
    awaiting_eose: set[str] = field(default_factory=set)


class _NotificationRouter(HandleNotification):
    """Hands every relay message of the client to its transport."""

    def __init__(self, transport: ClientTransport) -> None:
        self._transport = transport

    async def handle(self, relay_url: RelayUrl, subscription_id: str, event: NostrEvent) -> None:
        # Delivered through handle_msg, which also sees events the client already stored
        return

    async def handle_msg(self, relay_url: RelayUrl, msg: RelayMessage) -> None:
        self._transport.route(msg.as_json())


class ClientTransport:
    """nostr-sdk ``Client`` connected to exactly one relay.

    Args:
        url: Normalized ``ws://`` or ``wss://`` relay URL.
        client_factory: Builds the underlying client (defaults to
            [create_client()][dvmkit.utils.transport.create_client]).
    """

    def __init__(self, url: str, client_factory: Callable[[], Client] = create_client) -> None:
        self.url = url
        self._client_factory = client_factory
        self._client: Client | None = None
        self._relay_url: RelayUrl | None = None
        self._subscriptions: dict[str, _Subscription] = {}
        self._routes: dict[str, _Subscription] = {}
        self._notifier: asyncio.Task[Any] | None = None
        self._closed = False

    def __repr__(self) -> str:
        return f"ClientTransport(url={self.url!r}, connected={self.is_connected})"

    @property
    def is_connected(self) -> bool:
        return self._client is not None and not self._closed

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self, timeout: float = DEFAULT_TIMEOUT) -> None:  # noqa: ASYNC109
        if self._closed:
            raise RelayConnectionError(f"transport for {self.url} is closed")
        if self.is_connected:
            return

        client = self._client_factory()
        try:
            relay_url = RelayUrl.parse(self.url)
            await client.add_relay(relay_url)
            output = await client.try_connect(timedelta(seconds=timeout))
        except asyncio.CancelledError:
            await _shutdown(client)
            raise
        # nostr-sdk FFI errors share no common base class
        except Exception as e:
            await _shutdown(client)
            raise RelayConnectionError(f"connection to {self.url} failed: {e}") from e

        if relay_url not in output.success:
            error = str(output.failed.get(relay_url, "unknown error"))
            await _shutdown(client)
            logger.debug("connect_failed url=%s error=%s", self.url, error)
            if "timeout" in error.lower():
                raise RelayTimeoutError(f"connection to {self.url} timed out after {timeout}s")
            raise RelayConnectionError(f"connection to {self.url} failed: {error}")

        self._client = client
        self._relay_url = relay_url
        logger.debug("connected url=%s", self.url)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._subscriptions.clear()
        self._routes.clear()
        if self._notifier is not None:
            self._notifier.cancel()
            # the notification loop may end with any FFI error once the client is gone
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._notifier
            self._notifier = None
        if self._client is not None:
            client, self._client = self._client, None
            await _shutdown(client)
        logger.debug("closed url=%s", self.url)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def query(
        self,
        filters: Sequence[Filter],
        timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    ) -> list[dict[str, Any]]:
        client = await self._live_client()
        results = await asyncio.gather(
            *(client.fetch_events(_to_sdk_filter(f), timedelta(seconds=timeout)) for f in filters),
            return_exceptions=True,
        )
        events: list[dict[str, Any]] = []
        for result in results:
            if isinstance(result, BaseException):
                raise RelayConnectionError(f"query on {self.url} failed: {result}") from result
            events.extend(json.loads(event.as_json()) for event in result.to_vec())
        return events

    async def publish(self, event: Event) -> tuple[bool, str]:
        client = await self._live_client()
        try:
            output = await client.send_event(_to_sdk_event(event))
        # nostr-sdk FFI errors share no common base class
        except Exception as e:
            raise RelayConnectionError(f"publish to {self.url} failed: {e}") from e

        if self._relay_url in output.success:
            return True, ""
        if self._relay_url in output.failed:
            return False, str(output.failed[self._relay_url] or "")
        raise RelayConnectionError(f"{self.url} did not answer event {event.id}")

    async def subscribe(
        self, filters: Sequence[Filter], on_event: EventCallback, on_eose: EoseCallback
    ) -> str:
        client = await self._live_client()
        self._start_notifications(client)

        key = secrets.token_hex(_SUB_ID_BYTES)
        wire_ids = tuple(f"{key}-{i}" for i in range(len(filters)))
        subscription = _Subscription(on_event, on_eose, wire_ids, set(wire_ids))
        self._subscriptions[key] = subscription
        for wire_id in wire_ids:
            self._routes[wire_id] = subscription

        try:
            for wire_id, flt in zip(wire_ids, filters, strict=True):
                output = await client.subscribe_with_id(wire_id, _to_sdk_filter(flt))
                if self._relay_url not in output.success:
                    error = output.failed.get(self._relay_url, "not sent")
                    raise RelayConnectionError(f"subscription on {self.url} failed: {error}")
        except (RelayConnectionError, asyncio.CancelledError):
            await self.unsubscribe(key)
            raise
        # nostr-sdk FFI errors share no common base class
        except Exception as e:
            await self.unsubscribe(key)
            raise RelayConnectionError(f"subscription on {self.url} failed: {e}") from e

        logger.debug("subscribed url=%s subscription=%s filters=%d", self.url, key, len(filters))
        return key

    async def unsubscribe(self, subscription_id: str) -> None:
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            return
        for wire_id in subscription.wire_ids:
            self._routes.pop(wire_id, None)
        if self._client is None:
            return
        for wire_id in subscription.wire_ids:
            # best effort: the relay forgets subscriptions when the socket goes away
            with contextlib.suppress(Exception):
                await self._client.unsubscribe(wire_id)
        logger.debug("unsubscribed url=%s subscription=%s", self.url, subscription_id)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _live_client(self) -> Client:
        """Return the client, closing the transport if the relay dropped."""
        if not self.is_connected or self._client is None:
            raise RelayConnectionError(f"not connected to {self.url}")
        client = self._client
        try:
            relay = await client.relay(self._relay_url)
            connected = relay.is_connected()
        # nostr-sdk FFI errors share no common base class
        except Exception as e:
            await self.close()
            raise RelayConnectionError(f"{self.url}: {e}") from e
        if not connected:
            await self.close()
            raise RelayConnectionError(f"{self.url}: connection closed by relay")
        return client

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _start_notifications(self, client: Client) -> None:
        if self._notifier is not None and not self._notifier.done():
            return
        # Required for the async HandleNotification callbacks
        uniffi_set_event_loop(asyncio.get_running_loop())
        self._notifier = asyncio.create_task(
            client.handle_notifications(_NotificationRouter(self)),
            name=f"relay-notifications:{self.url}",
        )

    def route(self, raw: str) -> None:
        """Deliver one relay message to the live subscription it belongs to."""
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("invalid_json url=%s", self.url)
            return
        if not isinstance(message, list) or len(message) < 2:  # noqa: PLR2004
            return

        verb, wire_id = message[0], message[1]
        subscription = self._routes.get(wire_id) if isinstance(wire_id, str) else None
        if subscription is None:
            if verb == "NOTICE":
                logger.debug("notice url=%s message=%s", self.url, wire_id)
            return

        if verb == "EVENT":
            if len(message) > 2 and isinstance(message[2], dict):  # noqa: PLR2004
                subscription.on_event(message[2])
        elif verb == "EOSE":
            if wire_id in subscription.awaiting_eose:
                subscription.awaiting_eose.discard(wire_id)
                if not subscription.awaiting_eose:
                    subscription.on_eose()
        elif verb == "CLOSED":
            reason = message[2] if len(message) > 2 else ""  # noqa: PLR2004
            self._routes.pop(wire_id, None)
            logger.warning(
                "subscription_closed url=%s subscription=%s reason=%s", self.url, wire_id, reason
            )


async def _shutdown(client: Client) -> None:
    # nostr-sdk Rust FFI can raise arbitrary exception types during shutdown
    with contextlib.suppress(Exception):
        await asyncio.wait_for(client.shutdown(), timeout=_SHUTDOWN_TIMEOUT)


def create_transport(url: str) -> ClientTransport:
    """Default ``transport_factory`` used by the relay pool."""
    return ClientTransport(url)
