"""
Pytest configuration and shared fixtures for dvmkit tests.

Provides:
- Deterministic and generated Nostr keypairs
- A signed-event factory
- An in-memory relay network whose transports plug into RelayPool
  through ``transport_factory``
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import pytest
from nostr_sdk import Keys

from dvmkit.core.relay_pool import RelayPool, RelayPoolConfig
from dvmkit.models import Event, Filter
from dvmkit.nips import nip01


# Valid secp256k1 test key (DO NOT USE IN PRODUCTION)
VALID_HEX_KEY = (
    "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"  # pragma: allowlist secret
)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Keys and Events
# ============================================================================


@pytest.fixture
def keys() -> Keys:
    """Deterministic keypair parsed from VALID_HEX_KEY."""
    return Keys.parse(VALID_HEX_KEY)


@pytest.fixture
def other_keys() -> Keys:
    return Keys.generate()


@pytest.fixture
def provider_keys() -> Keys:
    """Keypair of a simulated service provider."""
    return Keys.generate()


@pytest.fixture
def make_event(keys: Keys) -> Callable[..., Event]:
    """Factory for signed events authored by ``keys`` unless told otherwise."""

    def _make(
        kind: int = 1,
        content: str = "hello",
        created_at: int = 1_700_000_000,
        tags: Iterable[Iterable[str]] = (),
        signer: Keys | None = None,
    ) -> Event:
        signer = signer or keys
        unsigned = nip01.build_unsigned(
            signer.public_key().to_hex(), kind, tags=tags, content=content, created_at=created_at
        )
        return nip01.sign_event(unsigned, signer)

    return _make


# ============================================================================
# In-memory Relay Network
# ============================================================================


@dataclass
class FakeRelay:
    """Scripted behaviour and stored events of one fake relay."""

    events: list[dict[str, Any]] = field(default_factory=list)
    published: list[dict[str, Any]] = field(default_factory=list)
    connect_error: BaseException | None = None
    query_error: BaseException | None = None
    publish_error: BaseException | None = None
    subscribe_error: BaseException | None = None
    accept: bool = True
    message: str = ""
    delay: float = 0.0
    connects: int = 0
    closes: int = 0
    queries: list[list[Filter]] = field(default_factory=list)
    unsubscribes: int = 0


class FakeTransport:
    """[RelayTransport][dvmkit.utils.transport.RelayTransport] backed by a FakeRelay.

    Queries and subscriptions return every stored event regardless of the
    filters, like an untrusted relay would; the pool is expected to filter
    locally. Live subscriptions receive whatever is pushed to the transport.
    """

    def __init__(self, url: str, relay: FakeRelay) -> None:
        self.url = url
        self.relay = relay
        self._connected = False
        self.live: dict[str, Callable[[dict[str, Any]], None]] = {}
        self._subscribed = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self, timeout: float) -> None:  # noqa: ASYNC109
        self.relay.connects += 1
        if self.relay.delay:
            await asyncio.sleep(self.relay.delay)
        if self.relay.connect_error is not None:
            raise self.relay.connect_error
        self._connected = True

    async def query(self, filters: Any, timeout: float) -> list[dict[str, Any]]:  # noqa: ASYNC109
        self.relay.queries.append(list(filters))
        if self.relay.query_error is not None:
            raise self.relay.query_error
        return [dict(e) for e in self.relay.events]

    async def publish(self, event: Event) -> tuple[bool, str]:
        if self.relay.publish_error is not None:
            raise self.relay.publish_error
        if self.relay.accept:
            self.relay.published.append(event.to_dict())
            self.relay.events.append(event.to_dict())
        return self.relay.accept, self.relay.message

    async def subscribe(
        self,
        filters: Any,
        on_event: Callable[[dict[str, Any]], None],
        on_eose: Callable[[], None],
    ) -> str:
        if self.relay.subscribe_error is not None:
            raise self.relay.subscribe_error
        self._subscribed += 1
        subscription_id = f"sub{self._subscribed}"
        self.live[subscription_id] = on_event
        for raw in list(self.relay.events):
            on_event(dict(raw))
        on_eose()
        return subscription_id

    async def unsubscribe(self, subscription_id: str) -> None:
        if self.live.pop(subscription_id, None) is not None:
            self.relay.unsubscribes += 1

    def push(self, raw: dict[str, Any]) -> None:
        """Deliver *raw* to every live subscription."""
        for on_event in list(self.live.values()):
            on_event(dict(raw))

    async def close(self) -> None:
        self._connected = False
        self.live.clear()
        self.relay.closes += 1

    def drop(self) -> None:
        """Simulate the relay closing the connection."""
        self._connected = False


class FakeNetwork:
    """URL-addressed set of FakeRelays plus the transports created for them."""

    def __init__(self) -> None:
        self.relays: dict[str, FakeRelay] = {}
        self.transports: list[FakeTransport] = []

    def relay(self, url: str) -> FakeRelay:
        return self.relays.setdefault(url, FakeRelay())

    def factory(self, url: str) -> FakeTransport:
        transport = FakeTransport(url, self.relay(url))
        self.transports.append(transport)
        return transport

    def broadcast(self, event: Event) -> None:
        """Store *event* on every relay, as if someone else published it.

        Live subscriptions on connected transports receive it immediately.
        """
        for relay in self.relays.values():
            relay.events.append(event.to_dict())
        for transport in self.transports:
            if transport.is_connected:
                transport.push(event.to_dict())


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def relay_urls() -> list[str]:
    return [f"wss://relay{i}.example.com" for i in range(1, 4)]


@pytest.fixture
def make_pool(network: FakeNetwork) -> Callable[..., RelayPool]:
    """Factory for pools wired to the fake network."""

    def _make(urls: list[str], **config: Any) -> RelayPool:
        for url in urls:
            network.relay(url)
        return RelayPool(RelayPoolConfig(relays=urls, **config), transport_factory=network.factory)

    return _make


@pytest.fixture
def pool(make_pool: Callable[..., RelayPool], relay_urls: list[str]) -> RelayPool:
    return make_pool(relay_urls, request_timeout_ms=2000)
