"""
Connection-pooled Nostr relay client with fan-out query and publish.

A [RelayPool][dvmkit.core.relay_pool.RelayPool] holds one
[RelayEndpoint][dvmkit.core.relay_pool.RelayEndpoint] per configured relay
URL. Every operation fans out to all endpoints concurrently (one
``asyncio.Task`` each) and aggregates what comes back within a single time
budget:

- [query()][dvmkit.core.relay_pool.RelayPool.query] merges the events of
  every endpoint that answered, drops events that fail signature
  verification or do not match the filter, de-duplicates by id and sorts
  newest first.
- [publish()][dvmkit.core.relay_pool.RelayPool.publish] returns a
  per-endpoint [PublishReport][dvmkit.models.job.PublishReport] and only
  fails when fewer than ``min_successes`` relays accepted the event.
- [subscribe()][dvmkit.core.relay_pool.RelayPool.subscribe] keeps a
  subscription open on every endpoint and pushes each new valid event to a
  callback once, until the returned
  [Subscription][dvmkit.core.relay_pool.Subscription] is closed.

Endpoints connect lazily on first use and keep their connection across
calls. Tasks still running when the budget expires are cancelled in the
background, so the caller never waits longer than the timeout.

Examples:
    ```python
    pool = RelayPool.from_dict({"relays": ["wss://relay.damus.io", "wss://nos.lol"]})

    async with pool:
        events = await pool.query([Filter(kinds={1}, limit=20)])
        report = await pool.publish(event)
        report.summary()  # 'published to 2 of 2 relays'
    ```

See Also:
    [RelayTransport][dvmkit.utils.transport.RelayTransport]: The per-endpoint
        connection interface; inject fakes through ``transport_factory``.
    [JobProtocol][dvmkit.services.job_protocol.JobProtocol]: Main consumer.
"""

from __future__ import annotations

import asyncio
import functools
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from dvmkit.models.constants import RelayState
from dvmkit.models.event import Event
from dvmkit.models.filter import Filter, matches_any
from dvmkit.models.job import PublishOutcome, PublishReport
from dvmkit.models.relay import Relay
from dvmkit.nips import nip01
from dvmkit.utils.transport import RelayTransport, create_transport

from .exceptions import (
    PublishError,
    RelayConnectionError,
    RelayRejectedError,
    RelayTimeoutError,
    RequestError,
    RequestTimeoutError,
    ValidationError,
)
from .logger import Logger
from .metrics import RELAY_OPERATION_DURATION_SECONDS, RELAY_OPERATIONS_TOTAL, MetricsConfig
from .yaml import load_yaml


T = TypeVar("T")

TransportFactory = Callable[[str], RelayTransport]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class RelayPoolConfig(BaseModel):
    """Relay pool configuration.

    Relay URLs are normalized through [Relay][dvmkit.models.relay.Relay];
    their order is the order of outcomes in every
    [PublishReport][dvmkit.models.job.PublishReport].

    Attributes:
        relays: Ordered relay URLs (at least one, no duplicates).
        request_timeout_ms: Default time budget of one query or publish.
        min_successes: Relays that must accept a publish for it to succeed.
        verify_events: Drop queried events whose id or signature is invalid.
        metrics: Prometheus recording switch.
    """

    relays: list[str] = Field(min_length=1, description="Ordered relay URLs")
    request_timeout_ms: int = Field(
        default=10_000, ge=1, le=600_000, description="Default operation budget (ms)"
    )
    min_successes: int = Field(default=1, ge=1, description="Publish success threshold")
    verify_events: bool = Field(default=True, description="Verify queried events")
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("relays")
    @classmethod
    def normalize_relays(cls, v: list[str]) -> list[str]:
        """Validate and normalize relay URLs, rejecting duplicates."""
        urls: list[str] = []
        for raw in v:
            try:
                url = Relay(raw).url
            except (ValueError, TypeError) as e:
                raise ValueError(f"Invalid relay URL '{raw}': {e}") from e
            if url in urls:
                raise ValueError(f"Duplicate relay URL '{url}'")
            urls.append(url)
        return urls

    @model_validator(mode="after")
    def validate_min_successes(self) -> RelayPoolConfig:
        """Ensure the publish threshold is reachable."""
        if self.min_successes > len(self.relays):
            raise ValueError(
                f"min_successes ({self.min_successes}) must be <= number of relays "
                f"({len(self.relays)})"
            )
        return self

    @property
    def request_timeout(self) -> float:
        """Default operation budget in seconds."""
        return self.request_timeout_ms / 1000


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------


class RelayEndpoint:
    """One relay URL, its lazily created transport and its connection state.

    State machine::

        UNCONNECTED -> CONNECTING -> CONNECTED -> CLOSED
                        |
                        +-> UNCONNECTED   (handshake failed, next call retries)
                        +-> CLOSED        (closed mid-handshake, connection discarded)

    A connection that drops while CONNECTED moves the endpoint to CLOSED; it
    is never silently reopened. Concurrent first use shares one handshake.
    """

    def __init__(self, relay: Relay, transport_factory: TransportFactory) -> None:
        self.relay = relay
        self._transport_factory = transport_factory
        self._transport: RelayTransport | None = None
        self._state = RelayState.UNCONNECTED
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"RelayEndpoint(url={self.url!r}, state={self._state.value})"

    @property
    def url(self) -> str:
        return self.relay.url

    @property
    def state(self) -> RelayState:
        self._detect_drop()
        return self._state

    def _detect_drop(self) -> None:
        if (
            self._state == RelayState.CONNECTED
            and self._transport is not None
            and not self._transport.is_connected
        ):
            self._state = RelayState.CLOSED

    async def connect(self, timeout: float) -> RelayTransport:  # noqa: ASYNC109
        """Return the open transport, performing the handshake on first use.

        Raises:
            RelayConnectionError: The endpoint is closed, the connection
                dropped, or the relay is unreachable.
            RelayTimeoutError: The handshake did not finish in time.
        """
        async with self._lock:
            self._detect_drop()
            if self._state == RelayState.CLOSED:
                raise RelayConnectionError(f"{self.url} is closed")
            if self._state == RelayState.CONNECTED and self._transport is not None:
                return self._transport

            self._state = RelayState.CONNECTING
            transport = self._transport_factory(self.url)
            try:
                await transport.connect(timeout)
            except BaseException:
                if self._state == RelayState.CONNECTING:
                    self._state = RelayState.UNCONNECTED
                await transport.close()
                raise
            if self._state == RelayState.CLOSED:
                await transport.close()
                raise RelayConnectionError(f"{self.url} was closed during the handshake")
            self._transport = transport
            self._state = RelayState.CONNECTED
            return transport

    async def query(self, filters: Sequence[Filter], timeout: float) -> list[dict[str, Any]]:  # noqa: ASYNC109
        transport = await self.connect(timeout)
        try:
            return await transport.query(filters, timeout)
        finally:
            self._detect_drop()

    async def publish(self, event: Event, timeout: float) -> tuple[bool, str]:  # noqa: ASYNC109
        transport = await self.connect(timeout)
        try:
            return await transport.publish(event)
        finally:
            self._detect_drop()

    async def subscribe(
        self,
        filters: Sequence[Filter],
        on_event: Callable[[dict[str, Any]], None],
        on_eose: Callable[[], None],
        timeout: float,  # noqa: ASYNC109
    ) -> str:
        transport = await self.connect(timeout)
        try:
            return await transport.subscribe(filters, on_event, on_eose)
        finally:
            self._detect_drop()

    async def unsubscribe(self, subscription_id: str) -> None:
        if self._transport is not None:
            await self._transport.unsubscribe(subscription_id)

    async def close(self) -> None:
        """Close the transport and move to CLOSED. Idempotent."""
        self._state = RelayState.CLOSED
        if self._transport is not None:
            transport, self._transport = self._transport, None
            await transport.close()


class Subscription:
    """Live subscription returned by [RelayPool.subscribe()][dvmkit.core.relay_pool.RelayPool.subscribe].

    Every relay that accepted the subscription keeps streaming into it;
    each event reaches ``on_event`` at most once, after signature and
    filter checks. Close it explicitly or use it as an async context
    manager. Closing the pool closes every subscription still open.
    """

    def __init__(
        self,
        pool: RelayPool,
        filters: Sequence[Filter],
        on_event: Callable[[Event], None],
        on_eose: Callable[[str], None] | None,
    ) -> None:
        self._pool = pool
        self.filters = tuple(filters)
        self._on_event = on_event
        self._on_eose = on_eose
        self._attached: dict[str, tuple[RelayEndpoint, str]] = {}
        self._seen: set[str] = set()
        self._closed = False

    def __repr__(self) -> str:
        return f"Subscription(relays={len(self._attached)}, closed={self._closed})"

    @property
    def relays(self) -> list[str]:
        """Relays currently streaming into this subscription."""
        return list(self._attached)

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Close the subscription on every relay. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._pool._subscriptions.discard(self)
        attached = list(self._attached.values())
        self._attached.clear()
        results = await asyncio.gather(
            *(ep.unsubscribe(sub_id) for ep, sub_id in attached), return_exceptions=True
        )
        for (ep, _sub_id), result in zip(attached, results, strict=True):
            if isinstance(result, Exception):
                self._pool._logger.debug("unsubscribe_failed", relay=ep.url, error=str(result))

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        await self.close()

    def _attach(self, endpoint: RelayEndpoint, subscription_id: str) -> None:
        self._attached[endpoint.url] = (endpoint, subscription_id)

    def _deliver(self, relay: str, raw: dict[str, Any]) -> None:
        if self._closed:
            return
        event = self._pool._accept(raw, self.filters, relay)
        if event is None or event.id in self._seen:
            return
        self._seen.add(event.id)
        try:
            self._on_event(event)
        except Exception as e:
            self._pool._logger.warning(
                "subscription_callback_failed", relay=relay, event_id=event.id, error=str(e)
            )

    def _end_of_stored(self, relay: str) -> None:
        if self._closed or self._on_eose is None:
            return
        try:
            self._on_eose(relay)
        except Exception as e:
            self._pool._logger.warning("subscription_callback_failed", relay=relay, error=str(e))


class _FanOut(Generic[T]):
    """Outcome of one fan-out: per-endpoint results, errors and stragglers."""

    __slots__ = ("errors", "pending", "results")

    def __init__(self) -> None:
        self.results: dict[str, T] = {}
        self.errors: dict[str, BaseException] = {}
        self.pending: list[str] = []


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


class RelayPool:
    """Fan-out client over a fixed, ordered set of relay endpoints.

    The pool is created disconnected; endpoints connect on first use.
    Construct it once and pass it explicitly to whatever needs relay
    access (there is no process-wide instance).

    Args:
        config: Pool configuration.
        transport_factory: Builds the transport for one URL. Defaults to
            [create_transport()][dvmkit.utils.transport.create_transport]
            (single-relay nostr-sdk client).
    """

    def __init__(
        self,
        config: RelayPoolConfig,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config
        factory = transport_factory or create_transport
        self._endpoints = [RelayEndpoint(Relay(url), factory) for url in config.relays]
        self._background: set[asyncio.Task[Any]] = set()
        self._subscriptions: set[Subscription] = set()
        self._closed = False
        self._logger = Logger("relay_pool")

    @classmethod
    def from_yaml(cls, config_path: str, **kwargs: Any) -> RelayPool:
        """Create a pool from a YAML file (see [load_yaml()][dvmkit.core.yaml.load_yaml])."""
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any], **kwargs: Any) -> RelayPool:
        """Create a pool from a dictionary matching [RelayPoolConfig][dvmkit.core.relay_pool.RelayPoolConfig]."""
        return cls(config=RelayPoolConfig(**config_dict), **kwargs)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> RelayPoolConfig:
        """The pool configuration (read-only)."""
        return self._config

    @property
    def relays(self) -> list[str]:
        """Configured relay URLs in order."""
        return [ep.url for ep in self._endpoints]

    @property
    def endpoints(self) -> list[RelayEndpoint]:
        return list(self._endpoints)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def states(self) -> dict[str, RelayState]:
        """Current connection state of every endpoint, in configured order."""
        return {ep.url: ep.state for ep in self._endpoints}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self, timeout: float | None = None) -> int:  # noqa: ASYNC109
        """Open every endpoint now instead of on first use.

        Returns:
            Number of endpoints connected.

        Raises:
            RelayConnectionError: If no endpoint could connect.
        """
        self._ensure_open()
        budget = self._budget(timeout)
        fan = await self._fan_out("connect", lambda ep: ep.connect(budget), budget)
        for url, error in fan.errors.items():
            self._logger.warning("relay_connect_failed", relay=url, error=str(error))
        if not fan.results:
            raise RelayConnectionError(f"could not connect to any of {len(self._endpoints)} relays")
        self._logger.info(
            "pool_connected",
            relays_ok=len(fan.results),
            relays_failed=len(fan.errors) + len(fan.pending),
        )
        return len(fan.results)

    async def close(self) -> None:
        """Cancel background work and close every endpoint.

        Idempotent. After close, operations raise
        [RelayConnectionError][dvmkit.core.exceptions.RelayConnectionError].
        """
        if self._closed:
            return
        self._closed = True

        for subscription in list(self._subscriptions):
            await subscription.close()

        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.wait(list(self._background))

        results = await asyncio.gather(
            *(ep.close() for ep in self._endpoints), return_exceptions=True
        )
        for ep, result in zip(self._endpoints, results, strict=True):
            if isinstance(result, Exception):
                self._logger.warning("relay_close_failed", relay=ep.url, error=str(result))
        self._logger.info("pool_closed", relays=len(self._endpoints))

    async def __aenter__(self) -> RelayPool:
        self._ensure_open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"RelayPool(relays={len(self._endpoints)}, closed={self._closed})"

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def query(
        self,
        filters: Filter | Iterable[Filter],
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[Event]:
        """Query every endpoint and merge the results.

        Args:
            filters: One filter or several (OR-ed, as in a single ``REQ``).
            timeout: Budget in seconds; defaults to ``request_timeout_ms``.

        Returns:
            Unique, valid, matching events sorted by ``created_at``
            descending, then id ascending.

        Raises:
            RequestTimeoutError: No endpoint answered before the deadline
                while at least one was still pending.
            RequestError: Every endpoint completed with an error.
            RelayConnectionError: The pool is closed.
            ValidationError: No filter or a non-positive timeout was given.
        """
        self._ensure_open()
        filter_list = _as_filter_list(filters)
        budget = self._budget(timeout)

        fan = await self._fan_out("query", lambda ep: ep.query(filter_list, budget), budget)

        if not fan.results:
            if fan.pending:
                raise RequestTimeoutError(
                    f"no relay answered within {budget}s "
                    f"({len(fan.pending)} pending, {len(fan.errors)} failed)"
                )
            raise RequestError(
                f"query failed on all {len(fan.errors)} relays: {_describe(fan.errors)}",
                fan.errors,
            )

        merged: dict[str, Event] = {}
        dropped = 0
        for url, raw_events in fan.results.items():
            for raw in raw_events:
                event = self._accept(raw, filter_list, url)
                if event is None:
                    dropped += 1
                else:
                    merged.setdefault(event.id, event)

        failed = len(fan.errors) + len(fan.pending)
        if failed:
            self._logger.warning(
                "query_partial_failure",
                relays_ok=len(fan.results),
                relays_failed=failed,
                failed=",".join([*fan.errors, *fan.pending]),
            )
        self._logger.debug(
            "query_completed", relays_ok=len(fan.results), events=len(merged), dropped=dropped
        )
        return sorted(merged.values(), key=lambda e: (-e.created_at, e.id))

    async def publish(self, event: Event, timeout: float | None = None) -> PublishReport:  # noqa: ASYNC109
        """Send *event* to every endpoint and wait for their ``OK``.

        Args:
            event: Signed event to publish.
            timeout: Budget in seconds; defaults to ``request_timeout_ms``.

        Returns:
            One outcome per configured endpoint, in configured order.

        Raises:
            PublishError: Fewer than ``min_successes`` endpoints accepted the
                event. Carries per-relay ``causes`` and the full ``report``.
            RelayConnectionError: The pool is closed.
        """
        self._ensure_open()
        budget = self._budget(timeout)

        fan = await self._fan_out("publish", lambda ep: ep.publish(event, budget), budget)

        causes: dict[str, BaseException] = {}
        outcomes: list[PublishOutcome] = []
        for ep in self._endpoints:
            url = ep.url
            if url in fan.results:
                accepted, message = fan.results[url]
                if accepted:
                    outcomes.append(PublishOutcome(url, True, None, message))
                    continue
                causes[url] = RelayRejectedError(message or "rejected")
            elif url in fan.errors:
                causes[url] = fan.errors[url]
            else:
                causes[url] = RelayTimeoutError(f"{url} did not answer within {budget}s")
            outcomes.append(
                PublishOutcome(url, False, str(causes[url]), fan.results.get(url, (False, ""))[1])
            )

        report = PublishReport(event.id, tuple(outcomes))
        if report.succeeded < self._config.min_successes:
            self._logger.error(
                "publish_failed",
                event_id=event.id,
                relays_ok=report.succeeded,
                relays_failed=report.failed,
                required=self._config.min_successes,
            )
            raise PublishError(
                f"event {event.id} {report.summary()}, {self._config.min_successes} required: "
                f"{_describe(causes)}",
                causes,
                report,
            )
        if report.failed:
            self._logger.warning(
                "publish_partial_failure",
                event_id=event.id,
                relays_ok=report.succeeded,
                relays_failed=report.failed,
                failed=",".join(causes),
            )
        else:
            self._logger.debug("publish_completed", event_id=event.id, relays_ok=report.succeeded)
        return report

    async def subscribe(
        self,
        filters: Filter | Iterable[Filter],
        on_event: Callable[[Event], None],
        on_eose: Callable[[str], None] | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> Subscription:
        """Open a live subscription on every endpoint.

        Stored events arrive first, then ``on_eose(relay_url)`` is called
        once per relay, then new events keep arriving until the returned
        subscription is closed. Callbacks run on the event loop and must
        not block; an exception raised by a callback is logged and the
        subscription stays open.

        Args:
            filters: One filter or several (OR-ed).
            on_event: Called once per unique, valid, matching event.
            on_eose: Called with the relay URL when that relay has sent
                its stored events.
            timeout: Budget in seconds for opening the subscription.

        Raises:
            RequestTimeoutError: No endpoint accepted the subscription
                before the deadline while at least one was still pending.
            RequestError: Every endpoint failed to subscribe.
            RelayConnectionError: The pool is closed.
            ValidationError: No filter or a non-positive timeout was given.
        """
        self._ensure_open()
        filter_list = _as_filter_list(filters)
        budget = self._budget(timeout)
        subscription = Subscription(self, filter_list, on_event, on_eose)

        def open_on(ep: RelayEndpoint) -> Awaitable[str]:
            return ep.subscribe(
                filter_list,
                functools.partial(subscription._deliver, ep.url),
                functools.partial(subscription._end_of_stored, ep.url),
                budget,
            )

        fan = await self._fan_out("subscribe", open_on, budget)
        for ep in self._endpoints:
            if ep.url in fan.results:
                subscription._attach(ep, fan.results[ep.url])

        if not fan.results:
            await subscription.close()
            if fan.pending:
                raise RequestTimeoutError(
                    f"no relay accepted the subscription within {budget}s "
                    f"({len(fan.pending)} pending, {len(fan.errors)} failed)"
                )
            raise RequestError(
                f"subscription failed on all {len(fan.errors)} relays: {_describe(fan.errors)}",
                fan.errors,
            )

        if self._closed:
            await subscription.close()
            raise RelayConnectionError("relay pool is closed")
        self._subscriptions.add(subscription)

        failed = len(fan.errors) + len(fan.pending)
        if failed:
            self._logger.warning(
                "subscribe_partial_failure",
                relays_ok=len(fan.results),
                relays_failed=failed,
                failed=",".join([*fan.errors, *fan.pending]),
            )
        self._logger.debug(
            "subscription_opened", relays_ok=len(fan.results), filters=len(filter_list)
        )
        return subscription

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise RelayConnectionError("relay pool is closed")

    def _budget(self, timeout: float | None) -> float:  # noqa: ASYNC109
        if timeout is None:
            return self._config.request_timeout
        if timeout <= 0:
            raise ValidationError(f"timeout must be > 0, got {timeout}")
        return float(timeout)

    async def _fan_out(
        self,
        operation: str,
        call: Callable[[RelayEndpoint], Awaitable[T]],
        budget: float,
    ) -> _FanOut[T]:
        """Run *call* on every endpoint concurrently, waiting at most *budget* seconds."""
        tasks: dict[asyncio.Task[T], RelayEndpoint] = {
            asyncio.ensure_future(call(ep)): ep for ep in self._endpoints
        }
        start = time.monotonic()
        try:
            _done, pending = await asyncio.wait(tasks, timeout=budget)
        except asyncio.CancelledError:
            for task in tasks:
                self._abandon(task)
            raise
        duration = time.monotonic() - start

        fan: _FanOut[T] = _FanOut()
        for task, ep in tasks.items():
            if task in pending:
                self._abandon(task)
                fan.pending.append(ep.url)
                self._record(ep.url, operation, "timeout")
                continue
            error = task.exception() if not task.cancelled() else asyncio.CancelledError()
            if error is not None:
                fan.errors[ep.url] = error
                self._record(ep.url, operation, "error")
                self._logger.debug(
                    "relay_operation_failed", relay=ep.url, operation=operation, error=str(error)
                )
            else:
                fan.results[ep.url] = task.result()
                self._record(ep.url, operation, "success")

        if self._config.metrics.enabled:
            RELAY_OPERATION_DURATION_SECONDS.labels(operation=operation).observe(duration)
        return fan

    def _abandon(self, task: asyncio.Task[Any]) -> None:
        """Cancel *task* and keep a reference until it finishes."""
        task.cancel()
        self._background.add(task)
        task.add_done_callback(self._reap)

    def _reap(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._logger.debug("background_task_failed", error=str(task.exception()))

    def _record(self, relay: str, operation: str, outcome: str) -> None:
        if self._config.metrics.enabled:
            RELAY_OPERATIONS_TOTAL.labels(relay=relay, operation=operation, outcome=outcome).inc()

    def _accept(self, raw: Any, filters: Sequence[Filter], relay: str) -> Event | None:
        """Convert one raw event from *relay*, or ``None`` if it must be dropped."""
        try:
            event = Event.from_dict(raw)
        except (TypeError, ValueError) as e:
            self._logger.debug("event_malformed", relay=relay, error=str(e))
            return None
        if self._config.verify_events and not nip01.verify_event(event):
            self._logger.debug("event_invalid_signature", relay=relay, event_id=event.id)
            return None
        if not matches_any(filters, event):
            self._logger.debug("event_outside_filter", relay=relay, event_id=event.id)
            return None
        return event


def _as_filter_list(filters: Filter | Iterable[Filter]) -> list[Filter]:
    filter_list = [filters] if isinstance(filters, Filter) else list(filters)
    if not filter_list:
        raise ValidationError("at least one filter is required")
    return filter_list


def _describe(causes: dict[str, BaseException]) -> str:
    return "; ".join(f"{url}: {type(e).__name__}: {e}" for url, e in causes.items())
