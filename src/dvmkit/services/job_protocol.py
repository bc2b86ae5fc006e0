"""NIP-90 job protocol: the customer side of a Data Vending Machine exchange.

A job moves through::

    DRAFT -> SEALED -> PUBLISHED -> AWAITING_RESULT -> RESOLVED | FAILED | TIMED_OUT

- [seal()][dvmkit.services.job_protocol.JobProtocol.seal] validates the
  inputs, encrypts them to the service provider and signs the request with
  an ephemeral keypair (one per job unless ``keys_env`` pins an identity).
- [publish()][dvmkit.services.job_protocol.JobProtocol.publish] sends it
  through the [RelayPool][dvmkit.core.relay_pool.RelayPool] and starts
  tracking it by request id.
- [poll()][dvmkit.services.job_protocol.JobProtocol.poll] and
  [wait_for_result()][dvmkit.services.job_protocol.JobProtocol.wait_for_result]
  look for the correlated result event, and
  [run()][dvmkit.services.job_protocol.JobProtocol.run] polls every tracked
  job with a single batched query when the service runs in a loop.
- [subscribe_to_job_updates()][dvmkit.services.job_protocol.JobProtocol.subscribe_to_job_updates]
  receives results and feedback live instead of polling.

Tracked jobs live in an explicit arena keyed by request id; a job leaves
the arena as soon as it reaches a terminal state.

Examples:
    ```python
    pool = RelayPool.from_dict({"relays": ["wss://relay.damus.io", "wss://nos.lol"]})
    async with pool:
        protocol = JobProtocol(pool, JobProtocolConfig(kind=5002))
        handle = await protocol.submit(
            [("hello", "text")], provider_pubkey, bid=50_000, output_mime="application/json"
        )
        result = await protocol.wait_for_result(handle)
    ```
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import Field

from dvmkit.core.base_service import BaseService, BaseServiceConfig
from dvmkit.core.exceptions import (
    ConnectivityError,
    CryptoError,
    JobError,
    JobFailedError,
    PublishError,
    RelayRequestError,
    RequestTimeoutError,
    ValidationError,
)
from dvmkit.models.constants import EventKind, JobState, ServiceName, result_kind_for
from dvmkit.models.job import JobFeedback, JobInput, JobRequest, JobResult, PublishReport
from dvmkit.nips import nip01, nip13, nip90
from dvmkit.nips.nip04 import CryptoChannel
from dvmkit.utils.keys import generate_keys, load_keys_from_env


if TYPE_CHECKING:
    from nostr_sdk import Keys

    from dvmkit.core.relay_pool import RelayPool, Subscription
    from dvmkit.models.event import Event
    from dvmkit.models.filter import Filter


JobInputLike = JobInput | tuple[str, ...] | list[str]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class JobProtocolConfig(BaseServiceConfig):
    """Configuration for the job protocol service.

    Inherits ``interval`` (seconds between polls), ``max_consecutive_failures``
    and ``metrics`` from
    [BaseServiceConfig][dvmkit.core.base_service.BaseServiceConfig].

    Attributes:
        kind: Default job request kind (result kind = kind + 1000).
        output_mime: Default declared output MIME type.
        result_timeout: Seconds a published job may wait for its result.
        pow_difficulty: NIP-13 leading zero bits mined into every request
            (``0`` disables mining).
        max_tracked_jobs: Upper bound on jobs awaiting a result.
        keys_env: Environment variable holding a fixed requester key. When
            unset every job is signed with fresh ephemeral keys.
        verify_responder: Only accept results authored by the provider the
            request was addressed to.
    """

    kind: int = Field(default=5100, ge=5000, le=5999)
    output_mime: str = Field(default="text/plain", min_length=1)
    result_timeout: float = Field(default=60.0, gt=0.0, le=86_400.0)
    pow_difficulty: int = Field(default=0, ge=0, le=32)
    max_tracked_jobs: int = Field(default=1000, ge=1)
    keys_env: str | None = Field(default=None, min_length=1)
    verify_responder: bool = Field(default=True)


# ---------------------------------------------------------------------------
# Job handle
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class JobHandle:
    """Mutable per-job state owned by a [JobProtocol][dvmkit.services.job_protocol.JobProtocol].

    Attributes:
        request: The job as the caller described it.
        event: The sealed, signed request event.
        channel: Encryption channel between the requester keys and the provider.
        state: Current lifecycle state.
        report: Publish outcome, once published.
        result: The correlated result, once resolved or failed on status.
        deadline: ``time.monotonic()`` value after which the job times out.
    """

    request: JobRequest
    event: Event
    channel: CryptoChannel = field(repr=False)
    state: JobState = JobState.SEALED
    report: PublishReport | None = None
    result: JobResult | None = None
    deadline: float | None = None

    @property
    def id(self) -> str:
        """Request event id, the correlation key of the job."""
        return self.event.id

    @property
    def keys(self) -> Keys:
        return self.request.keys

    @property
    def requester_pubkey(self) -> str:
        return self.request.requester_pubkey

    @property
    def recipient_pubkey(self) -> str:
        return self.request.recipient_pubkey

    @property
    def result_kind(self) -> int:
        return result_kind_for(self.event.kind)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class JobProtocol(BaseService[JobProtocolConfig]):
    """Customer-side NIP-90 job lifecycle on top of a relay pool.

    Every public method may be called directly; entering the service and
    calling [run_forever()][dvmkit.core.base_service.BaseService.run_forever]
    additionally polls all tracked jobs every ``interval`` seconds.

    Raises:
        ConfigurationError: If ``keys_env`` is set but the variable is
            missing or empty.
        SigningError: If the variable holds an invalid private key.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.JOB_PROTOCOL
    CONFIG_CLASS: ClassVar[type[JobProtocolConfig]] = JobProtocolConfig

    def __init__(self, pool: RelayPool, config: JobProtocolConfig | None = None) -> None:
        super().__init__(pool, config)
        self._jobs: dict[str, JobHandle] = {}
        self._fixed_keys: Keys | None = (
            load_keys_from_env(self._config.keys_env) if self._config.keys_env else None
        )

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def jobs(self) -> dict[str, JobHandle]:
        """Jobs currently awaiting a result, by request id (a copy)."""
        return dict(self._jobs)

    def get_job(self, request_id: str) -> JobHandle | None:
        return self._jobs.get(request_id)

    # -------------------------------------------------------------------------
    # Sealing and publishing
    # -------------------------------------------------------------------------

    def seal(
        self,
        inputs: Iterable[JobInputLike],
        recipient_pubkey: str,
        *,
        keys: Keys | None = None,
        output_mime: str | None = None,
        bid: int | None = None,
        kind: int | None = None,
        params: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
    ) -> JobHandle:
        """Build, encrypt and sign a job request without touching the network.

        Args:
            inputs: Ordered job inputs, each a
                [JobInput][dvmkit.models.job.JobInput] or a
                ``(data, type, relay_hint?, marker?)`` sequence.
            recipient_pubkey: Hex public key of the service provider.
            keys: Requester keypair; ephemeral keys are generated when omitted.
            output_mime: Declared output type (config default when omitted).
            bid: Offer in millisatoshis; only a positive bid is tagged.
            kind: Request kind (config default when omitted).
            params: Extra ``param`` tags, encrypted with the inputs.

        Note:
            Proof of work is CPU bound. With ``pow_difficulty`` set, call
            this from a worker thread, as
            [submit()][dvmkit.services.job_protocol.JobProtocol.submit] does.

        Raises:
            ValidationError: Empty inputs, negative bid, kind out of range,
                or a recipient that is not a valid public key.
        """
        if isinstance(params, Mapping):
            params = params.items()
        try:
            request = JobRequest(
                keys=keys or self._fixed_keys or generate_keys(),
                recipient_pubkey=recipient_pubkey,
                inputs=tuple(inputs),
                output_mime=output_mime or self._config.output_mime,
                bid=bid,
                kind=self._config.kind if kind is None else kind,
                params=tuple(params or ()),
            )
            channel = CryptoChannel(request.keys, request.recipient_pubkey)
            unsigned = nip90.build_job_request(request)
        except (ValueError, TypeError, CryptoError) as e:
            raise ValidationError(f"invalid job request: {e}") from e

        if self._config.pow_difficulty:
            unsigned = nip13.mine(unsigned, self._config.pow_difficulty)
        event = nip01.sign_event(unsigned, request.keys)

        handle = JobHandle(request=request, event=event, channel=channel)
        self._logger.debug(
            "job_sealed",
            request_id=handle.id,
            kind=event.kind,
            inputs=len(request.inputs),
            bid=request.bid,
        )
        return handle

    async def publish(self, handle: JobHandle, timeout: float | None = None) -> PublishReport:  # noqa: ASYNC109
        """Publish a sealed job and start tracking it.

        Raises:
            ValidationError: If *handle* is not in the SEALED state.
            JobError: If ``max_tracked_jobs`` jobs are already outstanding.
            PublishError: If too few relays accepted the request; the job
                ends in FAILED and is not tracked.
        """
        if handle.state != JobState.SEALED:
            raise ValidationError(f"job {handle.id} is {handle.state}, expected sealed")
        if len(self._jobs) >= self._config.max_tracked_jobs:
            raise JobError(f"{len(self._jobs)} jobs already awaiting results")

        try:
            report = await self._pool.publish(handle.event, timeout)
        except PublishError as e:
            handle.report = e.report
            self._transition(handle, JobState.FAILED, error=str(e))
            raise

        handle.report = report
        handle.deadline = time.monotonic() + self._config.result_timeout
        self._transition(handle, JobState.PUBLISHED, relays_ok=report.succeeded)
        self._jobs[handle.id] = handle
        self._transition(handle, JobState.AWAITING_RESULT)
        self.set_gauge("jobs_tracked", len(self._jobs))
        self._logger.info(
            "job_published",
            request_id=handle.id,
            kind=handle.event.kind,
            relays_ok=report.succeeded,
            relays_failed=report.failed,
        )
        return report

    async def submit(
        self,
        inputs: Iterable[JobInputLike],
        recipient_pubkey: str,
        *,
        timeout: float | None = None,  # noqa: ASYNC109
        **kwargs: Any,
    ) -> JobHandle:
        """[seal()][dvmkit.services.job_protocol.JobProtocol.seal] then [publish()][dvmkit.services.job_protocol.JobProtocol.publish].

        With ``pow_difficulty`` set, sealing runs in a worker thread so
        mining does not stall the event loop.
        """
        if self._config.pow_difficulty:
            handle = await asyncio.to_thread(self.seal, inputs, recipient_pubkey, **kwargs)
        else:
            handle = self.seal(inputs, recipient_pubkey, **kwargs)
        await self.publish(handle, timeout)
        return handle

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    async def poll(self, handle: JobHandle, timeout: float | None = None) -> JobResult | None:  # noqa: ASYNC109
        """Query once for the result of *handle*.

        Returns:
            The result when one was found (the job is then RESOLVED, or
            FAILED on status ``error``), ``None`` while still waiting. A
            terminal job returns its stored result without a query.

        Raises:
            ValidationError: If *handle* was never published.
            RequestTimeoutError, RequestError: Relay errors from the query.
        """
        if handle.is_terminal:
            return handle.result
        if handle.state != JobState.AWAITING_RESULT:
            raise ValidationError(f"job {handle.id} is {handle.state}, publish it first")

        events = await self._pool.query(self._result_filter([handle]), timeout)
        return self._resolve(handle, events)

    async def wait_for_result(self, handle: JobHandle, timeout: float | None = None) -> JobResult:  # noqa: ASYNC109
        """Poll every ``interval`` seconds until *handle* has a result.

        Relay errors during a poll are logged and retried within the budget.

        Args:
            timeout: Total budget in seconds (``result_timeout`` by default).

        Raises:
            RequestTimeoutError: No result arrived in time; the job ends in
                TIMED_OUT.
            JobFailedError: The provider answered with status ``error``.
            JobError: The job already failed to publish.
        """
        if timeout is not None and timeout <= 0:
            raise ValidationError(f"timeout must be > 0, got {timeout}")
        budget = self._config.result_timeout if timeout is None else timeout
        deadline = time.monotonic() + budget

        while not handle.is_terminal:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._expire(handle)
                break
            try:
                await self.poll(handle, min(remaining, self._pool.config.request_timeout))
            except (ConnectivityError, RelayRequestError) as e:
                self._logger.warning("job_poll_failed", request_id=handle.id, error=str(e))
            if not handle.is_terminal:
                await asyncio.sleep(min(self._config.interval, max(deadline - time.monotonic(), 0)))

        return self._outcome(handle, budget)

    async def run(self) -> None:
        """Poll every tracked job with one batched query and expire overdue ones."""
        now = time.monotonic()
        for handle in list(self._jobs.values()):
            if handle.deadline is not None and now >= handle.deadline:
                self._expire(handle)

        outstanding = list(self._jobs.values())
        if outstanding:
            events = await self._pool.query(self._result_filter(outstanding))
            resolved = sum(1 for handle in outstanding if self._resolve(handle, events))
            self._logger.debug(
                "jobs_polled", outstanding=len(outstanding), resolved=resolved, events=len(events)
            )
        self.set_gauge("jobs_tracked", len(self._jobs))

    async def list_feedback(
        self, handle: JobHandle, timeout: float | None = None  # noqa: ASYNC109
    ) -> list[JobFeedback]:
        """Fetch the kind 7000 feedback published for *handle*, newest first.

        Encrypted feedback is decrypted through the job channel; a failure
        sets ``decrypt_error`` on that entry instead of raising.
        """
        feedback: list[JobFeedback] = []
        for event in await self._pool.query(self._feedback_filter(handle), timeout):
            parsed = self._parse_feedback(handle, event)
            if parsed is not None:
                feedback.append(parsed)
        return feedback

    async def subscribe_to_job_updates(
        self,
        handle: JobHandle,
        on_update: Callable[[JobResult | JobFeedback], None],
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> Subscription:
        """Push the results and feedback of *handle* as relays deliver them.

        A correlated result drives the same transition as
        [poll()][dvmkit.services.job_protocol.JobProtocol.poll] (RESOLVED, or
        FAILED on status ``error``) before it reaches *on_update*; results
        arriving once the job is terminal are ignored. Feedback is decrypted
        through the job channel and passed on without changing the state.
        The caller owns the returned subscription and closes it.

        Raises:
            ValidationError: If *handle* is not awaiting a result.
            RequestTimeoutError, RequestError: No relay accepted the
                subscription.
        """
        if handle.state != JobState.AWAITING_RESULT:
            raise ValidationError(f"job {handle.id} is {handle.state}, expected awaiting_result")

        def on_event(event: Event) -> None:
            if event.kind == EventKind.JOB_FEEDBACK:
                feedback = self._parse_feedback(handle, event)
                if feedback is not None:
                    on_update(feedback)
            elif not handle.is_terminal:
                result = self._resolve(handle, [event])
                if result is not None:
                    on_update(result)

        filters = [self._result_filter([handle]), self._feedback_filter(handle)]
        subscription = await self._pool.subscribe(filters, on_event, timeout=timeout)
        self._logger.debug("job_subscribed", request_id=handle.id, relays=len(subscription.relays))
        return subscription

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _result_filter(self, handles: Sequence[JobHandle]) -> Filter:
        return nip90.result_filter(
            [h.id for h in handles],
            {h.result_kind for h in handles},
            requesters={h.requester_pubkey for h in handles},
            authors=(
                {h.recipient_pubkey for h in handles} if self._config.verify_responder else None
            ),
            since=min(h.event.created_at for h in handles),
        )

    def _feedback_filter(self, handle: JobHandle) -> Filter:
        return nip90.feedback_filter(
            [handle.id],
            requesters=[handle.requester_pubkey],
            authors=[handle.recipient_pubkey] if self._config.verify_responder else None,
            since=handle.event.created_at,
        )

    def _parse_feedback(self, handle: JobHandle, event: Event) -> JobFeedback | None:
        try:
            parsed = nip90.parse_job_feedback(event, self._channel_for(handle, event))
        except ValueError as e:
            self._logger.debug("feedback_skipped", event_id=event.id, error=str(e))
            return None
        return parsed if parsed.request_id == handle.id else None

    def _channel_for(self, handle: JobHandle, event: Event) -> CryptoChannel:
        if event.pubkey == handle.recipient_pubkey:
            return handle.channel
        return CryptoChannel(handle.keys, event.pubkey)

    def _resolve(self, handle: JobHandle, events: Sequence[Event]) -> JobResult | None:
        """Apply the newest result correlated to *handle*, if any, among *events*."""
        for event in events:
            if event.kind != handle.result_kind or nip90.request_id_of(event) != handle.id:
                continue
            if self._config.verify_responder and event.pubkey != handle.recipient_pubkey:
                continue
            try:
                result = nip90.parse_job_result(event, self._channel_for(handle, event))
            except (ValueError, CryptoError) as e:
                self._logger.debug("result_skipped", event_id=event.id, error=str(e))
                continue

            handle.result = result
            if result.decrypt_error is not None:
                self._logger.warning(
                    "result_decrypt_failed", request_id=handle.id, error=str(result.decrypt_error)
                )
            if result.is_error:
                self._transition(handle, JobState.FAILED, extra_info=result.extra_info)
            else:
                self._transition(handle, JobState.RESOLVED, result_id=event.id)
            return result
        return None

    def _expire(self, handle: JobHandle) -> None:
        self._transition(handle, JobState.TIMED_OUT)

    def _outcome(self, handle: JobHandle, budget: float) -> JobResult:
        if handle.state == JobState.RESOLVED and handle.result is not None:
            return handle.result
        if handle.state == JobState.TIMED_OUT:
            raise RequestTimeoutError(f"no result for job {handle.id} within {budget}s")
        if handle.result is not None:
            raise JobFailedError(
                f"job {handle.id} failed: {handle.result.extra_info or handle.result.content}",
                handle.result,
            )
        raise JobError(f"job {handle.id} failed before a result was received")

    def _transition(self, handle: JobHandle, state: JobState, **fields: Any) -> None:
        previous = handle.state
        handle.state = state
        if state.is_terminal:
            self._jobs.pop(handle.id, None)
            self.set_gauge("jobs_tracked", len(self._jobs))
        self.inc_counter(f"jobs_{state.value}")
        self._logger.debug(
            "job_transition",
            request_id=handle.id,
            previous=previous.value,
            state=state.value,
            **fields,
        )
