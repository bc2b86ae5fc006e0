"""
Job request, result, feedback and publish outcome models.

These are plain values: the state machine that moves a job from draft to a
terminal state lives in
[JobProtocol][dvmkit.services.job_protocol.JobProtocol], and the event
encoding lives in [dvmkit.nips.nip90][dvmkit.nips.nip90].

See Also:
    [dvmkit.models.constants.JobStatus][dvmkit.models.constants.JobStatus]:
        Status values parsed into results and feedback.
    [RelayPool.publish()][dvmkit.core.relay_pool.RelayPool.publish]: Produces
        [PublishReport][dvmkit.models.job.PublishReport].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ._validation import (
    validate_hex,
    validate_int,
    validate_str_no_null,
    validate_str_not_empty,
)
from .constants import EventKind, JobStatus, is_job_request_kind
from .event import Event
from .tags import InputTag, ParamTag


if TYPE_CHECKING:
    from nostr_sdk import Keys


INPUT_TYPES = frozenset({"url", "event", "job", "text"})


@dataclass(frozen=True, slots=True)
class JobInput:
    """A single job input ``(data, type, relay_hint?, marker?)``.

    Raises:
        ValueError: If ``input_type`` is not one of ``url``, ``event``,
            ``job`` or ``text``, or ``data`` is empty.
    """

    data: str
    input_type: str = "text"
    relay_hint: str | None = None
    marker: str | None = None

    def __post_init__(self) -> None:
        validate_str_not_empty(self.data, "data")
        if self.input_type not in INPUT_TYPES:
            raise ValueError(
                f"input_type must be one of {sorted(INPUT_TYPES)}, got {self.input_type!r}"
            )
        if self.relay_hint is not None:
            validate_str_no_null(self.relay_hint, "relay_hint")
        if self.marker is not None:
            validate_str_no_null(self.marker, "marker")

    @classmethod
    def coerce(cls, value: JobInput | tuple[str, ...] | list[str]) -> JobInput:
        """Accept a ``JobInput`` or a ``(data, type, relay_hint?, marker?)`` sequence."""
        if isinstance(value, JobInput):
            return value
        if isinstance(value, str) or not 1 <= len(value) <= 4:  # noqa: PLR2004
            raise ValueError(f"job input must be a 1-4 item sequence, got {value!r}")
        return cls(*value)

    def to_tag(self) -> InputTag:
        return InputTag(self.data, self.input_type, self.relay_hint, self.marker)


@dataclass(frozen=True, slots=True)
class JobRequest:
    """Everything needed to seal a job request event.

    Attributes:
        keys: Requester keypair, usually ephemeral (one per job). Never
            included in ``repr()``.
        requester_pubkey: Public half of ``keys`` (computed).
        recipient_pubkey: Service provider the request is encrypted for.
        inputs: Ordered, non-empty job inputs.
        output_mime: Declared output MIME type.
        bid: Optional bid in millisatoshis (``None`` or ``>= 0``).
        kind: Job request kind (5000-5999).
        params: Extra ``(name, value)`` parameters, encrypted with the inputs.

    Raises:
        ValueError: On empty inputs, negative bid, out-of-range kind or a
            malformed public key.
    """

    keys: Keys = field(repr=False, compare=False)
    recipient_pubkey: str
    inputs: tuple[JobInput, ...]
    output_mime: str = "text/plain"
    bid: int | None = None
    kind: int = EventKind.TEXT_GENERATION
    params: tuple[tuple[str, str], ...] = ()
    requester_pubkey: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "requester_pubkey", self.keys.public_key().to_hex())
        validate_hex(self.recipient_pubkey, "recipient_pubkey")
        inputs = tuple(JobInput.coerce(i) for i in self.inputs)
        if not inputs:
            raise ValueError("inputs must not be empty")
        object.__setattr__(self, "inputs", inputs)
        validate_str_not_empty(self.output_mime, "output_mime")
        if self.bid is not None:
            validate_int(self.bid, "bid")
        validate_int(self.kind, "kind")
        if not is_job_request_kind(self.kind):
            raise ValueError(f"kind must be in 5000-5999, got {self.kind}")
        params = tuple((str(name), str(value)) for name, value in self.params)
        for name, value in params:
            validate_str_not_empty(name, "params")
            validate_str_no_null(value, "params")
        object.__setattr__(self, "params", params)

    def private_tags(self) -> list[list[str]]:
        """Tags hidden inside the encrypted content (inputs, then params)."""
        tags = [i.to_tag().to_list() for i in self.inputs]
        tags.extend(ParamTag(name, value).to_list() for name, value in self.params)
        return tags


def parse_status(value: str | None) -> JobStatus | None:
    """Parse a ``status`` tag value; unknown values map to ``None``."""
    if value is None:
        return None
    try:
        return JobStatus(value)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class JobResult:
    """A result event correlated to a job request.

    Attributes:
        event: The raw result event, always kept for diagnostics.
        request_id: Id of the request referenced by the ``e`` tag.
        requester_pubkey: Requester referenced by the ``p`` tag.
        status: Parsed ``status`` tag; results without one count as success.
        content: Decrypted content when decryption succeeded, otherwise the
            raw event content.
        encrypted: Whether the result carried the ``encrypted`` flag.
        amount: Requested payment in millisatoshis, from the ``amount`` tag.
        invoice: Payment request attached to the ``amount`` tag.
        extra_info: Human readable detail attached to the ``status`` tag.
        decrypt_error: Set when the content was flagged encrypted but could
            not be decrypted.
        request: The request event embedded in the ``request`` tag, when
            the provider included one.
    """

    event: Event
    request_id: str
    requester_pubkey: str | None
    status: JobStatus | None
    content: str
    encrypted: bool = False
    amount: int | None = None
    invoice: str | None = None
    extra_info: str | None = None
    decrypt_error: Exception | None = field(default=None, compare=False)
    request: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def is_error(self) -> bool:
        return self.status == JobStatus.ERROR

    @property
    def decrypted(self) -> bool:
        return self.encrypted and self.decrypt_error is None

    @property
    def responder_pubkey(self) -> str:
        return self.event.pubkey


@dataclass(frozen=True, slots=True)
class JobFeedback:
    """A feedback event (kind 7000) for a job request."""

    event: Event
    request_id: str
    status: JobStatus | None
    extra_info: str | None = None
    content: str = ""
    encrypted: bool = False
    amount: int | None = None
    invoice: str | None = None
    decrypt_error: Exception | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    """Result of publishing one event to one relay endpoint.

    Attributes:
        relay: Endpoint URL.
        succeeded: Whether the relay accepted the event (``OK true``).
        error: Failure description when ``succeeded`` is False.
        message: Message the relay attached to its ``OK`` reply.
    """

    relay: str
    succeeded: bool
    error: str | None = None
    message: str = ""


@dataclass(frozen=True, slots=True)
class PublishReport:
    """Per-endpoint outcomes of one publish, in configured endpoint order."""

    event_id: str
    outcomes: tuple[PublishOutcome, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "outcomes", tuple(self.outcomes))

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.succeeded

    @property
    def ok(self) -> bool:
        """Whether at least one endpoint accepted the event."""
        return self.succeeded > 0

    @property
    def failures(self) -> tuple[PublishOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.succeeded)

    def summary(self) -> str:
        """Short description such as ``published to 4 of 6 relays``."""
        return f"published to {self.succeeded} of {len(self.outcomes)} relays"

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "outcomes": [
                {"relay": o.relay, "succeeded": o.succeeded, "error": o.error, "message": o.message}
                for o in self.outcomes
            ],
        }

