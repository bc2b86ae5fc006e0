"""Pure frozen dataclasses for Nostr events, filters, relays and jobs.

The models layer is the foundation of the package. It performs no I/O and
depends on nothing else in ``dvmkit``. Every model uses
``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__`` so
invalid instances never escape the constructor.

Attributes:
    Event: Signed, content-addressed event with wire-format conversion.
    UnsignedEvent: The hashed fields of an event, before signing.
    Filter: Query predicate sent to relays and re-checked locally.
    Relay: Validated ``ws://``/``wss://`` relay URL (RFC 3986).
    JobInput: One job input ``(data, type, relay_hint?, marker?)``.
    JobRequest: Everything needed to seal a job request.
    JobResult: Parsed result event correlated to a request.
    JobFeedback: Parsed feedback event (kind 7000).
    PublishOutcome: Per-relay publish result.
    PublishReport: Aggregate publish result across the pool.

Note:
    All models use ``object.__setattr__`` in ``__post_init__`` to set computed
    or normalized fields on frozen dataclasses.

See Also:
    [dvmkit.models.tags][]: Typed tag union and ``parse_tag``.
    [dvmkit.models.constants][]: Event kinds and state enumerations.
    [dvmkit.nips][]: Codecs operating on these models.
"""

from .constants import (
    EVENT_KIND_MAX,
    EventKind,
    JobState,
    JobStatus,
    RelayState,
    ServiceName,
)
from .event import Event, UnsignedEvent
from .filter import Filter
from .job import JobFeedback, JobInput, JobRequest, JobResult, PublishOutcome, PublishReport
from .relay import Relay
from .tags import (
    AmountTag,
    BidTag,
    EncryptedTag,
    ETag,
    InputTag,
    NonceTag,
    OutputTag,
    ParamTag,
    PTag,
    RawTag,
    StatusTag,
    Tag,
    parse_tag,
)


__all__ = [
    "EVENT_KIND_MAX",
    "AmountTag",
    "BidTag",
    "ETag",
    "EncryptedTag",
    "Event",
    "EventKind",
    "Filter",
    "InputTag",
    "JobFeedback",
    "JobInput",
    "JobRequest",
    "JobResult",
    "JobState",
    "JobStatus",
    "NonceTag",
    "OutputTag",
    "PTag",
    "ParamTag",
    "PublishOutcome",
    "PublishReport",
    "RawTag",
    "Relay",
    "RelayState",
    "ServiceName",
    "StatusTag",
    "Tag",
    "UnsignedEvent",
    "parse_tag",
]
