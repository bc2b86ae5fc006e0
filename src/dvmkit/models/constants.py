"""Shared constants for the models layer.

Defines the enumerations used across model modules, nips builders and
services. Placing them here keeps the models layer free of imports from
any other dvmkit package.

See Also:
    [dvmkit.models.job][]: Uses [JobStatus][dvmkit.models.constants.JobStatus]
        and [JobState][dvmkit.models.constants.JobState].
    [dvmkit.core.relay_pool][]: Tracks each endpoint with
        [RelayState][dvmkit.models.constants.RelayState].
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class EventKind(IntEnum):
    """Event kinds and kind-range bounds used by the job protocol (NIP-90).

    Attributes:
        JOB_REQUEST_MIN: First job request kind (5000).
        JOB_REQUEST_MAX: Last job request kind (5999).
        JOB_RESULT_MIN: First job result kind (6000).
        JOB_RESULT_MAX: Last job result kind (6999).
        JOB_FEEDBACK: Job feedback kind (7000).
        TEXT_GENERATION: Default job request kind (5100).

    Note:
        The result kind for a request is always ``request_kind + 1000``
        ([result_kind_for()][dvmkit.models.constants.result_kind_for]).
    """

    JOB_REQUEST_MIN = 5_000
    JOB_REQUEST_MAX = 5_999
    JOB_RESULT_MIN = 6_000
    JOB_RESULT_MAX = 6_999
    JOB_FEEDBACK = 7_000
    TEXT_GENERATION = 5_100


EVENT_KIND_MAX = 65_535

RESULT_KIND_OFFSET = 1_000


def is_job_request_kind(kind: int) -> bool:
    """Return True if *kind* falls in the job request range (5000-5999)."""
    return EventKind.JOB_REQUEST_MIN <= kind <= EventKind.JOB_REQUEST_MAX


def is_job_result_kind(kind: int) -> bool:
    """Return True if *kind* falls in the job result range (6000-6999)."""
    return EventKind.JOB_RESULT_MIN <= kind <= EventKind.JOB_RESULT_MAX


def result_kind_for(request_kind: int) -> int:
    """Return the result kind paired with a job request kind."""
    return request_kind + RESULT_KIND_OFFSET


class JobStatus(StrEnum):
    """Status values carried by the ``status`` tag of results and feedback."""

    SUCCESS = "success"
    ERROR = "error"
    PROCESSING = "processing"
    PAYMENT_REQUIRED = "payment-required"
    PARTIAL = "partial"


class RelayState(StrEnum):
    """Lifecycle of a single relay endpoint inside a pool.

    Valid transitions::

        UNCONNECTED -> CONNECTING -> CONNECTED -> CLOSED
        CONNECTING  -> UNCONNECTED            (handshake failed)
        any         -> CLOSED                 (pool closed)

    ``CONNECTED -> CONNECTING`` is never taken: a dropped connection moves
    the endpoint to ``CLOSED`` and retrying is left to the caller.
    """

    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class JobState(StrEnum):
    """Lifecycle of a job request driven by the job protocol.

    ``DRAFT -> SEALED -> PUBLISHED -> AWAITING_RESULT -> RESOLVED | FAILED | TIMED_OUT``.
    A publish that fails on every relay also ends in ``FAILED``.
    """

    DRAFT = "draft"
    SEALED = "sealed"
    PUBLISHED = "published"
    AWAITING_RESULT = "awaiting_result"
    RESOLVED = "resolved"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is possible from this state."""
        return self in (JobState.RESOLVED, JobState.FAILED, JobState.TIMED_OUT)


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics."""

    JOB_PROTOCOL = "job_protocol"
