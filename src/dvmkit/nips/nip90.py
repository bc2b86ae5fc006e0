"""NIP-90 Data Vending Machine event encoding.

Builds and parses the three event families of the job protocol:

```text
job request   kind 5000-5999   tags: p, encrypted, output, bid?
job result    kind 6000-6999   tags: e(request), p, status?, amount?, encrypted?, request?
job feedback  kind 7000        tags: e, p, status, amount?, encrypted?
```

Request inputs (``i`` tags) and parameters (``param`` tags) are never sent
in the clear: they are serialized as a JSON list of tags and encrypted to
the service provider with [nip04][dvmkit.nips.nip04].

The customer side uses
[build_job_request()][dvmkit.nips.nip90.build_job_request],
[parse_job_result()][dvmkit.nips.nip90.parse_job_result] and
[parse_job_feedback()][dvmkit.nips.nip90.parse_job_feedback]; the
provider side uses
[decode_job_request()][dvmkit.nips.nip90.decode_job_request],
[build_job_result()][dvmkit.nips.nip90.build_job_result] and
[build_job_feedback()][dvmkit.nips.nip90.build_job_feedback].
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from dvmkit.core.exceptions import DecryptError, ResultDecryptError
from dvmkit.models.constants import EventKind, JobStatus, result_kind_for
from dvmkit.models.event import Event, UnsignedEvent
from dvmkit.models.filter import Filter
from dvmkit.models.job import JobFeedback, JobInput, JobRequest, JobResult, parse_status
from dvmkit.models.tags import (
    AmountTag,
    BidTag,
    EncryptedTag,
    ETag,
    InputTag,
    OutputTag,
    ParamTag,
    PTag,
    StatusTag,
    parse_tag,
)

from .nip01 import build_unsigned, sign_event
from .nip04 import CryptoChannel


if TYPE_CHECKING:
    from nostr_sdk import Keys


logger = logging.getLogger(__name__)

REQUEST_MARKER = "request"
MAX_EXTRA_INFO_LENGTH = 256


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


def build_job_request(request: JobRequest, created_at: int | None = None) -> UnsignedEvent:
    """Build the unsigned request event for *request*, inputs encrypted.

    Raises:
        EncryptError: If the recipient public key is not a curve point.
    """
    channel = CryptoChannel(request.keys, request.recipient_pubkey)
    content = channel.encrypt(json.dumps(request.private_tags(), ensure_ascii=False))

    tags = [
        PTag(request.recipient_pubkey).to_list(),
        EncryptedTag().to_list(),
        OutputTag(request.output_mime).to_list(),
    ]
    if request.bid:
        tags.append(BidTag(request.bid).to_list())

    return build_unsigned(
        request.requester_pubkey,
        request.kind,
        tags=tags,
        content=content,
        created_at=created_at,
    )


@dataclass(frozen=True, slots=True)
class DecodedJobRequest:
    """A job request as seen by the service provider after decryption."""

    event: Event
    inputs: tuple[JobInput, ...]
    params: tuple[tuple[str, str], ...]
    output_mime: str | None
    bid: int | None
    encrypted: bool

    @property
    def requester_pubkey(self) -> str:
        return self.event.pubkey


def decode_job_request(event: Event, keys: Keys) -> DecodedJobRequest:
    """Recover inputs and parameters of a request addressed to *keys*.

    Raises:
        DecryptError: If the content is flagged encrypted but cannot be
            decrypted, or does not decode to a list of tags.
    """
    encrypted = event.has_tag(EncryptedTag.NAME)
    if encrypted:
        plaintext = CryptoChannel(keys, event.pubkey).decrypt(event.content)
        try:
            private_tags = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise DecryptError(f"request content is not JSON: {e}") from e
        if not isinstance(private_tags, list) or not all(isinstance(t, list) for t in private_tags):
            raise DecryptError("request content must be a JSON list of tags")
        tags: Iterable[Any] = [tuple(str(v) for v in t) for t in private_tags if t]
    else:
        tags = event.tags

    inputs: list[JobInput] = []
    params: list[tuple[str, str]] = []
    for tag in tags:
        typed = parse_tag(tag)
        if isinstance(typed, InputTag):
            try:
                inputs.append(JobInput(typed.data, typed.input_type, typed.relay_hint, typed.marker))
            except ValueError:
                logger.debug("job_input_skipped request_id=%s", event.id)
        elif isinstance(typed, ParamTag):
            params.append((typed.name, typed.value))

    output = event.first_tag(OutputTag.NAME)
    bid: int | None = None
    for typed in event.typed_tags():
        if isinstance(typed, BidTag):
            bid = typed.amount
            break

    return DecodedJobRequest(
        event=event,
        inputs=tuple(inputs),
        params=tuple(params),
        output_mime=output[1] if output and len(output) > 1 else None,
        bid=bid,
        encrypted=encrypted,
    )


# ---------------------------------------------------------------------------
# Results and feedback (provider side)
# ---------------------------------------------------------------------------


def _reply_tags(
    request_event: Event,
    status: JobStatus | None,
    extra_info: str | None,
    amount: int | None,
    invoice: str | None,
    encrypted: bool,
) -> list[list[str]]:
    tags = [
        ETag(request_event.id, "", REQUEST_MARKER).to_list(),
        PTag(request_event.pubkey).to_list(),
    ]
    if status is not None:
        info = extra_info[:MAX_EXTRA_INFO_LENGTH] if extra_info else None
        tags.append(StatusTag(str(status), info).to_list())
    if amount is not None:
        tags.append(AmountTag(amount, invoice).to_list())
    if encrypted:
        tags.append(EncryptedTag().to_list())
    return tags


def build_job_result(
    request_event: Event,
    content: str,
    keys: Keys,
    *,
    status: JobStatus | None = None,
    extra_info: str | None = None,
    amount: int | None = None,
    invoice: str | None = None,
    encrypt: bool | None = None,
    include_request: bool = True,
    created_at: int | None = None,
) -> Event:
    """Build and sign the result of *request_event* (kind = request kind + 1000).

    Args:
        encrypt: Encrypt *content* to the requester. Defaults to whether the
            request itself was encrypted.
        include_request: Embed the request event as a ``request`` tag.

    Raises:
        ValueError: If *request_event* is not a job request.
        SigningError: If *keys* cannot sign.
    """
    if not EventKind.JOB_REQUEST_MIN <= request_event.kind <= EventKind.JOB_REQUEST_MAX:
        raise ValueError(f"not a job request kind: {request_event.kind}")
    if encrypt is None:
        encrypt = request_event.has_tag(EncryptedTag.NAME)
    if encrypt:
        content = CryptoChannel(keys, request_event.pubkey).encrypt(content)

    tags = _reply_tags(request_event, status, extra_info, amount, invoice, encrypt)
    if include_request:
        tags.append([REQUEST_MARKER, json.dumps(request_event.to_dict(), separators=(",", ":"))])

    unsigned = build_unsigned(
        keys.public_key().to_hex(),
        result_kind_for(request_event.kind),
        tags=tags,
        content=content,
        created_at=created_at,
    )
    return sign_event(unsigned, keys)


def build_job_feedback(
    request_event: Event,
    status: JobStatus,
    keys: Keys,
    *,
    extra_info: str | None = None,
    content: str = "",
    amount: int | None = None,
    invoice: str | None = None,
    encrypt: bool | None = None,
    created_at: int | None = None,
) -> Event:
    """Build and sign a kind 7000 feedback event for *request_event*.

    ``extra_info`` is cut to 256 characters; longer detail belongs in
    *content* (typically with status ``partial`` or ``error``).
    """
    if encrypt is None:
        encrypt = request_event.has_tag(EncryptedTag.NAME) and bool(content)
    if encrypt and content:
        content = CryptoChannel(keys, request_event.pubkey).encrypt(content)

    unsigned = build_unsigned(
        keys.public_key().to_hex(),
        EventKind.JOB_FEEDBACK,
        tags=_reply_tags(request_event, status, extra_info, amount, invoice, encrypt),
        content=content,
        created_at=created_at,
    )
    return sign_event(unsigned, keys)


# ---------------------------------------------------------------------------
# Results and feedback (customer side)
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _ReplyFields:
    request_id: str
    requester_pubkey: str | None = None
    status: JobStatus | None = None
    extra_info: str | None = None
    amount: int | None = None
    invoice: str | None = None
    encrypted: bool = False
    request: dict[str, Any] | None = None


def request_id_of(event: Event) -> str | None:
    """Return the request id referenced by a result or feedback event.

    Prefers an ``e`` tag marked ``request``; falls back to the first ``e`` tag.
    """
    fallback: str | None = None
    for typed in event.typed_tags():
        if isinstance(typed, ETag):
            if typed.marker == REQUEST_MARKER:
                return typed.event_id
            if fallback is None:
                fallback = typed.event_id
    return fallback


def _reply_fields(event: Event) -> _ReplyFields:
    request_id = request_id_of(event)
    if request_id is None:
        raise ValueError(f"event {event.id} does not reference a job request")

    fields = _ReplyFields(request_id=request_id)
    for typed in event.typed_tags():
        if isinstance(typed, PTag) and fields.requester_pubkey is None:
            fields.requester_pubkey = typed.pubkey
        elif isinstance(typed, StatusTag) and fields.status is None:
            fields.status = parse_status(typed.status)
            fields.extra_info = typed.extra_info
        elif isinstance(typed, AmountTag) and fields.amount is None:
            fields.amount = typed.amount
            fields.invoice = typed.invoice
        elif isinstance(typed, EncryptedTag):
            fields.encrypted = True

    raw_request = event.first_tag(REQUEST_MARKER)
    if raw_request is not None and len(raw_request) > 1:
        try:
            decoded = json.loads(raw_request[1])
        except json.JSONDecodeError:
            decoded = None
        fields.request = decoded if isinstance(decoded, dict) else None
    return fields


def _open_content(
    event: Event, encrypted: bool, channel: CryptoChannel | None
) -> tuple[str, ResultDecryptError | None]:
    if not encrypted or not event.content:
        return event.content, None
    if channel is None:
        return event.content, ResultDecryptError(
            f"event {event.id} is encrypted and no channel was given", event
        )
    try:
        return channel.decrypt(event.content), None
    except DecryptError as e:
        logger.debug("reply_decrypt_failed id=%s error=%s", event.id, e)
        error = ResultDecryptError(f"cannot decrypt event {event.id}: {e}", event)
        error.__cause__ = e
        return event.content, error


def parse_job_result(event: Event, channel: CryptoChannel | None = None) -> JobResult:
    """Parse a result event, decrypting its content through *channel* when flagged.

    A decryption failure does not raise: the raw content is kept and
    ``decrypt_error`` is set.

    Raises:
        ValueError: If *event* carries no ``e`` tag.
    """
    fields = _reply_fields(event)
    content, decrypt_error = _open_content(event, fields.encrypted, channel)
    return JobResult(
        event=event,
        request_id=fields.request_id,
        requester_pubkey=fields.requester_pubkey,
        status=fields.status,
        content=content,
        encrypted=fields.encrypted,
        amount=fields.amount,
        invoice=fields.invoice,
        extra_info=fields.extra_info,
        decrypt_error=decrypt_error,
        request=fields.request,
    )


def parse_job_feedback(event: Event, channel: CryptoChannel | None = None) -> JobFeedback:
    """Parse a kind 7000 feedback event.

    Raises:
        ValueError: If *event* is not kind 7000 or carries no ``e`` tag.
    """
    if event.kind != EventKind.JOB_FEEDBACK:
        raise ValueError(f"not a feedback event: kind {event.kind}")
    fields = _reply_fields(event)
    content, decrypt_error = _open_content(event, fields.encrypted, channel)
    return JobFeedback(
        event=event,
        request_id=fields.request_id,
        status=fields.status,
        extra_info=fields.extra_info,
        content=content,
        encrypted=fields.encrypted,
        amount=fields.amount,
        invoice=fields.invoice,
        decrypt_error=decrypt_error,
    )


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def result_filter(
    request_ids: Iterable[str],
    kinds: Iterable[int],
    *,
    requesters: Iterable[str] | None = None,
    authors: Iterable[str] | None = None,
    since: int | None = None,
) -> Filter:
    """Filter for result events (kinds 6000-6999) answering *request_ids*.

    Several requests can be polled with one filter: ``#e`` and ``#p`` match
    any of the given values.
    """
    tag_filters = {"e": frozenset(request_ids)}
    if requesters is not None:
        tag_filters["p"] = frozenset(requesters)
    return Filter(
        kinds=frozenset(kinds),
        authors=frozenset(authors) if authors is not None else None,
        tag_filters=tag_filters,
        since=since,
    )


def feedback_filter(
    request_ids: Iterable[str],
    *,
    requesters: Iterable[str] | None = None,
    authors: Iterable[str] | None = None,
    since: int | None = None,
) -> Filter:
    """Filter for kind 7000 feedback events about *request_ids*."""
    return result_filter(
        request_ids,
        (EventKind.JOB_FEEDBACK,),
        requesters=requesters,
        authors=authors,
        since=since,
    )
