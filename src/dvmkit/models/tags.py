"""
Typed tag representations for Nostr events.

Events carry tags as untyped string arrays. This module models the tags the
job protocol understands as a union of frozen dataclasses and keeps any
other tag as a [RawTag][dvmkit.models.tags.RawTag] so that nothing is lost
on a round trip. Conversion happens only at the serialization boundary:
[parse_tag()][dvmkit.models.tags.parse_tag] on the way in and ``to_list()``
on the way out.

Examples:
    ```python
    parse_tag(["e", "5c83...", "wss://relay.example.com", "request"])
    # ETag(event_id='5c83...', relay_hint='wss://relay.example.com', marker='request')

    BidTag(50_000).to_list()
    # ['bid', '50000']
    ```
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True, slots=True)
class ETag:
    """Reference to another event (``["e", id, relay_hint?, marker?]``)."""

    NAME: ClassVar[str] = "e"

    event_id: str
    relay_hint: str = ""
    marker: str | None = None

    def to_list(self) -> list[str]:
        values = [self.NAME, self.event_id]
        if self.relay_hint or self.marker:
            values.append(self.relay_hint)
        if self.marker:
            values.append(self.marker)
        return values


@dataclass(frozen=True, slots=True)
class PTag:
    """Reference to a public key (``["p", pubkey, relay_hint?]``)."""

    NAME: ClassVar[str] = "p"

    pubkey: str
    relay_hint: str | None = None

    def to_list(self) -> list[str]:
        values = [self.NAME, self.pubkey]
        if self.relay_hint:
            values.append(self.relay_hint)
        return values


@dataclass(frozen=True, slots=True)
class BidTag:
    """Maximum price the requester is willing to pay, in millisatoshis."""

    NAME: ClassVar[str] = "bid"

    amount: int

    def to_list(self) -> list[str]:
        return [self.NAME, str(self.amount)]


@dataclass(frozen=True, slots=True)
class AmountTag:
    """Amount requested by a service provider, with an optional invoice."""

    NAME: ClassVar[str] = "amount"

    amount: int
    invoice: str | None = None

    def to_list(self) -> list[str]:
        values = [self.NAME, str(self.amount)]
        if self.invoice:
            values.append(self.invoice)
        return values


@dataclass(frozen=True, slots=True)
class OutputTag:
    """Expected output MIME type of a job."""

    NAME: ClassVar[str] = "output"

    mime: str

    def to_list(self) -> list[str]:
        return [self.NAME, self.mime]


@dataclass(frozen=True, slots=True)
class InputTag:
    """Job input (``["i", data, type, relay_hint?, marker?]``)."""

    NAME: ClassVar[str] = "i"

    data: str
    input_type: str
    relay_hint: str | None = None
    marker: str | None = None

    def to_list(self) -> list[str]:
        values = [self.NAME, self.data, self.input_type]
        if self.relay_hint is not None or self.marker is not None:
            values.append(self.relay_hint or "")
        if self.marker is not None:
            values.append(self.marker)
        return values


@dataclass(frozen=True, slots=True)
class ParamTag:
    """Free-form job parameter (``["param", name, value]``)."""

    NAME: ClassVar[str] = "param"

    name: str
    value: str

    def to_list(self) -> list[str]:
        return [self.NAME, self.name, self.value]


@dataclass(frozen=True, slots=True)
class StatusTag:
    """Job status (``["status", status, extra_info?]``)."""

    NAME: ClassVar[str] = "status"

    status: str
    extra_info: str | None = None

    def to_list(self) -> list[str]:
        values = [self.NAME, self.status]
        if self.extra_info:
            values.append(self.extra_info)
        return values


@dataclass(frozen=True, slots=True)
class EncryptedTag:
    """Flag marking the event content as encrypted (``["encrypted"]``)."""

    NAME: ClassVar[str] = "encrypted"

    def to_list(self) -> list[str]:
        return [self.NAME]


@dataclass(frozen=True, slots=True)
class NonceTag:
    """Proof-of-work nonce (``["nonce", nonce, target]``, NIP-13)."""

    NAME: ClassVar[str] = "nonce"

    nonce: int
    target: int

    def to_list(self) -> list[str]:
        return [self.NAME, str(self.nonce), str(self.target)]


@dataclass(frozen=True, slots=True)
class RawTag:
    """Any tag without a typed representation, kept verbatim."""

    values: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.values[0] if self.values else ""

    def to_list(self) -> list[str]:
        return list(self.values)


Tag = (
    ETag
    | PTag
    | BidTag
    | AmountTag
    | OutputTag
    | InputTag
    | ParamTag
    | StatusTag
    | EncryptedTag
    | NonceTag
    | RawTag
)


def _opt(values: Sequence[str], index: int) -> str | None:
    """Return ``values[index]`` or ``None`` when absent or empty."""
    if len(values) > index and values[index]:
        return values[index]
    return None


def _int(value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        return None


def parse_tag(values: Sequence[str]) -> Tag:  # noqa: PLR0911
    """Convert a wire tag into its typed representation.

    Tags that are too short for their typed form, or whose numeric fields do
    not parse, fall back to [RawTag][dvmkit.models.tags.RawTag] instead of
    raising: relays are untrusted and a malformed tag must not make the
    whole event unreadable.
    """
    raw = RawTag(tuple(values))
    if not values:
        return raw
    name, size = values[0], len(values)

    if name == ETag.NAME and size >= 2:  # noqa: PLR2004
        return ETag(values[1], values[2] if size > 2 else "", _opt(values, 3))  # noqa: PLR2004
    if name == PTag.NAME and size >= 2:  # noqa: PLR2004
        return PTag(values[1], _opt(values, 2))
    if name == InputTag.NAME and size >= 3:  # noqa: PLR2004
        return InputTag(values[1], values[2], _opt(values, 3), _opt(values, 4))
    if name == OutputTag.NAME and size >= 2:  # noqa: PLR2004
        return OutputTag(values[1])
    if name == ParamTag.NAME and size >= 3:  # noqa: PLR2004
        return ParamTag(values[1], values[2])
    if name == StatusTag.NAME and size >= 2:  # noqa: PLR2004
        return StatusTag(values[1], _opt(values, 2))
    if name == EncryptedTag.NAME:
        return EncryptedTag()
    if name in (BidTag.NAME, AmountTag.NAME) and size >= 2:  # noqa: PLR2004
        amount = _int(values[1])
        if amount is None:
            return raw
        return BidTag(amount) if name == BidTag.NAME else AmountTag(amount, _opt(values, 2))
    if name == NonceTag.NAME and size >= 3:  # noqa: PLR2004
        nonce, target = _int(values[1]), _int(values[2])
        if nonce is None or target is None:
            return raw
        return NonceTag(nonce, target)
    return raw
