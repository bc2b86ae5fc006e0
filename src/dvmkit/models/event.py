"""
Immutable Nostr event models with wire-format conversion.

[UnsignedEvent][dvmkit.models.event.UnsignedEvent] holds the five fields
covered by the content hash; [Event][dvmkit.models.event.Event] adds the
``id`` and ``sig`` produced by the codec in
[dvmkit.nips.nip01][dvmkit.nips.nip01]. Both are frozen, so an event can
never change after it has been signed.

Tags are stored as tuples of strings exactly as they travel on the wire.
Typed access goes through [typed_tags()][dvmkit.models.event.Event.typed_tags],
which converts at the boundary via [parse_tag()][dvmkit.models.tags.parse_tag].

See Also:
    [dvmkit.nips.nip01][dvmkit.nips.nip01]: Computes ids, signs and verifies.
    [dvmkit.models.filter.Filter][dvmkit.models.filter.Filter]: Query predicate
        evaluated against events.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ._validation import (
    HEX64_LENGTH,
    freeze_tags,
    validate_hex,
    validate_instance,
    validate_kind,
    validate_str_no_null,
    validate_timestamp,
)
from .tags import Tag, parse_tag


_WIRE_FIELDS = ("id", "pubkey", "created_at", "kind", "tags", "content", "sig")


class _TagAccessMixin:
    """Tag lookup helpers shared by signed and unsigned events."""

    __slots__ = ()

    tags: tuple[tuple[str, ...], ...]

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag called *name*, in order."""
        return [tag[1] for tag in self.tags if tag[0] == name and len(tag) > 1]

    def first_tag(self, name: str) -> tuple[str, ...] | None:
        """Return the first tag called *name*, or ``None``."""
        for tag in self.tags:
            if tag[0] == name:
                return tag
        return None

    def has_tag(self, name: str) -> bool:
        """Whether at least one tag is called *name*."""
        return any(tag[0] == name for tag in self.tags)

    def typed_tags(self) -> list[Tag]:
        """Return every tag converted to its typed representation."""
        return [parse_tag(tag) for tag in self.tags]


@dataclass(frozen=True, slots=True)
class UnsignedEvent(_TagAccessMixin):
    """Event fields covered by the content hash, before signing.

    Attributes:
        pubkey: Author public key (64 lowercase hex chars).
        created_at: Unix timestamp in seconds.
        kind: Event kind (0-65535).
        tags: Ordered tags; the first element of each tag is its name.
        content: Event content (plain text or cipher-text envelope).

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a field is out of range, malformed, or contains
            null bytes.
    """

    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...] = ()
    content: str = ""

    def __post_init__(self) -> None:
        validate_hex(self.pubkey, "pubkey")
        validate_timestamp(self.created_at, "created_at")
        validate_kind(self.kind)
        validate_str_no_null(self.content, "content")
        object.__setattr__(self, "tags", freeze_tags(self.tags))

    def with_tags(self, tags: Iterable[Iterable[str]]) -> UnsignedEvent:
        """Return a copy whose tags are replaced by *tags*."""
        return UnsignedEvent(
            pubkey=self.pubkey,
            created_at=self.created_at,
            kind=self.kind,
            tags=tuple(tuple(t) for t in tags),
            content=self.content,
        )


@dataclass(frozen=True, slots=True)
class Event(_TagAccessMixin):
    """Signed, content-addressed Nostr event.

    Construction only checks shapes (hex lengths, ranges, null bytes). Whether
    ``id`` really is the content hash and ``sig`` really verifies is decided
    by [verify_event()][dvmkit.nips.nip01.verify_event], which never raises,
    so callers can choose between rejecting and quarantining.

    Examples:
        ```python
        event = Event.from_dict(json.loads(raw))
        event.kind                  # 6100
        event.tag_values("e")       # ['5c83...']
        event.to_dict()["created_at"]
        ```
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...]
    content: str
    sig: str
    _unsigned: UnsignedEvent = field(
        default=None,  # type: ignore[assignment]
        init=False,
        repr=False,
        compare=False,
        hash=False,
    )

    def __post_init__(self) -> None:
        validate_hex(self.id, "id")
        validate_hex(self.sig, "sig", HEX64_LENGTH)
        unsigned = UnsignedEvent(
            pubkey=self.pubkey,
            created_at=self.created_at,
            kind=self.kind,
            tags=self.tags,
            content=self.content,
        )
        object.__setattr__(self, "tags", unsigned.tags)
        object.__setattr__(self, "_unsigned", unsigned)

    @property
    def unsigned(self) -> UnsignedEvent:
        """The hashed fields of this event, without ``id`` and ``sig``."""
        return self._unsigned

    def to_dict(self) -> dict[str, Any]:
        """Return the wire JSON object (tags as lists)."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Event:
        """Build an event from its wire JSON object.

        Args:
            data: Mapping with the seven NIP-01 fields. Extra keys are ignored.

        Raises:
            TypeError: If *data* is not a mapping or a field has the wrong type.
            ValueError: If a field is missing or malformed.
        """
        validate_instance(data, Mapping, "data")
        missing = [name for name in _WIRE_FIELDS if name not in data]
        if missing:
            raise ValueError(f"event is missing fields: {', '.join(missing)}")
        tags = data["tags"]
        if not isinstance(tags, list | tuple):
            raise TypeError(f"tags must be a list, got {type(tags).__name__}")
        return cls(
            id=data["id"],
            pubkey=data["pubkey"],
            created_at=data["created_at"],
            kind=data["kind"],
            tags=tuple(tuple(tag) if isinstance(tag, list | tuple) else tag for tag in tags),
            content=data["content"],
            sig=data["sig"],
        )
