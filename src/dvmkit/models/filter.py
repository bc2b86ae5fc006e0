"""
Relay query predicate (NIP-01 filter).

A [Filter][dvmkit.models.filter.Filter] is sent to relays inside a ``REQ``
message and is also evaluated locally by
[matches()][dvmkit.models.filter.Filter.matches]: relays are not trusted, so
the pool drops events that do not satisfy the filter they were returned for.

Examples:
    ```python
    f = Filter(kinds={6100}, tag_filters={"e": {request_id}}, limit=10)
    f.to_dict()
    # {'kinds': [6100], '#e': ['5c83...'], 'limit': 10}
    ```
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ._validation import validate_int, validate_kind, validate_str_not_empty


if TYPE_CHECKING:
    from .event import Event


def _freeze_strs(values: Iterable[str] | None, name: str) -> frozenset[str] | None:
    if values is None:
        return None
    if isinstance(values, str):
        raise TypeError(f"{name} must be a collection of str, got str")
    frozen = frozenset(values)
    for value in frozen:
        validate_str_not_empty(value, name)
    return frozen


@dataclass(frozen=True, slots=True)
class Filter:
    """Immutable query predicate.

    ``None`` means "no constraint" for every field. An empty collection is a
    constraint that nothing satisfies, matching relay behaviour.

    Attributes:
        ids: Allowed event ids.
        kinds: Allowed event kinds.
        authors: Allowed author public keys.
        tag_filters: Single-letter tag name to allowed first values
            (serialized as ``#e``, ``#p``, ...).
        since: Inclusive lower bound on ``created_at``.
        until: Inclusive upper bound on ``created_at``.
        limit: Maximum number of events each relay should return.

    Raises:
        ValueError: If ``limit``/``since``/``until`` is negative, a kind is out
            of range, or a tag filter name is not a single letter.
    """

    ids: frozenset[str] | None = None
    kinds: frozenset[int] | None = None
    authors: frozenset[str] | None = None
    tag_filters: Mapping[str, frozenset[str]] = field(default_factory=dict, hash=False)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", _freeze_strs(self.ids, "ids"))
        object.__setattr__(self, "authors", _freeze_strs(self.authors, "authors"))
        if self.kinds is not None:
            kinds = frozenset(self.kinds)
            for kind in kinds:
                validate_kind(kind, "kinds")
            object.__setattr__(self, "kinds", kinds)

        tag_filters: dict[str, frozenset[str]] = {}
        for name, values in dict(self.tag_filters).items():
            key = name.removeprefix("#")
            if len(key) != 1 or not key.isalpha():
                raise ValueError(f"tag filter name must be a single letter, got {name!r}")
            tag_filters[key] = _freeze_strs(values, f"#{key}") or frozenset()
        object.__setattr__(self, "tag_filters", tag_filters)

        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_int(value, name)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire JSON object. Collections are sorted for stable output."""
        data: dict[str, Any] = {}
        if self.ids is not None:
            data["ids"] = sorted(self.ids)
        if self.kinds is not None:
            data["kinds"] = sorted(self.kinds)
        if self.authors is not None:
            data["authors"] = sorted(self.authors)
        for name in sorted(self.tag_filters):
            data[f"#{name}"] = sorted(self.tag_filters[name])
        if self.since is not None:
            data["since"] = self.since
        if self.until is not None:
            data["until"] = self.until
        if self.limit is not None:
            data["limit"] = self.limit
        return data

    def matches(self, event: Event) -> bool:
        """Whether *event* satisfies every constraint except ``limit``."""
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for name, allowed in self.tag_filters.items():
            if not any(value in allowed for value in event.tag_values(name)):
                return False
        return True


def matches_any(filters: Iterable[Filter], event: Event) -> bool:
    """Whether *event* satisfies at least one of *filters*."""
    return any(f.matches(event) for f in filters)
