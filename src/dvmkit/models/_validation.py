"""Shared validation helpers for frozen dataclass models.

Private module -- not part of the public API. Used by ``__post_init__``
methods in sibling model modules to enforce runtime type constraints,
hex encodings and null-byte safety.
"""

from __future__ import annotations

import string
from collections.abc import Iterable
from typing import Any

from .constants import EVENT_KIND_MAX


_HEX_DIGITS = frozenset(string.hexdigits.lower())

HEX32_LENGTH = 64
HEX64_LENGTH = 128


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_int(value: Any, name: str, *, minimum: int = 0, maximum: int | None = None) -> None:
    """Raise if *value* is not an ``int`` (``bool`` excluded) within bounds."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got {value}")


def validate_timestamp(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    validate_int(value, name)


def validate_kind(value: Any, name: str = "kind") -> None:
    """Raise if *value* is not a valid event kind (0-65535)."""
    validate_int(value, name, maximum=EVENT_KIND_MAX)


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-empty ``str`` without null bytes."""
    validate_str_no_null(value, name)
    if not value:
        raise ValueError(f"{name} must not be empty")


def is_hex(value: Any, length: int) -> bool:
    """Return True if *value* is a lowercase hex string of exactly *length* chars."""
    return isinstance(value, str) and len(value) == length and set(value) <= _HEX_DIGITS


def validate_hex(value: Any, name: str, length: int = HEX32_LENGTH) -> None:
    """Raise if *value* is not a lowercase hex string of *length* characters."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if not is_hex(value, length):
        raise ValueError(f"{name} must be {length} lowercase hex characters")


def freeze_tags(tags: Iterable[Iterable[str]], name: str = "tags") -> tuple[tuple[str, ...], ...]:
    """Convert nested tag sequences to tuples, validating every value.

    Raises:
        TypeError: If a tag is a bare string or a value is not a ``str``.
        ValueError: If a tag is empty or a value contains null bytes.
    """
    frozen: list[tuple[str, ...]] = []
    for index, tag in enumerate(tags):
        if isinstance(tag, str):
            raise TypeError(f"{name}[{index}] must be a sequence of str, got str")
        values = tuple(tag)
        if not values:
            raise ValueError(f"{name}[{index}] must not be empty")
        for value in values:
            validate_str_no_null(value, f"{name}[{index}]")
        frozen.append(values)
    return tuple(frozen)
