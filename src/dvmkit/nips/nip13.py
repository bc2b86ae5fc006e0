"""NIP-13 proof of work.

Difficulty is the number of leading zero bits of the event id. Mining adds
a ``["nonce", n, target]`` tag and increments ``n`` until the id reaches
the target.
"""

from __future__ import annotations

from dvmkit.core.exceptions import ValidationError
from dvmkit.models.event import UnsignedEvent
from dvmkit.models.tags import NonceTag

from .nip01 import compute_id


DEFAULT_MAX_ITERATIONS = 5_000_000
MAX_DIFFICULTY = 256


def difficulty(event_id: str) -> int:
    """Count the leading zero bits of a hex event id."""
    bits = 0
    for char in event_id:
        nibble = int(char, 16)
        if nibble:
            return bits + 4 - nibble.bit_length()
        bits += 4
    return bits


def mine(
    unsigned: UnsignedEvent,
    target: int,
    *,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> UnsignedEvent:
    """Return a copy of *unsigned* whose id has at least *target* leading zero bits.

    Any existing ``nonce`` tag is replaced. A target of 0 returns *unsigned*
    unchanged.

    Raises:
        ValidationError: If *target* is out of range or no nonce reached it
            within *max_iterations* attempts.
    """
    if not 0 <= target <= MAX_DIFFICULTY:
        raise ValidationError(f"pow target must be in 0-{MAX_DIFFICULTY}, got {target}")
    if target == 0:
        return unsigned

    base_tags = [tag for tag in unsigned.tags if tag[0] != NonceTag.NAME]
    for nonce in range(max_iterations):
        candidate = unsigned.with_tags([*base_tags, NonceTag(nonce, target).to_list()])
        if difficulty(compute_id(candidate)) >= target:
            return candidate
    raise ValidationError(f"pow target {target} not reached in {max_iterations} iterations")
