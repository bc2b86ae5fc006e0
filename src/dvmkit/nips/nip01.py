"""NIP-01 event codec: canonical serialization, ids, signatures.

An event id is the SHA-256 of the canonical serialization

```text
[0, pubkey, created_at, kind, tags, content]
```

encoded as compact JSON (no whitespace, non-ASCII characters kept as
UTF-8). The signature is a BIP-340 Schnorr signature over the 32-byte id,
produced and checked with ``nostr_sdk``.

Examples:
    ```python
    keys = generate_keys()
    unsigned = build_unsigned(keys.public_key().to_hex(), kind=1, content="hi")
    event = sign_event(unsigned, keys)
    assert verify_event(event)
    ```

See Also:
    [dvmkit.models.event.Event][dvmkit.models.event.Event]: The value type
        produced and checked here.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING

from nostr_sdk import Event as NostrEvent
from nostr_sdk import NostrSdkError

from dvmkit.core.exceptions import SigningError, VerifyError
from dvmkit.models.event import Event, UnsignedEvent


if TYPE_CHECKING:
    from nostr_sdk import Keys


logger = logging.getLogger(__name__)


def serialize(unsigned: UnsignedEvent) -> bytes:
    """Return the canonical UTF-8 serialization hashed into the event id."""
    payload = [
        0,
        unsigned.pubkey,
        unsigned.created_at,
        unsigned.kind,
        [list(tag) for tag in unsigned.tags],
        unsigned.content,
    ]
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_id(unsigned: UnsignedEvent) -> str:
    """Return the event id: lowercase hex SHA-256 of the canonical serialization."""
    return hashlib.sha256(serialize(unsigned)).hexdigest()


def build_unsigned(
    pubkey: str,
    kind: int,
    tags: Iterable[Iterable[str]] = (),
    content: str = "",
    created_at: int | None = None,
) -> UnsignedEvent:
    """Build an [UnsignedEvent][dvmkit.models.event.UnsignedEvent], stamped now by default."""
    return UnsignedEvent(
        pubkey=pubkey,
        created_at=int(time.time()) if created_at is None else created_at,
        kind=kind,
        tags=tuple(tuple(tag) for tag in tags),
        content=content,
    )


def sign_event(unsigned: UnsignedEvent, keys: Keys) -> Event:
    """Compute the id of *unsigned* and sign it with *keys*.

    Raises:
        SigningError: If *keys* cannot sign or does not own ``unsigned.pubkey``.
    """
    try:
        pubkey = keys.public_key().to_hex()
    except (NostrSdkError, AttributeError) as e:
        raise SigningError(f"unusable signing keys: {e}") from e
    if pubkey != unsigned.pubkey:
        raise SigningError(f"keys for {pubkey[:16]}... cannot sign for {unsigned.pubkey[:16]}...")

    event_id = compute_id(unsigned)
    try:
        sig = keys.sign_schnorr(bytes.fromhex(event_id))
    except (NostrSdkError, ValueError) as e:
        raise SigningError(f"signing failed: {e}") from e

    return Event(
        id=event_id,
        pubkey=unsigned.pubkey,
        created_at=unsigned.created_at,
        kind=unsigned.kind,
        tags=unsigned.tags,
        content=unsigned.content,
        sig=sig,
    )


def verify_event(event: Event) -> bool:
    """Whether the id of *event* is its content hash and the signature verifies.

    Never raises: any malformed input is reported as ``False``.
    """
    if compute_id(event.unsigned) != event.id:
        return False
    try:
        return bool(NostrEvent.from_json(json.dumps(event.to_dict())).verify())
    except (NostrSdkError, ValueError) as e:
        logger.debug("verify_failed id=%s error=%s", event.id, e)
        return False


def require_valid(event: Event) -> Event:
    """Return *event* unchanged, or raise where [verify_event()][dvmkit.nips.nip01.verify_event] is False.

    Raises:
        VerifyError: If the id or the signature does not check out.
    """
    if not verify_event(event):
        raise VerifyError(f"event {event.id} failed verification")
    return event
