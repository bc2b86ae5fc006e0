"""Nostr protocol codecs: NIP-01 events, NIP-04 encryption, NIP-13 PoW, NIP-90 jobs.

Stateless functions over the [models][dvmkit.models] layer. Nothing in
this package performs network I/O; the relay pool and the job protocol
compose these codecs with the transport.

Attributes:
    nip01: Canonical serialization, event ids, Schnorr signing and
        verification.
    nip04: ECDH shared secret and AES-256-CBC envelope.
    nip13: Proof-of-work difficulty and nonce mining.
    nip90: Job request, result and feedback builders and parsers.

See Also:
    [dvmkit.core.relay_pool][dvmkit.core.relay_pool]: Verifies every
        incoming event with [verify_event()][dvmkit.nips.nip01.verify_event].
    [dvmkit.services.job_protocol][dvmkit.services.job_protocol]: Seals
        requests and parses results with these codecs.
"""

from .nip01 import build_unsigned, compute_id, require_valid, serialize, sign_event, verify_event
from .nip04 import CryptoChannel, decrypt, derive_shared_secret, encrypt
from .nip13 import difficulty, mine
from .nip90 import (
    DecodedJobRequest,
    build_job_feedback,
    build_job_request,
    build_job_result,
    decode_job_request,
    feedback_filter,
    parse_job_feedback,
    parse_job_result,
    request_id_of,
    result_filter,
)


__all__ = [
    "CryptoChannel",
    "DecodedJobRequest",
    "build_job_feedback",
    "build_job_request",
    "build_job_result",
    "build_unsigned",
    "compute_id",
    "decode_job_request",
    "decrypt",
    "derive_shared_secret",
    "difficulty",
    "encrypt",
    "feedback_filter",
    "mine",
    "parse_job_feedback",
    "parse_job_result",
    "request_id_of",
    "require_valid",
    "result_filter",
    "serialize",
    "sign_event",
    "verify_event",
]
