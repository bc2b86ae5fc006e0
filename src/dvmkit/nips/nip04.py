"""NIP-04 shared-secret encryption.

Two parties derive the same 32-byte secret with secp256k1 ECDH (the
x-coordinate of the shared point) and exchange AES-256-CBC cipher-texts
in the envelope::

    base64(ciphertext) + "?iv=" + base64(iv)

A fresh random 16-byte IV is drawn for every message, so encrypting the
same plaintext twice yields different envelopes.

Note:
    This is the encryption scheme job requests and results use. It provides
    confidentiality only: integrity comes from the signature on the
    enclosing event.
"""

from __future__ import annotations

import base64
import binascii
import os
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from dvmkit.core.exceptions import DecryptError, EncryptError
from dvmkit.models._validation import is_hex


if TYPE_CHECKING:
    from nostr_sdk import Keys


SECRET_LENGTH = 32
IV_LENGTH = 16
_BLOCK_BITS = 128
_IV_SEPARATOR = "?iv="


def derive_shared_secret(private_key_hex: str, public_key_hex: str) -> bytes:
    """Derive the 32-byte ECDH secret between a private key and an x-only public key.

    Symmetric: ``derive_shared_secret(a, B) == derive_shared_secret(b, A)``.

    Raises:
        EncryptError: If either key is malformed or the public key is not a
            point on the curve.
    """
    if not is_hex(private_key_hex, 64) or not is_hex(public_key_hex, 64):  # noqa: PLR2004
        raise EncryptError("keys must be 64 lowercase hex characters")
    try:
        private_key = ec.derive_private_key(int(private_key_hex, 16), ec.SECP256K1())
        public_key = ec.EllipticCurvePublicKey.from_encoded_point(
            ec.SECP256K1(), b"\x02" + bytes.fromhex(public_key_hex)
        )
        return private_key.exchange(ec.ECDH(), public_key)
    except ValueError as e:
        raise EncryptError(f"key agreement failed: {e}") from e


def _check_secret(secret: bytes, error: type[EncryptError | DecryptError]) -> None:
    if not isinstance(secret, bytes) or len(secret) != SECRET_LENGTH:
        raise error(f"shared secret must be {SECRET_LENGTH} bytes")


def encrypt(secret: bytes, plaintext: str) -> str:
    """Encrypt *plaintext* under *secret* and return the NIP-04 envelope.

    Raises:
        EncryptError: If *secret* is not 32 bytes or *plaintext* cannot be
            encoded as UTF-8 (lone surrogates).
    """
    _check_secret(secret, EncryptError)
    try:
        data = plaintext.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncryptError("plaintext is not encodable as UTF-8") from e
    iv = os.urandom(IV_LENGTH)
    padder = padding.PKCS7(_BLOCK_BITS).padder()
    padded = padder.update(data) + padder.finalize()
    encryptor = Cipher(algorithms.AES(secret), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return (
        base64.b64encode(ciphertext).decode("ascii")
        + _IV_SEPARATOR
        + base64.b64encode(iv).decode("ascii")
    )


def decrypt(secret: bytes, envelope: str) -> str:
    """Decrypt a NIP-04 envelope under *secret*.

    Never returns partial output.

    Raises:
        DecryptError: On a malformed envelope, a wrong IV length, bad padding
            (typically a wrong key) or plaintext that is not UTF-8.
    """
    _check_secret(secret, DecryptError)
    if not isinstance(envelope, str) or envelope.count(_IV_SEPARATOR) != 1:
        raise DecryptError("malformed envelope: expected '<ciphertext>?iv=<iv>'")
    ct_b64, iv_b64 = envelope.split(_IV_SEPARATOR)
    try:
        ciphertext = base64.b64decode(ct_b64, validate=True)
        iv = base64.b64decode(iv_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptError(f"malformed envelope: {e}") from e
    if len(iv) != IV_LENGTH:
        raise DecryptError(f"iv must be {IV_LENGTH} bytes, got {len(iv)}")
    if not ciphertext or len(ciphertext) % IV_LENGTH:
        raise DecryptError("ciphertext length is not a multiple of the block size")

    decryptor = Cipher(algorithms.AES(secret), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    try:
        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        data = unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptError("bad padding (wrong key?)") from e
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptError("plaintext is not valid UTF-8") from e


class CryptoChannel:
    """Encryption channel between a local keypair and one counterparty.

    The shared secret is derived once on construction and never exposed in
    ``repr()``.

    Raises:
        EncryptError: If the counterparty public key is not a curve point.
    """

    __slots__ = ("_secret", "counterparty_pubkey", "local_pubkey")

    def __init__(self, keys: Keys, counterparty_pubkey: str) -> None:
        self.local_pubkey: str = keys.public_key().to_hex()
        self.counterparty_pubkey = counterparty_pubkey
        self._secret = derive_shared_secret(keys.secret_key().to_hex(), counterparty_pubkey)

    def __repr__(self) -> str:
        return (
            f"CryptoChannel(local={self.local_pubkey[:16]}..., "
            f"counterparty={self.counterparty_pubkey[:16]}...)"
        )

    def encrypt(self, plaintext: str) -> str:
        return encrypt(self._secret, plaintext)

    def decrypt(self, envelope: str) -> str:
        return decrypt(self._secret, envelope)
