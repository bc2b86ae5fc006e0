"""
Unit tests for nips.nip04 module.

Tests:
- derive_shared_secret() symmetry and key validation
- encrypt() / decrypt() envelope format and failure modes
- CryptoChannel convenience wrapper
"""

import base64

import pytest
from nostr_sdk import Keys

from dvmkit.core.exceptions import DecryptError, EncryptError
from dvmkit.nips import nip04


def _secret(a: Keys, b: Keys) -> bytes:
    return nip04.derive_shared_secret(a.secret_key().to_hex(), b.public_key().to_hex())


# =============================================================================
# Shared Secret Tests
# =============================================================================


class TestDeriveSharedSecret:
    def test_symmetric(self, keys: Keys, other_keys: Keys) -> None:
        assert _secret(keys, other_keys) == _secret(other_keys, keys)

    def test_length(self, keys: Keys, other_keys: Keys) -> None:
        assert len(_secret(keys, other_keys)) == nip04.SECRET_LENGTH

    def test_malformed_key(self, keys: Keys) -> None:
        with pytest.raises(EncryptError):
            nip04.derive_shared_secret(keys.secret_key().to_hex(), "xyz")

    def test_off_curve_key(self, keys: Keys) -> None:
        with pytest.raises(EncryptError):
            nip04.derive_shared_secret(keys.secret_key().to_hex(), "f" * 64)


# =============================================================================
# Encrypt / Decrypt Tests
# =============================================================================


class TestEncryptDecrypt:
    def test_round_trip(self, keys: Keys, other_keys: Keys) -> None:
        envelope = nip04.encrypt(_secret(keys, other_keys), "hola, ¿qué tal? 👋")
        assert nip04.decrypt(_secret(other_keys, keys), envelope) == "hola, ¿qué tal? 👋"

    def test_envelope_format(self, keys: Keys, other_keys: Keys) -> None:
        envelope = nip04.encrypt(_secret(keys, other_keys), "x")
        ciphertext, iv = envelope.split("?iv=")
        assert len(base64.b64decode(iv)) == nip04.IV_LENGTH
        assert len(base64.b64decode(ciphertext)) % 16 == 0

    def test_fresh_iv_per_message(self, keys: Keys, other_keys: Keys) -> None:
        secret = _secret(keys, other_keys)
        assert nip04.encrypt(secret, "same") != nip04.encrypt(secret, "same")

    def test_empty_plaintext(self, keys: Keys, other_keys: Keys) -> None:
        secret = _secret(keys, other_keys)
        assert nip04.decrypt(secret, nip04.encrypt(secret, "")) == ""

    def test_wrong_key_fails(self, keys: Keys, other_keys: Keys) -> None:
        envelope = nip04.encrypt(_secret(keys, other_keys), "secret message " * 8)
        stranger = Keys.generate()
        with pytest.raises(DecryptError):
            nip04.decrypt(_secret(stranger, keys), envelope)

    @pytest.mark.parametrize(
        "envelope",
        [
            "no-separator",
            "a?iv=b?iv=c",
            "!!!?iv=AAAAAAAAAAAAAAAAAAAAAA==",
            "AAAAAAAAAAAAAAAAAAAAAA==?iv=AAAA",
            "AAAA?iv=AAAAAAAAAAAAAAAAAAAAAA==",
        ],
        ids=["separator", "two-separators", "base64", "iv-length", "block-length"],
    )
    def test_malformed_envelope(self, keys: Keys, other_keys: Keys, envelope: str) -> None:
        with pytest.raises(DecryptError):
            nip04.decrypt(_secret(keys, other_keys), envelope)

    def test_secret_length_checked(self) -> None:
        with pytest.raises(EncryptError):
            nip04.encrypt(b"short", "x")
        with pytest.raises(DecryptError):
            nip04.decrypt(b"short", "a?iv=b")

    def test_unencodable_plaintext(self, keys: Keys, other_keys: Keys) -> None:
        with pytest.raises(EncryptError):
            nip04.encrypt(_secret(keys, other_keys), "lone \ud800 surrogate")


# =============================================================================
# CryptoChannel Tests
# =============================================================================


class TestCryptoChannel:
    def test_both_sides_agree(self, keys: Keys, other_keys: Keys) -> None:
        alice = nip04.CryptoChannel(keys, other_keys.public_key().to_hex())
        bob = nip04.CryptoChannel(other_keys, keys.public_key().to_hex())

        assert bob.decrypt(alice.encrypt("ping")) == "ping"
        assert alice.decrypt(bob.encrypt("pong")) == "pong"

    def test_repr_hides_secret(self, keys: Keys, other_keys: Keys) -> None:
        channel = nip04.CryptoChannel(keys, other_keys.public_key().to_hex())
        text = repr(channel)
        assert keys.secret_key().to_hex() not in text
        assert "CryptoChannel(" in text
