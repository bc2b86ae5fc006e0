"""Unit tests for nips.nip13 (proof of work)."""

import pytest
from nostr_sdk import Keys

from dvmkit.core.exceptions import ValidationError
from dvmkit.models import UnsignedEvent
from dvmkit.nips import nip01, nip13


@pytest.fixture
def unsigned(keys: Keys) -> UnsignedEvent:
    return nip01.build_unsigned(keys.public_key().to_hex(), 1, content="work", created_at=1)


class TestDifficulty:
    @pytest.mark.parametrize(
        ("event_id", "bits"),
        [
            ("f" + "0" * 63, 0),
            ("7" + "0" * 63, 1),
            ("1" + "0" * 63, 3),
            ("0" * 4 + "8" + "0" * 59, 16),
            ("0" * 4 + "1" + "0" * 59, 19),
            ("0" * 64, 256),
        ],
    )
    def test_leading_zero_bits(self, event_id: str, bits: int) -> None:
        assert nip13.difficulty(event_id) == bits


class TestMine:
    def test_reaches_target(self, unsigned: UnsignedEvent) -> None:
        mined = nip13.mine(unsigned, 10)

        assert nip13.difficulty(nip01.compute_id(mined)) >= 10
        nonce = mined.first_tag("nonce")
        assert nonce is not None and nonce[2] == "10"

    def test_replaces_existing_nonce(self, unsigned: UnsignedEvent) -> None:
        mined = nip13.mine(unsigned.with_tags([["nonce", "999", "4"], ["t", "x"]]), 4)
        assert [t[0] for t in mined.tags].count("nonce") == 1
        assert ("t", "x") in mined.tags

    def test_zero_target_is_noop(self, unsigned: UnsignedEvent) -> None:
        assert nip13.mine(unsigned, 0) is unsigned

    @pytest.mark.parametrize("target", [-1, 257])
    def test_target_out_of_range(self, unsigned: UnsignedEvent, target: int) -> None:
        with pytest.raises(ValidationError):
            nip13.mine(unsigned, target)

    def test_gives_up_after_max_iterations(self, unsigned: UnsignedEvent) -> None:
        with pytest.raises(ValidationError, match="not reached"):
            nip13.mine(unsigned, 200, max_iterations=10)
