"""Unit tests for models.relay (relay URL normalization)."""

import pytest

from dvmkit.models import Relay


class TestRelayNormalization:
    @pytest.mark.parametrize(
        ("raw", "url"),
        [
            ("wss://relay.example.com", "wss://relay.example.com"),
            ("WSS://Relay.Example.COM/", "wss://relay.example.com"),
            ("wss://relay.example.com:443", "wss://relay.example.com"),
            ("ws://relay.example.com:80/", "ws://relay.example.com"),
            ("ws://localhost:7777", "ws://localhost:7777"),
            ("wss://relay.example.com//nostr//", "wss://relay.example.com/nostr"),
            ("  wss://relay.example.com  ", "wss://relay.example.com"),
            ("wss://[::1]:8080", "wss://[::1]:8080"),
        ],
    )
    def test_normalized_url(self, raw: str, url: str) -> None:
        assert Relay(raw).url == url
        assert str(Relay(raw)) == url

    def test_components(self) -> None:
        relay = Relay("wss://relay.example.com:4848/path")
        assert relay.scheme == "wss"
        assert relay.host == "relay.example.com"
        assert relay.port == 4848
        assert relay.path == "/path"

    def test_ipv6_host_unbracketed(self) -> None:
        assert Relay("wss://[::1]:8080").host == "::1"

    def test_equality_ignores_raw(self) -> None:
        assert Relay("wss://relay.example.com/") == Relay("WSS://relay.example.com")


class TestRelayRejection:
    @pytest.mark.parametrize(
        "raw",
        [
            "https://relay.example.com",
            "relay.example.com",
            "wss://relay.example.com/?x=1",
            "wss://relay.example.com/#frag",
            "wss://",
            "wss://relay\x00.example.com",
        ],
        ids=["scheme", "no-scheme", "query", "fragment", "no-host", "null-byte"],
    )
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(ValueError):
            Relay(raw)

    def test_not_a_string(self) -> None:
        with pytest.raises(TypeError):
            Relay(42)  # type: ignore[arg-type]
