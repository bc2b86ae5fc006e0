"""Unit tests for models.tags (typed tag parsing and serialization)."""

import pytest

from dvmkit.models.tags import (
    AmountTag,
    BidTag,
    EncryptedTag,
    ETag,
    InputTag,
    NonceTag,
    OutputTag,
    ParamTag,
    PTag,
    RawTag,
    StatusTag,
    parse_tag,
)


class TestParseTag:
    @pytest.mark.parametrize(
        ("values", "expected"),
        [
            (["e", "abc"], ETag("abc")),
            (["e", "abc", "wss://r", "request"], ETag("abc", "wss://r", "request")),
            (["p", "abc", "wss://r"], PTag("abc", "wss://r")),
            (["i", "hello", "text"], InputTag("hello", "text")),
            (["i", "id", "event", "wss://r", "source"], InputTag("id", "event", "wss://r", "source")),
            (["output", "text/plain"], OutputTag("text/plain")),
            (["param", "lang", "en"], ParamTag("lang", "en")),
            (["status", "error", "boom"], StatusTag("error", "boom")),
            (["encrypted"], EncryptedTag()),
            (["bid", "5000"], BidTag(5000)),
            (["amount", "21", "lnbc1..."], AmountTag(21, "lnbc1...")),
            (["nonce", "7", "16"], NonceTag(7, 16)),
        ],
    )
    def test_known_tags(self, values: list[str], expected) -> None:
        assert parse_tag(values) == expected

    @pytest.mark.parametrize(
        "values",
        [
            [],
            ["e"],
            ["i", "only-data"],
            ["bid", "lots"],
            ["nonce", "1", "x"],
            ["t", "nostr"],
        ],
        ids=["empty", "short-e", "short-i", "bad-bid", "bad-nonce", "unknown"],
    )
    def test_fallback_to_raw(self, values: list[str]) -> None:
        assert parse_tag(values) == RawTag(tuple(values))

    def test_empty_optional_values_are_none(self) -> None:
        assert parse_tag(["status", "success", ""]) == StatusTag("success", None)


class TestToList:
    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            (ETag("abc"), ["e", "abc"]),
            (ETag("abc", marker="request"), ["e", "abc", "", "request"]),
            (PTag("abc"), ["p", "abc"]),
            (InputTag("x", "text", marker="m"), ["i", "x", "text", "", "m"]),
            (StatusTag("processing"), ["status", "processing"]),
            (AmountTag(10), ["amount", "10"]),
            (BidTag(50_000), ["bid", "50000"]),
            (RawTag(("t", "nostr")), ["t", "nostr"]),
        ],
    )
    def test_serialization(self, tag, expected: list[str]) -> None:
        assert tag.to_list() == expected

    def test_raw_tag_name(self) -> None:
        assert RawTag(("t", "x")).name == "t"
        assert RawTag(()).name == ""
