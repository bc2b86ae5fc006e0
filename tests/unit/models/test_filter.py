"""
Unit tests for models.filter module.

Tests:
- Filter construction and validation
- to_dict() wire format
- matches() / matches_any() local evaluation
"""

import pytest

from dvmkit.models import Event, Filter
from dvmkit.models.filter import matches_any


def _event(kind: int = 6100, created_at: int = 100, tags=(("e", "a" * 64),)) -> Event:
    return Event(
        id="b" * 64,
        pubkey="c" * 64,
        created_at=created_at,
        kind=kind,
        tags=tags,
        content="",
        sig="d" * 128,
    )


# =============================================================================
# Construction Tests
# =============================================================================


class TestFilterConstruction:
    def test_collections_frozen(self) -> None:
        f = Filter(ids=["a" * 64], kinds=[1, 1], tag_filters={"#e": ["x"]})
        assert f.ids == frozenset({"a" * 64})
        assert f.kinds == frozenset({1})
        assert f.tag_filters == {"e": frozenset({"x"})}

    @pytest.mark.parametrize(
        ("kwargs", "error"),
        [
            ({"kinds": [70_000]}, ValueError),
            ({"limit": -1}, ValueError),
            ({"since": -5}, ValueError),
            ({"tag_filters": {"ee": ["x"]}}, ValueError),
            ({"tag_filters": {"1": ["x"]}}, ValueError),
            ({"authors": "abc"}, TypeError),
            ({"ids": [""]}, ValueError),
        ],
    )
    def test_invalid(self, kwargs: dict, error: type[Exception]) -> None:
        with pytest.raises(error):
            Filter(**kwargs)


class TestToDict:
    def test_empty(self) -> None:
        assert Filter().to_dict() == {}

    def test_sorted_output(self) -> None:
        f = Filter(kinds=[7000, 6100], authors=["b", "a"], tag_filters={"p": ["z", "y"]}, limit=5)
        assert f.to_dict() == {
            "kinds": [6100, 7000],
            "authors": ["a", "b"],
            "#p": ["y", "z"],
            "limit": 5,
        }

    def test_empty_collection_kept(self) -> None:
        assert Filter(ids=[]).to_dict() == {"ids": []}


# =============================================================================
# Matching Tests
# =============================================================================


class TestMatches:
    def test_unconstrained_matches(self) -> None:
        assert Filter().matches(_event())

    @pytest.mark.parametrize(
        ("f", "expected"),
        [
            (Filter(kinds=[6100]), True),
            (Filter(kinds=[6101]), False),
            (Filter(authors=["c" * 64]), True),
            (Filter(authors=["e" * 64]), False),
            (Filter(ids=["b" * 64]), True),
            (Filter(since=100, until=100), True),
            (Filter(since=101), False),
            (Filter(until=99), False),
            (Filter(tag_filters={"e": ["a" * 64, "f" * 64]}), True),
            (Filter(tag_filters={"e": ["f" * 64]}), False),
            (Filter(tag_filters={"p": ["a" * 64]}), False),
            (Filter(ids=[]), False),
        ],
    )
    def test_constraints(self, f: Filter, expected: bool) -> None:
        assert f.matches(_event()) is expected

    def test_limit_ignored_locally(self) -> None:
        assert Filter(limit=0).matches(_event())

    def test_matches_any(self) -> None:
        filters = [Filter(kinds=[1]), Filter(kinds=[6100])]
        assert matches_any(filters, _event())
        assert not matches_any(filters[:1], _event())
        assert not matches_any([], _event())
