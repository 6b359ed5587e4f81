"""Unit tests for cursor pagination."""

import pytest

from app.previewsync.pagination import CursorPager


def make_fetcher(ids):
    """Page fetcher over sorted ids that records every call."""
    calls = []
    items = [{"$id": i} for i in sorted(ids)]

    def fetch(limit, cursor):
        calls.append((limit, cursor))
        remaining = [item for item in items if cursor is None or item["$id"] > cursor]
        return remaining[:limit]

    return fetch, calls


@pytest.mark.unit
class TestCursorPager:
    """Test CursorPager."""

    def test_short_last_page_ends_iteration(self) -> None:
        fetch, calls = make_fetcher(["a", "b", "c", "d", "e"])
        ids = [item["$id"] for item in CursorPager(fetch, page_size=2)]
        assert ids == ["a", "b", "c", "d", "e"]
        assert calls == [(2, None), (2, "b"), (2, "d")]

    def test_empty_page_ends_iteration(self) -> None:
        fetch, calls = make_fetcher(["a", "b", "c", "d"])
        assert len(list(CursorPager(fetch, page_size=2))) == 4
        assert calls == [(2, None), (2, "b"), (2, "d")]

    def test_empty_listing(self) -> None:
        fetch, calls = make_fetcher([])
        assert list(CursorPager(fetch, page_size=100)) == []
        assert calls == [(100, None)]

    def test_restartable(self) -> None:
        fetch, calls = make_fetcher(["a", "b", "c"])
        pager = CursorPager(fetch, page_size=2)
        assert list(pager) == list(pager)
        assert calls.count((2, None)) == 2

    def test_lazy(self) -> None:
        fetch, calls = make_fetcher(["a", "b", "c", "d", "e"])
        iterator = iter(CursorPager(fetch, page_size=2))
        assert next(iterator)["$id"] == "a"
        assert calls == [(2, None)]

    def test_rejects_non_positive_page_size(self) -> None:
        fetch, _ = make_fetcher([])
        with pytest.raises(ValueError):
            CursorPager(fetch, page_size=0)

    def test_fetch_errors_propagate(self) -> None:
        def fetch(limit, cursor):
            raise RuntimeError("listing down")

        with pytest.raises(RuntimeError):
            list(CursorPager(fetch, page_size=2))
