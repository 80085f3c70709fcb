"""Unit tests for the in-memory ResponseCache."""

import threading

import pytest

from fakes import FakeClock
from feed_proxy.schemas.proxy import JobResult
from feed_proxy.utils.response_cache import (
    ResponseCache,
    post_key,
    timeline_key,
    user_key,
)


def _result(value: str, status: int = 200) -> JobResult:
    return JobResult(status=status, data={"id": value})


def test_set_then_get_returns_value() -> None:
    cache = ResponseCache(max_entries=10)
    cache.set("k", _result("1"), ttl_seconds=10)

    assert cache.get("k") == _result("1")


def test_get_updates_hit_miss_counters() -> None:
    cache = ResponseCache(max_entries=10)

    assert cache.get("missing") is None
    cache.set("k", _result("1"), ttl_seconds=10)
    cache.get("k")

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["entries"] == 1


def test_entry_expires_after_ttl_without_eviction(clock: FakeClock) -> None:
    cache = ResponseCache(max_entries=10, clock=clock)
    cache.set("k", _result("1"), ttl_seconds=5)

    clock.advance(4.9)
    assert cache.get("k") is not None

    clock.advance(0.1)
    assert cache.get("k") is None

    stats = cache.stats()
    assert stats["expirations"] == 1
    assert stats["evictions"] == 0
    assert stats["entries"] == 0


def test_entries_have_independent_ttls(clock: FakeClock) -> None:
    cache = ResponseCache(max_entries=10, clock=clock)
    cache.set("short", _result("s"), ttl_seconds=1)
    cache.set("long", _result("l"), ttl_seconds=100)

    clock.advance(2)

    assert cache.get("short") is None
    assert cache.get("long") == _result("l")


def test_overwriting_key_refreshes_ttl(clock: FakeClock) -> None:
    cache = ResponseCache(max_entries=10, clock=clock)
    cache.set("k", _result("old"), ttl_seconds=5)
    clock.advance(4)
    cache.set("k", _result("new"), ttl_seconds=5)
    clock.advance(4)

    assert cache.get("k") == _result("new")


def test_lru_eviction_removes_least_recently_used() -> None:
    cache = ResponseCache(max_entries=2)
    cache.set("a", _result("a"), ttl_seconds=100)
    cache.set("b", _result("b"), ttl_seconds=100)

    # Reading "a" makes "b" the least recently used
    assert cache.get("a") == _result("a")

    cache.set("c", _result("c"), ttl_seconds=100)

    assert cache.get("b") is None
    assert cache.get("a") == _result("a")
    assert cache.get("c") == _result("c")
    assert cache.stats()["evictions"] == 1


def test_eviction_ignores_remaining_ttl() -> None:
    cache = ResponseCache(max_entries=1)
    cache.set("long-lived", _result("1"), ttl_seconds=10_000)
    cache.set("short-lived", _result("2"), ttl_seconds=1)

    assert cache.get("long-lived") is None
    assert cache.get("short-lived") == _result("2")


def test_negative_results_are_stored_verbatim() -> None:
    cache = ResponseCache(max_entries=10)
    not_found = JobResult(status=404, data={"error": "User not found"})
    cache.set("k", not_found, ttl_seconds=60)

    assert cache.get("k") == not_found


def test_clear_resets_state() -> None:
    cache = ResponseCache(max_entries=10)
    cache.set("a", _result("a"), ttl_seconds=10)
    cache.get("a")
    cache.get("b")

    cache.clear()

    stats = cache.stats()
    assert stats["entries"] == 0
    assert stats["hits"] == 0
    assert stats["misses"] == 0
    assert len(cache) == 0


def test_invalid_capacity() -> None:
    with pytest.raises(ValueError):
        ResponseCache(max_entries=0)


def test_thread_safety_under_concurrent_sets() -> None:
    cache = ResponseCache(max_entries=None)
    total_keys = 50

    def _writer(idx: int) -> None:
        cache.set(f"k-{idx}", _result(str(idx)), ttl_seconds=30)

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(total_keys)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.stats()["entries"] == total_keys
    assert cache.get("k-0") == _result("0")
    assert cache.get("k-49") == _result("49")


class TestCacheKeys:
    """Key builders must be deterministic and collision-free."""

    def test_keys_are_namespaced(self) -> None:
        assert user_key("alice") == "usernames:alice"
        assert post_key("123") == "tweets:123"
        assert timeline_key("42") == "users:42:tweets:last"

    def test_same_request_same_key(self) -> None:
        assert timeline_key("42", "abc") == timeline_key("42", "abc")
        assert user_key("alice") == user_key("alice")

    def test_cursor_is_part_of_timeline_key(self) -> None:
        assert timeline_key("42", "abc") != timeline_key("42", "def")
        assert timeline_key("42", "abc") != timeline_key("42")

    def test_literal_sentinel_cursor_does_not_collide_with_latest_page(self) -> None:
        assert timeline_key("42", "last") != timeline_key("42")

    def test_separator_in_identifier_does_not_collide(self) -> None:
        assert timeline_key("1:tweets:cursor=x") != timeline_key("1", "x")
        assert user_key("a:b") == "usernames:a%3Ab"
        assert user_key("a%3Ab") != user_key("a:b")

    def test_namespaces_do_not_overlap(self) -> None:
        assert user_key("1") != post_key("1")
