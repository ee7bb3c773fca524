"""
Tests for TTLCache: expiry, single-flight refill under concurrency, stale fallback, sweep.
"""

from __future__ import annotations

import threading
import time

import pytest

from signum_explorer.core.exceptions import TransportError
from signum_explorer.signum_api.cache import TTLCache


def test_two_reads_within_ttl_call_loader_once(clock):
    cache: TTLCache[str, int] = TTLCache("account", 180, clock=clock)
    calls = []

    def loader():
        calls.append(1)
        return len(calls)

    assert cache.get("acc", loader) == 1
    clock.advance(179)
    assert cache.get("acc", loader) == 1
    assert len(calls) == 1

    clock.advance(1)
    assert cache.get("acc", loader) == 2
    assert len(calls) == 2


def test_keys_are_independent(clock):
    cache: TTLCache[tuple, str] = TTLCache("transactions", 60, clock=clock)
    assert cache.get(("a", 0, None), lambda: "payments") == "payments"
    assert cache.get(("a", 20, None), lambda: "mining") == "mining"
    assert cache.get(("a", 0, None), lambda: "other") == "payments"
    assert len(cache) == 2


@pytest.mark.parametrize("readers", [2, 8, 32])
def test_concurrent_stale_reads_refill_once(readers):
    cache: TTLCache[str, str] = TTLCache("account", 60)
    calls = []
    calls_lock = threading.Lock()
    barrier = threading.Barrier(readers)
    results = []

    def slow_loader():
        with calls_lock:
            calls.append(1)
        time.sleep(0.05)
        return "value"

    def reader():
        barrier.wait()
        results.append(cache.get("acc", slow_loader))

    threads = [threading.Thread(target=reader) for _ in range(readers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    assert len(calls) == 1
    assert results == ["value"] * readers


def test_loader_error_propagates_and_nothing_is_cached(clock):
    cache: TTLCache[str, int] = TTLCache("blocks", 60, clock=clock)

    def failing():
        raise TransportError("boom", kind="timeout")

    with pytest.raises(TransportError):
        cache.get("acc", failing)
    assert cache.peek("acc") is None
    assert cache.get("acc", lambda: 3) == 3


def test_allow_stale_serves_previous_value_on_refill_failure(clock):
    cache: TTLCache[str, int] = TTLCache("suggest_fee", 60, clock=clock)
    cache.put("latest", 735000)
    clock.advance(61)

    def failing():
        raise TransportError("boom", kind="timeout")

    assert cache.get("latest", failing, allow_stale=True) == 735000
    with pytest.raises(TransportError):
        cache.get("latest", failing)


def test_invalidate_and_clear(clock):
    cache: TTLCache[str, int] = TTLCache("account", 60, clock=clock)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.invalidate("a")
    assert cache.peek("a") is None
    assert cache.get("a", lambda: 10) == 10
    cache.clear()
    assert len(cache) == 0


def test_sweep_removes_only_old_entries(clock):
    cache: TTLCache[str, int] = TTLCache("account", 60, clock=clock)
    cache.put("old", 1)
    clock.advance(500)
    cache.put("new", 2)
    clock.advance(200)
    assert cache.sweep(600) == 1
    assert cache.peek("old") is None
    assert cache.peek("new").value == 2


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        TTLCache("account", 0)
