"""Tests for usage counters and the sliding-window rate limiter."""

from __future__ import annotations

import threading

from aiengine.counters import InMemoryCounterService, RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestInMemoryCounterService:
    def test_increment_returns_new_value(self):
        counters = InMemoryCounterService()
        assert counters.increment("a") == 1
        assert counters.increment("a", 5) == 6
        assert counters.get("a") == 6

    def test_unknown_key_is_zero(self):
        assert InMemoryCounterService().get("nobody") == 0

    def test_keys_are_independent(self):
        counters = InMemoryCounterService()
        counters.increment("a")
        counters.increment("b", 3)
        assert counters.snapshot() == {"a": 1, "b": 3}

    def test_concurrent_increments_are_not_lost(self):
        counters = InMemoryCounterService()

        def work():
            for _ in range(1000):
                counters.increment("shared")

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counters.get("shared") == 8000


class TestRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = RateLimiter(limit=2, window=60, clock=FakeClock())
        assert limiter.hit("k") == (True, 1)
        assert limiter.hit("k") == (True, 0)
        assert limiter.hit("k") == (False, 0)

    def test_window_slides(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=1, window=60, clock=clock)
        assert limiter.hit("k")[0]
        clock.now += 30
        assert not limiter.hit("k")[0]
        assert limiter.retry_after("k") == 30
        clock.now += 30
        assert limiter.hit("k")[0]

    def test_keys_are_limited_separately(self):
        limiter = RateLimiter(limit=1, window=60, clock=FakeClock())
        assert limiter.hit("a")[0]
        assert limiter.hit("b")[0]
        assert not limiter.hit("a")[0]

    def test_retry_after_without_hits_is_zero(self):
        assert RateLimiter(clock=FakeClock()).retry_after("fresh") == 0

    def test_retry_after_is_at_least_one_second(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=1, window=60, clock=clock)
        limiter.hit("k")
        clock.now += 59.9
        assert limiter.retry_after("k") == 1

    def test_expired_keys_are_forgotten(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=1, window=60, clock=clock)
        assert limiter.hit("k")[0]
        clock.now += 61

        assert limiter.retry_after("k") == 0
        assert "k" not in limiter._hits

    def test_forgotten_key_is_tracked_again(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=1, window=60, clock=clock)
        limiter.hit("k")
        clock.now += 61
        limiter.retry_after("k")

        assert limiter.hit("k") == (True, 0)
        assert not limiter.hit("k")[0]
        assert limiter.retry_after("k") == 60
