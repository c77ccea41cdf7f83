"""Counter service — per-caller usage counts and sliding-window rate limits.

Injected into the HTTP layer instead of living in module-level maps, so the
core stays testable without shared process state. Every operation is an
atomic read-modify-write for one key; keys never affect each other.

For multiple instances, back ``CounterService`` with Redis INCR instead.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class CounterService(Protocol):
    def increment(self, key: str, amount: int = 1) -> int: ...

    def get(self, key: str) -> int: ...


class InMemoryCounterService:
    """Thread-safe monotonic counters keyed by caller identity."""

    def __init__(self):
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def increment(self, key: str, amount: int = 1) -> int:
        """Add ``amount`` to ``key`` and return the new value."""
        with self._lock:
            value = self._counts.get(key, 0) + amount
            self._counts[key] = value
            return value

    def get(self, key: str) -> int:
        with self._lock:
            return self._counts.get(key, 0)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)


class RateLimiter:
    """Sliding-window limiter: at most ``limit`` hits per ``window`` seconds per key.

    Example:
        >>> limiter = RateLimiter(limit=60)
        >>> limiter.hit("key-123")  # (True, 59)
    """

    def __init__(
        self,
        limit: int = 60,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        logger.info(f"RateLimiter initialized: {limit} requests/{window:g}s")

    def _prune(self, key: str, now: float) -> deque[float]:
        """Drop hits older than the window; keys with no hits left are forgotten."""
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        cutoff = now - self.window
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def hit(self, key: str) -> tuple[bool, int]:
        """Record a request for ``key`` if allowed.

        Returns:
            Tuple of (is_allowed, remaining_requests)
        """
        with self._lock:
            now = self._clock()
            hits = self._prune(key, now)
            if len(hits) >= self.limit:
                logger.warning(f"Rate limit exceeded for: {key[:8]}...")
                return False, 0
            hits.append(now)
            self._hits[key] = hits
            return True, self.limit - len(hits)

    def retry_after(self, key: str) -> int:
        """Seconds until the oldest hit for ``key`` leaves the window."""
        with self._lock:
            now = self._clock()
            hits = self._prune(key, now)
            if not hits:
                return 0
            return max(1, math.ceil(hits[0] + self.window - now))
