"""Sliding-window rate limiter for the auth and store boundaries."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Hashable

from safecampus.core.errors import RateLimitError

WINDOW_SEC = 60.0


class SlidingWindowLimiter:
    """Allow at most `limit` hits per key inside a rolling window."""

    def __init__(
        self,
        limit: int,
        window_sec: float = WINDOW_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window = window_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[Hashable, deque[float]] = {}
        self._next_sweep = clock() + window_sec

    def __len__(self) -> int:
        """Number of keys with hits still inside the window."""
        with self._lock:
            return len(self._hits)

    def hit(self, key: Hashable) -> None:
        """Record one hit for key, raising RateLimitError if over the limit."""
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            hits = self._hits.setdefault(key, deque())
            self._prune(hits, now)
            if len(hits) >= self._limit:
                retry_after = self._window - (now - hits[0])
                raise RateLimitError("Rate limit exceeded", retry_after=max(retry_after, 0.0))
            hits.append(now)

    def reset(self, key: Hashable | None = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    def _prune(self, hits: deque[float], now: float) -> None:
        while hits and now - hits[0] >= self._window:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        # Drop keys whose every hit has aged out
        for key in list(self._hits):
            hits = self._hits[key]
            self._prune(hits, now)
            if not hits:
                del self._hits[key]
        self._next_sweep = now + self._window
