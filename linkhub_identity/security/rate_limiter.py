"""In-memory sliding window rate limiter."""

from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Callable, Deque, Protocol


class RateLimiter(Protocol):
    """Behaviour shared by every limiter backend."""

    def allow(self, key: str) -> bool: ...

    def reset(self, key: str) -> None: ...


class SlidingWindowRateLimiter:
    """Thread-safe per-process limiter; counts are lost on restart.

    Keys without a hit inside the current window are swept at most once per
    window, so the map only holds keys that were seen recently.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._events: dict[str, Deque[float]] = {}
        self._next_sweep = 0.0
        self._lock = Lock()

    def allow(self, key: str) -> bool:
        """Record a hit for ``key`` and return ``False`` once the window is full."""
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            hits = self._events.get(key)
            if hits is not None:
                self._expire(hits, now)
                if len(hits) >= self._max_requests:
                    return False
            elif self._max_requests < 1:
                return False
            self._events.setdefault(key, deque()).append(now)
            return True

    def reset(self, key: str) -> None:
        """Forget every recorded hit for ``key``."""
        with self._lock:
            self._events.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _expire(self, hits: Deque[float], now: float) -> None:
        while hits and now - hits[0] > self._window:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        for key in list(self._events):
            hits = self._events[key]
            self._expire(hits, now)
            if not hits:
                del self._events[key]
        self._next_sweep = now + self._window
