"""Concurrency primitives for the scan gate.

Scans hit several public services per run, so we budget how many
batches may start per time window, and serialize work per domain so
two callers asking for the same domain share one batch.
"""

import asyncio
import math
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Callable, Deque, Dict

from .types import RateLimitDecision


class RateLimiter:
    """Sliding-window request budget.

    At most max_requests acquisitions are allowed inside any window of
    window_seconds. check() both decides and, when allowed, records the
    request - a refused call consumes nothing.
    """

    def __init__(self,
                 max_requests: int = 10,
                 window_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize rate limiter with request budget and window length."""
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: Deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()

    def check(self) -> RateLimitDecision:
        """Admit or refuse one request."""
        now = self._clock()
        self._prune(now)

        if len(self._calls) >= self.max_requests:
            wait = self.window_seconds - (now - self._calls[0])
            return RateLimitDecision(allowed=False, retry_after_seconds=max(1, math.ceil(wait)))

        self._calls.append(now)
        return RateLimitDecision(allowed=True)

    def remaining(self) -> int:
        """Requests still available in the current window."""
        self._prune(self._clock())
        return self.max_requests - len(self._calls)


class KeyedLock:
    """One asyncio.Lock per key, created on demand.

    Usage:
        async with locks.acquire("example.com"):
            ...
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def acquire(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                # Nobody else queued on this key
                del self._waiters[key]
                del self._locks[key]
