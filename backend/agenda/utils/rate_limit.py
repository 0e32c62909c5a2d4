"""In-memory rate limiter for per-client admission control."""

from __future__ import annotations

import threading
import time


class InMemoryRateLimiter:
    """Fixed-window request counter per key (typically the client IP).

    Each key gets `max_requests` per `window_seconds`; the window starts
    with the key's first request and resets once it has elapsed.
    """

    def __init__(self, max_requests: int, window_seconds: int, clock=time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> tuple[bool, int]:
        """Record a hit for `key`; return (allowed, retry_after_seconds)."""
        now = self._clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            if count >= self.max_requests:
                retry_after = max(1, int(self.window_seconds - (now - started)))
                return False, retry_after
            self._windows[key] = (started, count + 1)
            self._prune(now)
        return True, 0

    def _prune(self, now: float) -> None:
        # Drop expired windows once the table grows, to bound memory.
        if len(self._windows) < 10000:
            return
        expired = [k for k, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for k in expired:
            del self._windows[k]
