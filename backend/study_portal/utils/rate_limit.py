"""In-memory throttling of failed admin logins."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque


class LoginThrottle:
    """Sliding-window counter of failed logins per key.

    Only failures are counted; a successful login clears the key.
    """

    def __init__(self, max_failures: int = 10, window_seconds: int = 60):
        self.max_failures = max_failures
        self.window_seconds = window_seconds
        self._failures = defaultdict(deque)
        self._lock = threading.Lock()

    def _prune(self, key: str, now: float) -> deque:
        q = self._failures[key]
        cutoff = now - self.window_seconds
        while q and q[0] < cutoff:
            q.popleft()
        return q

    def check(self, key: str) -> tuple[bool, int]:
        """Return `(allowed, retry_after_seconds)` for another attempt on `key`."""
        now = time.monotonic()
        with self._lock:
            q = self._prune(key, now)
            if len(q) >= self.max_failures:
                return False, max(1, int(self.window_seconds - (now - q[0])))
        return True, 0

    def record_failure(self, key: str) -> None:
        now = time.monotonic()
        with self._lock:
            self._prune(key, now).append(now)

    def reset(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)
