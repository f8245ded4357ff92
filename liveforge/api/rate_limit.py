"""In-memory rate limiter for live build starts.

Sliding-window counter keyed by client address.  Not shared across
workers, which matches the single-process record store.
"""

import time


class RateLimiter:
    """Sliding-window rate limiter.

    Args:
        max_requests: Maximum requests allowed in the window.
        window_seconds: Length of the sliding window in seconds.
    """

    _PRUNE_INTERVAL: int = 500  # prune idle keys every N calls

    def __init__(self, max_requests: int = 30, window_seconds: int = 3600) -> None:
        self._max = max_requests
        self._window = window_seconds
        self._hits: dict[str, list[float]] = {}
        self._call_count = 0

    @property
    def max_requests(self) -> int:
        return self._max

    def _prune_idle_keys(self, now: float) -> None:
        """Remove keys whose timestamps have all expired."""
        cutoff = now - self._window
        dead = [k for k, ts in self._hits.items() if not ts or ts[-1] <= cutoff]
        for k in dead:
            del self._hits[k]

    def is_allowed(self, key: str) -> bool:
        """Record a hit for *key*; False when it is over the limit."""
        now = time.monotonic()
        cutoff = now - self._window

        self._call_count += 1
        if self._call_count % self._PRUNE_INTERVAL == 0:
            self._prune_idle_keys(now)

        timestamps = [t for t in self._hits.get(key, []) if t > cutoff]

        if len(timestamps) >= self._max:
            self._hits[key] = timestamps
            return False

        timestamps.append(now)
        self._hits[key] = timestamps
        return True

    def reset(self) -> None:
        self._hits.clear()
