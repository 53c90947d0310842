"""Per-client token bucket for the HTTP API."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class _Bucket:
    tokens: float
    updated_at: float


class RateLimiter:
    """
    Allow `limit` requests per `window_s` seconds per key, refilled continuously.

    A client may burst up to `limit` requests at once and then gets one more
    every `window_s / limit` seconds.
    """

    def __init__(
        self,
        limit: int,
        window_s: float = 60.0,
        *,
        idle_ttl_s: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = max(1, int(limit))
        self.rate_per_s = self.limit / max(0.001, float(window_s))
        self.idle_ttl_s = max(float(window_s), idle_ttl_s)
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._last_cleanup = clock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        self._cleanup(now)
        b = self._buckets.get(key)
        if b is None:
            b = self._buckets[key] = _Bucket(tokens=float(self.limit), updated_at=now)
        else:
            b.tokens = min(float(self.limit), b.tokens + (now - b.updated_at) * self.rate_per_s)
            b.updated_at = now
        if b.tokens >= 1.0:
            b.tokens -= 1.0
            return True
        return False

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.idle_ttl_s:
            return
        self._last_cleanup = now
        cutoff = now - self.idle_ttl_s
        for k in [k for k, b in self._buckets.items() if b.updated_at < cutoff]:
            del self._buckets[k]
