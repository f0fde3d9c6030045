"""
Per-client token buckets for throttling the login handshake.

Each key (the caller's IP address) gets ``capacity`` attempts which refill
evenly over ``window_seconds``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Bucket:
    tokens: float
    updated_at: float


class TokenBucketRateLimiter:
    """Thread-safe token bucket keyed by client identifier."""

    def __init__(
        self,
        capacity: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._capacity = capacity
        self._rate = capacity / window_seconds
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def _refill(self, key: str) -> _Bucket:
        now = self._clock()
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = _Bucket(tokens=float(self._capacity), updated_at=now)
            self._buckets[key] = bucket
            return bucket
        elapsed = now - bucket.updated_at
        bucket.tokens = min(self._capacity, bucket.tokens + elapsed * self._rate)
        bucket.updated_at = now
        return bucket

    def acquire(self, key: str) -> bool:
        """Take one attempt for ``key``; False when its bucket is empty."""
        with self._lock:
            bucket = self._refill(key)
            if bucket.tokens >= 1:
                bucket.tokens -= 1
                return True
            logger.warning("Rate limited %s (%.2f attempts available)", key, bucket.tokens)
            return False

    def retry_after(self, key: str) -> float:
        """Seconds until ``key`` has a full attempt available again."""
        with self._lock:
            bucket = self._refill(key)
            if bucket.tokens >= 1:
                return 0.0
            return (1 - bucket.tokens) / self._rate

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


__all__ = ["TokenBucketRateLimiter"]
