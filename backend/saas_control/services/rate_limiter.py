"""Simple in-memory rate limiting utilities."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, Tuple


@dataclass
class _Bucket:
    timestamps: Deque[float] = field(default_factory=deque)


class InMemoryRateLimiter:
    """Sliding-window limiter for single-node deployments (sign-in throttling)."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: Dict[str, _Bucket] = {}

    def _prune(self, key: str, window_seconds: int, now: float) -> _Bucket:
        bucket = self._buckets.setdefault(key, _Bucket())
        cutoff = now - window_seconds
        while bucket.timestamps and bucket.timestamps[0] < cutoff:
            bucket.timestamps.popleft()
        return bucket

    def allow(self, key: str, windows: Iterable[Tuple[int, int]]) -> bool:
        """Check several (limit, window_seconds) pairs; records the hit only if all pass."""
        windows = list(windows)
        now = self._clock()
        with self._lock:
            buckets = [
                (self._prune(f"{key}:{seconds}", seconds, now), limit)
                for limit, seconds in windows
            ]
            if any(len(bucket.timestamps) >= limit for bucket, limit in buckets):
                return False
            for bucket, _ in buckets:
                bucket.timestamps.append(now)
            return True

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
