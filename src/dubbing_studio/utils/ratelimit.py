from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass
class _Bucket:
    tokens: float
    updated_at: float
    limit: float
    rate: float

    def refill(self, now: float) -> None:
        self.tokens = min(self.limit, self.tokens + (now - self.updated_at) * self.rate)
        self.updated_at = now


class RateLimiter:
    """
    In-process token bucket limiter.
    Keys should include both scope and identity (e.g. "auth:login:ip:1.2.3.4").

    Keys come from clients (usernames, IPs), so the table is bounded: once it
    holds more than `max_keys` buckets, full ones are dropped (a full bucket
    behaves exactly like a missing one) and, failing that, the least recently
    used ones.
    """

    def __init__(self, *, max_keys: int = 4096) -> None:
        self.max_keys = max(1, int(max_keys))
        self._mem: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def allow(self, key: str, *, limit: int, per_seconds: int) -> bool:
        now = time.time()
        with self._lock:
            b = self._mem.get(key)
            if b is None:
                b = _Bucket(
                    tokens=float(limit),
                    updated_at=now,
                    limit=float(limit),
                    rate=float(limit) / float(per_seconds),
                )
                self._mem[key] = b
                if len(self._mem) > self.max_keys:
                    self._evict(now, keep=key)
            b.refill(now)
            if b.tokens < 1.0:
                return False
            b.tokens -= 1.0
            return True

    def __len__(self) -> int:
        return len(self._mem)

    def _evict(self, now: float, *, keep: str) -> None:
        # caller holds self._lock
        for k, b in list(self._mem.items()):
            b.refill(now)
            if k != keep and b.tokens >= b.limit:
                del self._mem[k]
        # Trim below the cap so a flood of new keys does not sort on every call.
        overflow = len(self._mem) - self.max_keys + self.max_keys // 10
        if overflow > 0:
            stale = sorted((b.updated_at, k) for k, b in self._mem.items() if k != keep)
            for _, k in stale[:overflow]:
                del self._mem[k]
