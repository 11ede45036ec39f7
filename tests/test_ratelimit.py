from __future__ import annotations

from dubbing_studio.utils import ratelimit
from dubbing_studio.utils.ratelimit import RateLimiter


def test_bucket_blocks_after_limit() -> None:
    rl = RateLimiter()
    assert all(rl.allow("auth:login:ip:1.2.3.4", limit=3, per_seconds=60) for _ in range(3))
    assert rl.allow("auth:login:ip:1.2.3.4", limit=3, per_seconds=60) is False
    assert rl.allow("auth:login:ip:5.6.7.8", limit=3, per_seconds=60) is True


def test_distinct_keys_do_not_grow_without_bound() -> None:
    rl = RateLimiter(max_keys=500)
    for i in range(10_000):
        rl.allow(f"auth:login:user:guess-{i}", limit=10, per_seconds=60)
    assert len(rl) <= 500


def test_eviction_keeps_drained_buckets_over_full_ones(monkeypatch) -> None:
    clock = [1000.0]
    monkeypatch.setattr(ratelimit.time, "time", lambda: clock[0])
    rl = RateLimiter(max_keys=3)
    for _ in range(2):
        rl.allow("auth:login:user:alice", limit=2, per_seconds=60)
    assert rl.allow("auth:login:user:alice", limit=2, per_seconds=60) is False

    # The short-window buckets are full again after a few seconds; alice is not.
    for i in range(2):
        rl.allow(f"auth:login:user:other-{i}", limit=2, per_seconds=1)
    clock[0] += 5.0
    rl.allow("auth:login:user:newcomer", limit=2, per_seconds=60)

    assert len(rl) == 2
    assert rl.allow("auth:login:user:alice", limit=2, per_seconds=60) is False
