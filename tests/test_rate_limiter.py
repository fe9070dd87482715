from unittest.mock import MagicMock

import pytest
from redis.exceptions import RedisError

from pallet_orders.services.rate_limiter import (
    Counter,
    MemoryCounterStore,
    RateLimiter,
    RedisCounterStore,
    build_counter_store,
)


class FakeClock:
    def __init__(self, now=1_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(MemoryCounterStore(), clock=clock)


class TestFixedWindow:
    def test_allows_up_to_limit_then_blocks(self, limiter):
        results = [limiter.check("forms:contact:1.2.3.4", 5, 60_000) for _ in range(6)]

        assert [r.allowed for r in results] == [True] * 5 + [False]
        assert [r.remaining for r in results] == [4, 3, 2, 1, 0, 0]
        assert results[-1].retry_after_seconds == 60

    def test_headers(self, limiter, clock):
        first = limiter.check("k", 2, 60_000)
        assert first.headers == {
            "X-RateLimit-Limit": "2",
            "X-RateLimit-Remaining": "1",
            "X-RateLimit-Reset": str((clock.now + 60_000 + 999) // 1000),
        }

        limiter.check("k", 2, 60_000)
        blocked = limiter.check("k", 2, 60_000)
        assert blocked.headers["Retry-After"] == "60"
        assert blocked.headers["X-RateLimit-Remaining"] == "0"

    def test_retry_after_shrinks_with_time(self, limiter, clock):
        limiter.check("k", 1, 60_000)
        clock.advance(30_500)
        blocked = limiter.check("k", 1, 60_000)
        assert not blocked.allowed
        assert blocked.retry_after_seconds == 30

    def test_window_resets(self, limiter, clock):
        for _ in range(3):
            limiter.check("k", 3, 1_000)
        assert not limiter.check("k", 3, 1_000).allowed

        clock.advance(1_000)
        fresh = limiter.check("k", 3, 1_000)
        assert fresh.allowed
        assert fresh.remaining == 2
        assert fresh.reset_at_ms == clock.now + 1_000

    def test_keys_are_independent(self, limiter):
        limiter.check("a", 1, 60_000)
        assert not limiter.check("a", 1, 60_000).allowed
        assert limiter.check("b", 1, 60_000).allowed

    def test_limit_and_window_are_clamped(self, limiter, clock):
        result = limiter.check("k", 0, 10)
        assert result.allowed
        assert result.limit == 1
        assert result.reset_at_ms == clock.now + 250
        assert not limiter.check("k", 0, 10).allowed


class TestSweep:
    def test_expired_counters_are_swept_periodically(self, clock):
        store = MemoryCounterStore()
        limiter = RateLimiter(store, clock=clock, sweep_every=2)

        limiter.check("old", 5, 1_000)
        clock.advance(5_000)
        limiter.check("new", 5, 1_000)

        assert len(store) == 1
        assert store.get("old") is None

    def test_live_counters_survive_sweep(self, clock):
        store = MemoryCounterStore()
        store.set("live", Counter(count=2, reset_at_ms=clock.now + 10))
        store.set("dead", Counter(count=2, reset_at_ms=clock.now))

        assert store.sweep(clock.now) == 1
        assert store.get("live").count == 2


class ScriptedRedis:
    """In-process stand-in for one redis server: eval() runs the hit script atomically."""

    def __init__(self):
        self.hashes = {}
        self.expiry = {}
        self.evals = 0

    def eval(self, script, numkeys, key, now, fresh_reset):
        self.evals += 1
        counter = self.hashes.get(key)
        if counter is None or int(now) >= int(counter["reset_at"]):
            self.hashes[key] = {"count": 1, "reset_at": fresh_reset}
            self.expiry[key] = int(fresh_reset)
            return [1, fresh_reset]
        counter["count"] += 1
        return [counter["count"], counter["reset_at"]]


class TestRedisCounterStore:
    def test_hit_is_a_single_script_call(self):
        client = MagicMock()
        client.eval.return_value = [3, "61000"]
        store = RedisCounterStore(client=client, prefix="rl:")

        assert store.hit("k", 1_000, 60_000) == Counter(count=3, reset_at_ms=61_000)

        args = client.eval.call_args.args
        assert args[1:] == (1, "rl:k", "1000", "61000")
        assert "HINCRBY" in args[0]
        client.hgetall.assert_not_called()
        client.hset.assert_not_called()

    def test_workers_share_one_budget(self, clock):
        server = ScriptedRedis()
        worker_a = RateLimiter(RedisCounterStore(client=server), clock=clock)
        worker_b = RateLimiter(RedisCounterStore(client=server), clock=clock)

        results = [worker_a.check("k", 1, 60_000).allowed, worker_b.check("k", 1, 60_000).allowed]

        assert results == [True, False]
        assert server.evals == 2
        assert server.expiry["ratelimit:k"] == clock.now + 60_000

    def test_window_restarts_after_expiry(self, clock):
        server = ScriptedRedis()
        limiter = RateLimiter(RedisCounterStore(client=server), clock=clock)

        limiter.check("k", 1, 1_000)
        assert not limiter.check("k", 1, 1_000).allowed
        clock.advance(1_000)
        assert limiter.check("k", 1, 1_000).allowed

    def test_transient_redis_error_is_retried(self):
        client = MagicMock()
        client.eval.side_effect = [RedisError("blip"), [1, "10"]]
        store = RedisCounterStore(client=client)

        assert store.hit("k", 0, 10).count == 1
        assert client.eval.call_count == 2


def test_build_counter_store_defaults_to_memory():
    assert isinstance(build_counter_store("memory"), MemoryCounterStore)
