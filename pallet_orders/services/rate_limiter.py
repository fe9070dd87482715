# pallet_orders/services/rate_limiter.py
"""
Fixed-window request counter keyed by an arbitrary string.

The window check lives in RateLimiter; where counters are kept is a
CounterStore. MemoryCounterStore is per process (every worker has its own
counters), RedisCounterStore lets several workers share them.
"""
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Protocol

import redis
from redis.exceptions import RedisError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from pallet_orders.utils.settings import RATE_LIMIT_BACKEND, RATE_LIMIT_SWEEP_EVERY, REDIS_URL
from pallet_orders.utils.logging import get_logger

logger = get_logger(__name__)

MIN_WINDOW_MS = 250


@dataclass
class Counter:
    count: int
    reset_at_ms: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int

    @property
    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at_ms / 1000)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class CounterStore(Protocol):
    def hit(self, key: str, now_ms: int, window_ms: int) -> Counter: ...

    def sweep(self, now_ms: int) -> int: ...


class MemoryCounterStore:
    """Per process counters. Not atomic on its own, RateLimiter holds a lock around hit()."""

    def __init__(self):
        self._counters: Dict[str, Counter] = {}

    def get(self, key: str) -> Counter | None:
        return self._counters.get(key)

    def set(self, key: str, counter: Counter) -> None:
        self._counters[key] = counter

    def hit(self, key: str, now_ms: int, window_ms: int) -> Counter:
        counter = self.get(key)
        if counter is None or now_ms >= counter.reset_at_ms:
            counter = Counter(count=1, reset_at_ms=now_ms + window_ms)
        else:
            counter = Counter(count=counter.count + 1, reset_at_ms=counter.reset_at_ms)
        self.set(key, counter)
        return counter

    def sweep(self, now_ms: int) -> int:
        expired = [k for k, c in self._counters.items() if c.reset_at_ms <= now_ms]
        for key in expired:
            del self._counters[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._counters)


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(RedisError),
    )


#KEYS[1] counter hash, ARGV[1] now ms, ARGV[2] reset_at for a fresh window
_HIT_LUA = """
local reset = redis.call("HGET", KEYS[1], "reset_at")
if (not reset) or tonumber(ARGV[1]) >= tonumber(reset) then
    redis.call("HSET", KEYS[1], "count", 1, "reset_at", ARGV[2])
    redis.call("PEXPIREAT", KEYS[1], ARGV[2])
    return {1, ARGV[2]}
end
local count = redis.call("HINCRBY", KEYS[1], "count", 1)
return {count, reset}
"""


class RedisCounterStore:
    """
    -counter kept as a hash {count, reset_at}
    -read + increment run as one Lua script, so workers sharing redis never lose a hit
    -key expires together with its window, so sweep has nothing to do
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None, prefix: str = "ratelimit:"):
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.prefix = prefix

    @redis_retry()
    def hit(self, key: str, now_ms: int, window_ms: int) -> Counter:
        count, reset_at = self.redis.eval(_HIT_LUA, 1, self.prefix + key, str(now_ms), str(now_ms + window_ms))
        return Counter(count=int(count), reset_at_ms=int(reset_at))

    def sweep(self, now_ms: int) -> int:
        return 0


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    def __init__(
        self,
        store: CounterStore | None = None,
        clock: Callable[[], int] = _now_ms,
        sweep_every: int = RATE_LIMIT_SWEEP_EVERY,
    ):
        self.store = store if store is not None else MemoryCounterStore()
        self.clock = clock
        self.sweep_every = max(1, sweep_every)
        self._calls = 0
        #memory store hit() must not interleave between request threads
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window_ms: int) -> RateLimitResult:
        limit = max(1, int(limit))
        window_ms = max(MIN_WINDOW_MS, int(window_ms))

        with self._lock:
            now = self.clock()
            self._maybe_sweep(now)

            counter = self.store.hit(key, now, window_ms)

        allowed = counter.count <= limit
        retry_after = 0 if allowed else math.ceil((counter.reset_at_ms - now) / 1000)
        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - counter.count),
            reset_at_ms=counter.reset_at_ms,
            retry_after_seconds=retry_after,
        )

    def _maybe_sweep(self, now: int) -> None:
        self._calls += 1
        if self._calls % self.sweep_every != 0:
            return
        removed = self.store.sweep(now)
        if removed:
            logger.debug(f"Swept {removed} expired rate limit counters")


def build_counter_store(backend: str = RATE_LIMIT_BACKEND) -> CounterStore:
    if backend == "redis":
        logger.info("Rate limiter uses shared redis counters")
        return RedisCounterStore()
    return MemoryCounterStore()
