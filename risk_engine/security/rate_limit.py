"""
Rate Limiting

Two implementations of per-API-key limits:

TokenBucketRateLimiter (single process)
    Bucket of ``capacity`` tokens refilled at ``refill_per_second``.
    Refill, take and check happen under one lock.

RedisRateLimiter (shared across processes)
    Fixed window counter:
        key = {prefix}ratelimit:{api_key}:{window_index}
    INCR and EXPIRE run in one MULTI/EXEC transaction, so the
    increment-and-check is atomic per key.
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..errors import DependencyUnavailable, RateLimitExceeded
from ..metrics import metrics

logger = logging.getLogger("risk_engine.security")


class RateLimiter(ABC):

    name = "rate_limiter"

    @abstractmethod
    async def acquire(self, key: str) -> None:
        """
        Consume one request for ``key``.

        Raises:
            RateLimitExceeded: limit reached (carries retry_after)
            DependencyUnavailable: shared counter store unreachable
        """


class TokenBucketRateLimiter(RateLimiter):
    """In-process token bucket per key."""

    name = "token_bucket"

    def __init__(
        self,
        capacity: int = 100,
        refill_per_second: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0 or refill_per_second <= 0:
            raise ValueError("capacity and refill_per_second must be positive")
        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self.clock = clock
        self._lock = threading.Lock()
        # key -> (tokens, last refill time)
        self._buckets: dict[str, tuple[float, float]] = {}

    def try_acquire(self, key: str) -> float:
        """
        Take one token.

        Returns:
            0.0 if allowed, otherwise seconds until a token is available
        """
        with self._lock:
            now = self.clock()
            tokens, updated = self._buckets.get(key, (float(self.capacity), now))
            tokens = min(self.capacity, tokens + (now - updated) * self.refill_per_second)

            if tokens >= 1.0:
                self._buckets[key] = (tokens - 1.0, now)
                return 0.0

            self._buckets[key] = (tokens, now)
            return (1.0 - tokens) / self.refill_per_second

    async def acquire(self, key: str) -> None:
        retry_after = self.try_acquire(key)
        if retry_after > 0:
            raise RateLimitExceeded(retry_after=retry_after)


class RedisRateLimiter(RateLimiter):
    """Fixed-window limiter shared through Redis."""

    name = "redis_rate_limiter"

    def __init__(
        self,
        redis_client: redis.Redis,
        limit: int = 100,
        window_seconds: int = 60,
        key_prefix: str = "risk:",
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis_client
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = key_prefix
        self.clock = clock

    def _make_key(self, key: str, window_index: int) -> str:
        return f"{self.prefix}ratelimit:{key}:{window_index}"

    async def acquire(self, key: str) -> None:
        now = self.clock()
        window_index = int(now // self.window_seconds)
        redis_key = self._make_key(key, window_index)

        try:
            pipe = self.redis.pipeline(transaction=True)
            pipe.incr(redis_key)
            pipe.expire(redis_key, self.window_seconds)
            count, _ = await pipe.execute()
        except RedisError as e:
            metrics.dependency_failures.labels(dependency=self.name).inc()
            logger.error("Rate limit counter unavailable: %s", e)
            raise DependencyUnavailable(self.name, "Rate limit store unavailable") from e

        if count > self.limit:
            window_end = (window_index + 1) * self.window_seconds
            raise RateLimitExceeded(retry_after=max(math.ceil(window_end - now), 1))
