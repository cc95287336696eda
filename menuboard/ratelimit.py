"""
Fixed-window request limiter, in memory or backed by Redis.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Protocol

import redis
from redis import exceptions as redis_exceptions


class RateLimiter(Protocol):
    def hit(self, key: str) -> int:
        """Record one request for `key`; return 0 if allowed, else seconds to wait."""
        ...


@dataclass
class InMemoryRateLimiter:
    limit: int
    window_seconds: int
    windows: dict[str, tuple[float, int]] = field(default_factory=dict)
    last_sweep: float = 0.0

    def _sweep(self, now: float) -> None:
        if now - self.last_sweep < self.window_seconds:
            return
        self.last_sweep = now
        expired = [
            key
            for key, (started, _) in self.windows.items()
            if now - started >= self.window_seconds
        ]
        for key in expired:
            del self.windows[key]

    def hit(self, key: str) -> int:
        now = time.time()
        self._sweep(now)
        started, count = self.windows.get(key, (now, 0))
        if now - started >= self.window_seconds:
            started, count = now, 0
        count += 1
        self.windows[key] = (started, count)
        if count > self.limit:
            return max(1, int(started + self.window_seconds - now))
        return 0


@dataclass
class RedisRateLimiter:
    url: str
    limit: int
    window_seconds: int
    key_prefix: str = "menuboard:ratelimit"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def hit(self, key: str) -> int:
        redis_key = f"{self.key_prefix}:{key}"
        try:
            # The window's TTL is set in the same transaction that creates the key.
            pipe = self.client.pipeline(transaction=True)
            pipe.set(redis_key, 0, ex=self.window_seconds, nx=True)
            pipe.incr(redis_key)
            pipe.ttl(redis_key)
            _, count, ttl = pipe.execute()
            if ttl < 0:
                self.client.expire(redis_key, self.window_seconds)
                ttl = self.window_seconds
        except redis_exceptions.ConnectionError:
            # Do not lock users out while Redis reconnects.
            self.client = redis.Redis.from_url(self.url)
            return 0
        if count > self.limit:
            return max(1, int(ttl))
        return 0
