"""
Queue of hotels whose subscribers are waiting for a "menu updated" push.

Uploads enqueue the hotel id; a hotel that is already waiting is not queued
twice, since one fan-out after the latest upload covers every pending one.
The in-memory queue backs local runs and tests, the Redis queue feeds
`menuboard.worker`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

# The list itself is the pending set: check and push run as one atomic step.
ENQUEUE_IF_ABSENT = """
if redis.call('LPOS', KEYS[1], ARGV[1]) then
    return 0
end
redis.call('RPUSH', KEYS[1], ARGV[1])
return 1
"""


class JobQueue(Protocol):
    def enqueue(self, hotel_id: str) -> bool:
        """Queue `hotel_id`; returns False when it was already pending."""
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...


@dataclass
class InMemoryJobQueue:
    items: list[str] = field(default_factory=list)

    def enqueue(self, hotel_id: str) -> bool:
        if hotel_id in self.items:
            return False
        self.items.append(hotel_id)
        return True

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        if not self.items:
            return None
        return self.items.pop(0)


@dataclass
class RedisJobQueue:
    """Redis list of hotel ids (requires Redis >= 6.0.6 for LPOS)."""

    url: str
    queue_key: str = "menuboard:notify"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)
        self._enqueue_script = self.client.register_script(ENQUEUE_IF_ABSENT)

    def enqueue(self, hotel_id: str) -> bool:
        added = self._enqueue_script(
            keys=[self.queue_key], args=[hotel_id], client=self.client
        )
        return bool(added)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, raw = result
            else:
                raw = self.client.lpop(self.queue_key)
                if raw is None:
                    return None
            return raw.decode("utf-8")
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and report empty.
            self.client = redis.Redis.from_url(self.url)
            return None
