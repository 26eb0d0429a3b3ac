"""JSON values kept in Redis."""

from __future__ import annotations

import json
from datetime import timedelta
from typing import Any, Union

import redis

Duration = Union[timedelta, int, float]


class CacheMiss(LookupError):
    """The key is not in the cache."""


class RedisCache:
    """Stores JSON-encoded values in a Redis client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisCache":
        """Connect to the server at redis_url and check it answers."""
        client = redis.Redis.from_url(redis_url, socket_connect_timeout=5, socket_timeout=5)
        try:
            client.ping()
        except Exception:
            client.close()
            raise
        return cls(client)

    def get(self, key: str) -> Any:
        """Return the decoded value, or raise CacheMiss."""
        raw = self._client.get(key)
        if raw is None:
            raise CacheMiss(key)
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: Duration) -> None:
        """Store value as JSON; a zero ttl keeps it without expiry."""
        data = json.dumps(value)
        seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        millis = int(seconds * 1000)
        if millis > 0:
            self._client.set(key, data, px=millis)
        else:
            self._client.set(key, data)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def increment(self, key: str) -> int:
        return int(self._client.incr(key))

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RedisCache":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()