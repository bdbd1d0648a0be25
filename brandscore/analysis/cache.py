"""Key-value cache abstraction shared by the classifier and the consolidated analyzer.

Both caches are append-only from the pipeline's point of view: concurrent
writers may race, last writer wins, values are deterministic per key.
A miss returns None; it is a normal branch, never an exception.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class Cache(ABC):
    """Async get/set contract so an in-process dict and Redis are interchangeable."""

    @abstractmethod
    async def get(self, key: str) -> Any | None: ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...


class InMemoryCache(Cache):
    """Process-scoped cache; contents are lost on restart."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class RedisCache(Cache):
    """Redis-backed cache holding JSON-serializable values.

    Callers store plain dicts (e.g. CitationCategory.to_dict()).
    """

    def __init__(self, client, prefix: str = "brandscore", ttl_seconds: int | None = None):
        self._client = client
        self._prefix = prefix
        self._ttl = ttl_seconds

    @classmethod
    def from_url(cls, url: str, prefix: str = "brandscore", ttl_seconds: int | None = None) -> RedisCache:
        import redis.asyncio as redis

        return cls(redis.from_url(url, decode_responses=True), prefix=prefix, ttl_seconds=ttl_seconds)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(self._key(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable cache entry %s", self._key(key))
            return None

    async def set(self, key: str, value: Any) -> None:
        await self._client.set(self._key(key), json.dumps(value, ensure_ascii=False), ex=self._ttl)

    async def delete(self, key: str) -> None:
        await self._client.delete(self._key(key))

    async def close(self) -> None:
        await self._client.aclose()
