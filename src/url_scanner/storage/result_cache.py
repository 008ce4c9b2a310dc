"""Redis-backed cache for results pages of completed scans."""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis


def results_cache_key(request_id: object, cursor: int, limit: int) -> str:
    """Return the cache key of one results page.

    Format: ``results:{request_id}:{cursor}:{limit}``.
    """
    return f"results:{request_id}:{cursor}:{limit}"


class RedisResultCache:
    """String get/set with expiry on a ``redis.asyncio`` client.

    The client must be created with ``decode_responses=True``.  Errors from
    Redis propagate; the result reader decides whether they matter.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(key, value, ex=ttl_seconds)
