"""
Redis Storage Backend.

Production storage backend. Budget reservation runs as a server-side Lua
script so the check-then-increment stays indivisible across every process
sharing the Redis instance.
"""

from __future__ import annotations

import json
import os
from typing import Any

from sparkgate.storage.base import StorageBackend, register_storage_backend


class RedisStorage(StorageBackend):
    """
    Redis storage backend.

    Keys are laid out as ``{prefix}:{collection}:{key}``.
    """

    # Atomically check both caps and increment if allowed.
    # Returns {1, newTotal, 0} on success, {0, current, reason} if rejected.
    _RESERVE_SCRIPT = """
    local key = KEYS[1]
    local amount = tonumber(ARGV[1])
    local maxSingle = tonumber(ARGV[2])
    local limit = tonumber(ARGV[3])
    local ttl = tonumber(ARGV[4])

    local current = tonumber(redis.call("GET", key) or "0")
    if amount > maxSingle then
        return {0, current, 1}
    end

    if current + amount > limit then
        return {0, current, 2}
    end

    local newTotal = redis.call("INCRBY", key, amount)
    redis.call("EXPIRE", key, ttl)
    return {1, newTotal, 0}
    """

    def __init__(
        self,
        redis_url: str | None = None,
        prefix: str = "spark",
        client: Any = None,
    ) -> None:
        """
        Initialize Redis storage.

        Args:
            redis_url: Redis connection URL (or from SPARKGATE_REDIS_URL env)
            prefix: Key prefix for all storage keys
            client: Pre-built redis.asyncio client (takes precedence over the URL)
        """
        self._redis_url = redis_url or os.environ.get(
            "SPARKGATE_REDIS_URL",
            "redis://localhost:6379/0",
        )
        self._prefix = prefix
        self._client = client

    def _get_client(self):
        """Lazy-load Redis client."""
        if self._client is None:
            try:
                import redis.asyncio as redis
            except ImportError:
                raise ImportError(
                    "redis package required for RedisStorage. Install with: pip install redis"
                ) from None
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def _make_key(self, collection: str, key: str) -> str:
        """Create Redis key from collection and key."""
        return f"{self._prefix}:{collection}:{key}"

    def _make_collection_pattern(self, collection: str) -> str:
        """Create pattern to match all keys in collection."""
        return f"{self._prefix}:{collection}:*"

    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        ttl: int | None = None,
    ) -> None:
        """Save data to Redis."""
        client = self._get_client()
        await client.set(self._make_key(collection, key), json.dumps(data), ex=ttl)

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Get data from Redis."""
        client = self._get_client()
        data = await client.get(self._make_key(collection, key))
        if data is None:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return None

    async def delete(self, collection: str, key: str) -> bool:
        """Delete data from Redis."""
        client = self._get_client()
        result = await client.delete(self._make_key(collection, key))
        return result > 0

    async def get_counter(self, collection: str, key: str) -> int:
        client = self._get_client()
        value = await client.get(self._make_key(collection, key))
        return int(value) if value is not None else 0

    async def atomic_add(
        self,
        collection: str,
        key: str,
        amount: int,
        ttl: int | None = None,
    ) -> int:
        """Atomically add amount (INCRBY)."""
        client = self._get_client()
        redis_key = self._make_key(collection, key)
        new_val = await client.incrby(redis_key, amount)
        if ttl:
            await client.expire(redis_key, ttl)
        return int(new_val)

    async def reserve_within_limit(
        self,
        collection: str,
        key: str,
        amount: int,
        max_single: int,
        limit: int,
        ttl: int,
    ) -> tuple[bool, int, int]:
        client = self._get_client()
        redis_key = self._make_key(collection, key)
        ok, value, reason = await client.eval(
            self._RESERVE_SCRIPT, 1, redis_key, amount, max_single, limit, ttl
        )
        return int(ok) == 1, int(value), int(reason)

    async def hash_set(
        self,
        collection: str,
        name: str,
        field: str,
        data: dict[str, Any],
        ttl: int | None = None,
    ) -> None:
        client = self._get_client()
        redis_key = self._make_key(collection, name)
        await client.hset(redis_key, field, json.dumps(data))
        if ttl:
            await client.expire(redis_key, ttl)

    async def hash_get(self, collection: str, name: str, field: str) -> dict[str, Any] | None:
        client = self._get_client()
        raw = await client.hget(self._make_key(collection, name), field)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    async def hash_delete(self, collection: str, name: str, field: str) -> bool:
        client = self._get_client()
        removed = await client.hdel(self._make_key(collection, name), field)
        return removed > 0

    async def hash_get_all(self, collection: str, name: str) -> dict[str, Any]:
        client = self._get_client()
        raw_fields = await client.hgetall(self._make_key(collection, name))
        results: dict[str, Any] = {}
        for field, raw in (raw_fields or {}).items():
            try:
                results[field] = json.loads(raw)
            except json.JSONDecodeError:
                results[field] = raw
        return results

    async def list_push(
        self,
        collection: str,
        name: str,
        data: dict[str, Any],
        max_length: int | None = None,
        ttl: int | None = None,
    ) -> None:
        client = self._get_client()
        redis_key = self._make_key(collection, name)
        async with client.pipeline(transaction=False) as pipe:
            pipe.lpush(redis_key, json.dumps(data))
            if max_length is not None:
                pipe.ltrim(redis_key, 0, max_length - 1)
            if ttl:
                pipe.expire(redis_key, ttl)
            await pipe.execute()

    async def list_range(self, collection: str, name: str, limit: int) -> list[dict[str, Any]]:
        if limit <= 0:
            return []
        client = self._get_client()
        raw_items = await client.lrange(self._make_key(collection, name), 0, limit - 1)
        return [json.loads(raw) for raw in raw_items]

    async def clear(self, collection: str) -> int:
        """Clear all records from a collection."""
        client = self._get_client()
        count = 0
        async for redis_key in client.scan_iter(match=self._make_collection_pattern(collection)):
            count += await client.delete(redis_key)
        return count

    async def health_check(self) -> bool:
        """Check Redis connection."""
        try:
            client = self._get_client()
            await client.ping()
            return True
        except Exception:
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None


# Register backend
register_storage_backend("redis", RedisStorage)
