"""
Redis-backed result cache.

Stores JSON documents under namespaced keys with a time-to-live. Connection
failures degrade to cache misses so the database path keeps serving requests.
"""

import json
from typing import Any, Dict, Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = structlog.get_logger(__name__)


class CacheManager:
    """Key-value cache over an async Redis client."""

    def __init__(self, client: Redis, default_ttl: int = 3600, prefix: str = "book-catalog:"):
        """
        Initialize the cache manager.

        Args:
            client: redis.asyncio client
            default_ttl: Time-to-live in seconds for stored values
            prefix: Namespace prepended to every key
        """
        self.client = client
        self.default_ttl = default_ttl
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, default_ttl: int = 3600, prefix: str = "book-catalog:") -> "CacheManager":
        """Create a cache manager with its own connection pool."""
        client = Redis.from_url(url, encoding="utf-8", decode_responses=True, health_check_interval=30)
        return cls(client, default_ttl=default_ttl, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Read a cached value.

        Returns:
            Decoded value, or None on a miss or cache failure
        """
        try:
            raw = await self.client.get(self._key(key))
        except RedisError as e:
            logger.warning("Cache read failed", key=key[:64], error=str(e))
            return None

        if raw is None:
            logger.debug("Cache miss", key=key[:64])
            return None

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Discarding undecodable cache entry", key=key[:64], error=str(e))
            return None

        logger.debug("Cache hit", key=key[:64])
        return value

    async def set(self, key: str, value: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        """
        Store a value with a time-to-live.

        Returns:
            True if stored, False on cache failure
        """
        ttl = ttl or self.default_ttl
        try:
            await self.client.set(self._key(key), json.dumps(value, default=str), ex=ttl)
            logger.debug("Cached value", key=key[:64], ttl=ttl)
            return True
        except RedisError as e:
            logger.warning("Cache write failed", key=key[:64], error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        """Remove a single key."""
        try:
            return bool(await self.client.delete(self._key(key)))
        except RedisError as e:
            logger.warning("Cache delete failed", key=key[:64], error=str(e))
            return False

    async def reset(self) -> int:
        """
        Remove every key in this cache's namespace.

        Returns:
            Number of keys removed
        """
        removed = 0
        try:
            async for key in self.client.scan_iter(match=f"{self.prefix}*", count=500):
                removed += await self.client.delete(key)
            logger.info("Cache reset", keys_removed=removed)
        except RedisError as e:
            logger.error("Cache reset failed", error=str(e))
            raise
        return removed

    async def health_check(self) -> Dict[str, Any]:
        """Ping Redis."""
        try:
            await self.client.ping()
            return {"status": "healthy"}
        except RedisError as e:
            logger.error("Cache health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}

    async def close(self) -> None:
        """Close the Redis connection pool."""
        await self.client.aclose()
        logger.info("Cache connection closed")
