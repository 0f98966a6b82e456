"""
ElastiCache caching for ReviewHub analytics results
Cache misses and cache failures look the same to callers: the value is recomputed.
"""
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis

from .config import config

logger = logging.getLogger(__name__)


def get_cache_key(prefix: str, identifier: str) -> str:
    """Generate cache key with prefix"""
    return f"{config.PROJECT_NAME}:{config.ENVIRONMENT}:{prefix}:{identifier}"


class CacheManager:
    """Redis-backed JSON cache. Disabled when no cache host is configured."""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis_client = redis_client if redis_client is not None else self._create_client()
        self.default_ttl = config.CACHE_TTL_SECONDS

        # Cache TTL configurations for different data types
        self.cache_ttls = {
            'word_cloud': config.ANALYTICS_CACHE_TTL_SECONDS,
            'review_trend': config.ANALYTICS_CACHE_TTL_SECONDS,
        }

    @staticmethod
    def _create_client() -> Optional[redis.Redis]:
        if not config.ELASTICACHE_HOST:
            return None
        return redis.Redis(
            host=config.ELASTICACHE_HOST,
            port=config.ELASTICACHE_PORT,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    async def get(self, key: str) -> Any:
        """Get value from cache with deserialization"""
        if not self.enabled:
            return None
        try:
            cached_data = await self.redis_client.get(key)
            return json.loads(cached_data) if cached_data else None
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Cache get failed for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with serialization"""
        if not self.enabled:
            return False
        try:
            payload = json.dumps(value, default=str, ensure_ascii=False)
            return bool(await self.redis_client.setex(key, ttl or self.default_ttl, payload))
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.warning(f"Cache set failed for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(await self.redis_client.delete(key))
        except redis.RedisError as e:
            logger.warning(f"Cache delete failed for key {key}: {e}")
            return False

    async def get_or_compute(self, cache_type: str, identifier: str,
                             compute: Callable[[], Awaitable[Any]]) -> Any:
        """Cached value for (cache_type, identifier), computing it on a miss"""
        key = get_cache_key(cache_type, identifier)
        cached = await self.get(key)
        if cached is not None:
            logger.info(f"Cache hit for {key}")
            return cached

        value = await compute()
        await self.set(key, value, ttl=self.cache_ttls.get(cache_type))
        return value

    async def close(self):
        if self.enabled:
            await self.redis_client.aclose()
