"""
Unit tests for the analytics cache
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import fakeredis
import redis.asyncio as redis

from reviewhub.shared.cache_manager import CacheManager, get_cache_key
from reviewhub.shared.config import config


def _fake_client():
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


class TestCacheManager:
    """Read-through caching on fakeredis"""

    def test_cache_key(self):
        assert get_cache_key('word_cloud', 'p1') == f"{config.PROJECT_NAME}:{config.ENVIRONMENT}:word_cloud:p1"

    def test_get_or_compute_computes_once(self):
        compute = AsyncMock(return_value=[{'text': '향', 'value': 3}])

        async def scenario():
            cache = CacheManager(_fake_client())
            first = await cache.get_or_compute('word_cloud', 'p1', compute)
            second = await cache.get_or_compute('word_cloud', 'p1', compute)
            ttl = await cache.redis_client.ttl(get_cache_key('word_cloud', 'p1'))
            await cache.close()
            return first, second, ttl

        first, second, ttl = asyncio.run(scenario())

        assert first == second == [{'text': '향', 'value': 3}]
        compute.assert_awaited_once()
        assert 0 < ttl <= config.ANALYTICS_CACHE_TTL_SECONDS

    def test_separate_identifiers_do_not_share(self):
        compute = AsyncMock(side_effect=[{'n': 1}, {'n': 2}])

        async def scenario():
            cache = CacheManager(_fake_client())
            a = await cache.get_or_compute('review_trend', 'product:p1:2024-03', compute)
            b = await cache.get_or_compute('review_trend', 'product:p2:2024-03', compute)
            await cache.close()
            return a, b

        assert asyncio.run(scenario()) == ({'n': 1}, {'n': 2})

    def test_delete(self):
        async def scenario():
            cache = CacheManager(_fake_client())
            await cache.set('k', {'a': 1})
            deleted = await cache.delete('k')
            value = await cache.get('k')
            await cache.close()
            return deleted, value

        assert asyncio.run(scenario()) == (True, None)

    def test_disabled_cache_always_computes(self):
        with patch.object(config, 'ELASTICACHE_HOST', None):
            cache = CacheManager()
        compute = AsyncMock(return_value={'n': 1})

        async def scenario():
            await cache.get_or_compute('word_cloud', 'p1', compute)
            await cache.get_or_compute('word_cloud', 'p1', compute)
            await cache.close()

        asyncio.run(scenario())

        assert cache.enabled is False
        assert compute.await_count == 2

    def test_redis_errors_are_misses(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=redis.ConnectionError('down'))
        client.setex = AsyncMock(side_effect=redis.ConnectionError('down'))
        compute = AsyncMock(return_value={'n': 1})

        value = asyncio.run(CacheManager(client).get_or_compute('word_cloud', 'p1', compute))

        assert value == {'n': 1}
        compute.assert_awaited_once()
        client.setex.assert_awaited_once()
