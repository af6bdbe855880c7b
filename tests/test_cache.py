"""SlugCache behaviour against a mocked Redis client."""

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from scvl.cache import SlugCache


@pytest.fixture
def mock_redis() -> AsyncMock:
    redis_client = AsyncMock(spec=redis.Redis)
    redis_client.get = AsyncMock(return_value=None)
    redis_client.set = AsyncMock(return_value=True)
    redis_client.delete = AsyncMock(return_value=1)
    redis_client.ping = AsyncMock(return_value=True)
    return redis_client


@pytest.fixture
def mock_replica() -> AsyncMock:
    redis_client = AsyncMock(spec=redis.Redis)
    redis_client.get = AsyncMock(return_value=None)
    return redis_client


@pytest.fixture
def cache(mock_redis, mock_replica) -> SlugCache:
    return SlugCache(mock_redis, mock_replica, prefix="scvl", ttl_seconds=None)


@pytest.mark.asyncio
async def test_get_url_reads_from_replica(cache, mock_redis, mock_replica):
    mock_replica.get.return_value = "https://example.com"

    assert await cache.get_url("abc123") == "https://example.com"
    mock_replica.get.assert_awaited_once_with("scvl:url:abc123")
    mock_redis.get.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_url_miss_returns_none(cache):
    assert await cache.get_url("abc123") is None


@pytest.mark.asyncio
async def test_set_url_writes_to_primary(cache, mock_redis):
    await cache.set_url("abc123", "https://example.com")
    mock_redis.set.assert_awaited_once_with("scvl:url:abc123", "https://example.com", ex=None)


@pytest.mark.asyncio
async def test_ttl_is_applied_when_configured(mock_redis):
    cache = SlugCache(mock_redis, ttl_seconds=3600, prefix="scvl")
    await cache.set_ogp_id("abc123", 7)
    mock_redis.set.assert_awaited_once_with("scvl:ogp:abc123", "7", ex=3600)


@pytest.mark.asyncio
async def test_get_ogp_id_parses_integer(cache, mock_replica):
    mock_replica.get.return_value = "42"
    assert await cache.get_ogp_id("abc123") == 42
    mock_replica.get.assert_awaited_once_with("scvl:ogp:abc123")


@pytest.mark.asyncio
async def test_get_ogp_id_absent_or_malformed_is_zero(cache, mock_replica):
    assert await cache.get_ogp_id("abc123") == 0
    mock_replica.get.return_value = "not-a-number"
    assert await cache.get_ogp_id("abc123") == 0


@pytest.mark.asyncio
async def test_delete_ogp_id(cache, mock_redis):
    await cache.delete_ogp_id("abc123")
    mock_redis.delete.assert_awaited_once_with("scvl:ogp:abc123")


@pytest.mark.asyncio
async def test_set_ogp_id_rejects_zero(cache):
    with pytest.raises(AssertionError):
        await cache.set_ogp_id("abc123", 0)


class TestCacheOutage:
    """Every Redis failure turns into a miss or a no-op."""

    @pytest.fixture
    def broken(self) -> AsyncMock:
        redis_client = AsyncMock(spec=redis.Redis)
        error = redis.ConnectionError("Connection refused")
        redis_client.get = AsyncMock(side_effect=error)
        redis_client.set = AsyncMock(side_effect=error)
        redis_client.delete = AsyncMock(side_effect=error)
        redis_client.ping = AsyncMock(side_effect=error)
        return redis_client

    @pytest.mark.asyncio
    async def test_reads_degrade_to_miss(self, broken):
        cache = SlugCache(broken)
        assert await cache.get_url("abc123") is None
        assert await cache.get_ogp_id("abc123") == 0

    @pytest.mark.asyncio
    async def test_writes_degrade_to_noop(self, broken):
        cache = SlugCache(broken)
        await cache.set_url("abc123", "https://example.com")
        await cache.set_ogp_id("abc123", 1)
        await cache.delete_ogp_id("abc123")
        await cache.delete_url("abc123")
        assert broken.set.await_count == 2
        assert broken.delete.await_count == 2

    @pytest.mark.asyncio
    async def test_timeouts_degrade_to_miss(self):
        slow = AsyncMock(spec=redis.Redis)
        slow.get = AsyncMock(side_effect=redis.TimeoutError("Timeout reading from socket"))
        cache = SlugCache(slow)
        assert await cache.get_url("abc123") is None

    @pytest.mark.asyncio
    async def test_ping_reports_unhealthy(self, broken):
        assert await SlugCache(broken).ping() is False
