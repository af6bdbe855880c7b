"""Redis clients and the slug cache used by the redirect path.

Flow Diagram — SlugCache read
=============================
::
    ┌─────────────┐
    │ get_url()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ GET replica │
    └──────┬──────┘
   ERROR?  │
    ┌──────┴─────┐
    │ YES        │ NO
    ▼            ▼
┌─────────┐  ┌─────────┐
│ log +   │  │ return  │
│ miss    │  │ value   │
└─────────┘  └─────────┘

Key Layout
==========
::
    {prefix}:url:{slug}  → destination URL (string)
    {prefix}:ogp:{slug}  → OGP record id (integer, absent means none)

Key Behaviours
===============
- Reads go to the replica client, writes and deletes to the primary.
- Every Redis error is logged and counted, then treated as a miss or a no-op;
  the durable store stays the fallback of record.
- Both clients carry finite socket and connect timeouts.

Functions:
    create_redis_client():  Build a client with the configured timeouts.
    get_redis() / get_redis_read():  Lazily created module clients.
    close_redis():  Cleanup on shutdown.

Classes:
    SlugCache:  The slug→URL / slug→OGP-ID contract over Redis.
"""

import asyncio
import logging

import redis.asyncio as redis
from prometheus_client import Counter

from scvl.config import get_settings

__all__ = ["SlugCache", "close_redis", "create_redis_client", "get_redis", "get_redis_read"]

settings = get_settings()

CACHE_OPERATIONS_TOTAL = Counter(
    "scvl_cache_operations_total",
    "Redis cache operations issued by the slug cache",
    ["operation"],
)
CACHE_ERRORS_TOTAL = Counter(
    "scvl_cache_errors_total",
    "Redis cache operations that failed and were downgraded to a miss",
    ["operation"],
)

# Errors that mean "the cache tier is unavailable", not a programming error.
CACHE_UNAVAILABLE_ERRORS = (redis.RedisError, OSError, asyncio.TimeoutError)

# Write client: primary. Read client: replica, falling back to the primary URL.
redis_client: redis.Redis | None = None
redis_read_client: redis.Redis | None = None


def create_redis_client(url: str, socket_timeout: float = settings.REDIS_SOCKET_TIMEOUT_SECONDS) -> redis.Redis:
    return redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
    )


async def get_redis() -> redis.Redis:
    global redis_client
    if redis_client is None:
        redis_client = create_redis_client(settings.REDIS_URL)
    return redis_client


async def get_redis_read() -> redis.Redis:
    global redis_read_client
    if redis_read_client is None:
        redis_read_client = create_redis_client(settings.REDIS_REPLICA_URL or settings.REDIS_URL)
    return redis_read_client


async def close_redis() -> None:
    global redis_client, redis_read_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
    if redis_read_client is not None:
        await redis_read_client.aclose()
        redis_read_client = None


class SlugCache:
    """Volatile slug→URL and slug→OGP-ID mappings.

    None of the methods raise on cache-tier failure. Reads report a miss
    (``None`` / ``0``) and writes become no-ops, so callers can always fall
    back to the durable store.
    """

    def __init__(
        self,
        writer: redis.Redis,
        reader: redis.Redis | None = None,
        *,
        prefix: str = settings.CACHE_KEY_PREFIX,
        ttl_seconds: int | None = settings.CACHE_TTL_SECONDS,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._writer = writer
        self._reader = reader or writer
        self._prefix = prefix
        self._ttl = ttl_seconds or None
        self._logger = logger or logging.getLogger("scvl")

    def url_key(self, slug: str) -> str:
        return f"{self._prefix}:url:{slug}"

    def ogp_key(self, slug: str) -> str:
        return f"{self._prefix}:ogp:{slug}"

    async def get_url(self, slug: str) -> str | None:
        try:
            value = await self._reader.get(self.url_key(slug))
        except CACHE_UNAVAILABLE_ERRORS as exc:
            self._record_failure("get_url", slug, exc)
            return None
        CACHE_OPERATIONS_TOTAL.labels(operation="get_url").inc()
        return value or None

    async def set_url(self, slug: str, url: str) -> None:
        try:
            await self._writer.set(self.url_key(slug), url, ex=self._ttl)
        except CACHE_UNAVAILABLE_ERRORS as exc:
            self._record_failure("set_url", slug, exc)
            return
        CACHE_OPERATIONS_TOTAL.labels(operation="set_url").inc()

    async def delete_url(self, slug: str) -> None:
        try:
            await self._writer.delete(self.url_key(slug))
        except CACHE_UNAVAILABLE_ERRORS as exc:
            self._record_failure("delete_url", slug, exc)
            return
        CACHE_OPERATIONS_TOTAL.labels(operation="delete_url").inc()

    async def get_ogp_id(self, slug: str) -> int:
        try:
            value = await self._reader.get(self.ogp_key(slug))
        except CACHE_UNAVAILABLE_ERRORS as exc:
            self._record_failure("get_ogp_id", slug, exc)
            return 0
        CACHE_OPERATIONS_TOTAL.labels(operation="get_ogp_id").inc()
        if not value:
            return 0
        try:
            return int(value)
        except ValueError:
            self._logger.warning(f"Ignoring malformed OGP id {value!r} cached for {slug}")
            return 0

    async def set_ogp_id(self, slug: str, ogp_id: int) -> None:
        assert isinstance(ogp_id, int) and ogp_id > 0, f"ogp_id must be a positive int, got {ogp_id!r}"
        try:
            await self._writer.set(self.ogp_key(slug), str(ogp_id), ex=self._ttl)
        except CACHE_UNAVAILABLE_ERRORS as exc:
            self._record_failure("set_ogp_id", slug, exc)
            return
        CACHE_OPERATIONS_TOTAL.labels(operation="set_ogp_id").inc()

    async def delete_ogp_id(self, slug: str) -> None:
        try:
            await self._writer.delete(self.ogp_key(slug))
        except CACHE_UNAVAILABLE_ERRORS as exc:
            self._record_failure("delete_ogp_id", slug, exc)
            return
        CACHE_OPERATIONS_TOTAL.labels(operation="delete_ogp_id").inc()

    async def ping(self) -> bool:
        try:
            await self._writer.ping()
        except CACHE_UNAVAILABLE_ERRORS as exc:
            self._record_failure("ping", "-", exc)
            return False
        return True

    def _record_failure(self, operation: str, slug: str, exc: BaseException) -> None:
        CACHE_ERRORS_TOTAL.labels(operation=operation).inc()
        self._logger.warning(
            f"Cache {operation} failed for {slug}, continuing without cache: {exc}",
            extra={"operation": operation, "slug": slug, "error": str(exc)},
        )
