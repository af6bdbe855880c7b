"""Dependency injection with a singleton service manager.

Shared resources (settings, logger, Redis clients, page-view recorder) are
created once by ``ServiceManager``; the per-request pieces (database session,
request context, store, engine, page service) are built by FastAPI
dependencies on top of it. Tests swap any of them through
``app.dependency_overrides``.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from scvl.agent import resolve_client_ip
from scvl.analytics import KafkaPageViewSink, PageViewRecorder
from scvl.cache import SlugCache, close_redis, get_redis, get_redis_read
from scvl.config import Settings, get_settings
from scvl.database import get_db
from scvl.pages import PageService
from scvl.redirect import ClientInfo, RedirectEngine
from scvl.store import PageStore


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton holder for resources shared by every request."""

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings = get_settings()
            self.logger = self._setup_logger()
            self.cache_writer = await get_redis()
            self.cache_reader = await get_redis_read()
            self.recorder = PageViewRecorder(
                KafkaPageViewSink(self.cache_writer, logger=self.logger),
                logger=self.logger,
            )
            self._initialized = True

    def _setup_logger(self) -> logging.Logger:
        logger = logging.getLogger("scvl")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(logging.INFO)
        return logger

    async def cleanup(self) -> None:
        """Flush in-flight page views and close Redis at shutdown."""
        if hasattr(self, "recorder"):
            await self.recorder.drain()
        await close_redis()
        self._initialized = False


_service_manager = ServiceManager()


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request context: DB session, client details and tracing info.

    Attributes:
        database: Async database session (only per-request resource)
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        trace_id: Correlation ID for distributed tracing
        user_agent: Raw User-Agent header
        client_ip: Originating client address, proxy headers honoured
        referer: Referer header, empty when absent
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: Optional[str] = None
    user_agent: Optional[str] = None
    client_ip: str = ""
    referer: str = ""
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def cache_writer(self) -> redis.Redis:
        return self.service_manager.cache_writer

    @property
    def cache_reader(self) -> redis.Redis:
        return self.service_manager.cache_reader

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with request context attached to every record."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    @property
    def client(self) -> ClientInfo:
        return ClientInfo(ip=self.client_ip, referer=self.referer, user_agent=self.user_agent)

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    peer = request.client.host if request.client else None
    return RequestContext(
        database=db,
        service_manager=manager,
        trace_id=request.headers.get("x-trace-id"),
        user_agent=request.headers.get("user-agent"),
        client_ip=resolve_client_ip(request.headers, peer),
        referer=request.headers.get("referer", ""),
    )


def get_slug_cache(manager: ServiceManager = Depends(get_service_manager)) -> SlugCache:
    return SlugCache(
        manager.cache_writer,
        manager.cache_reader,
        prefix=manager.settings.CACHE_KEY_PREFIX,
        ttl_seconds=manager.settings.CACHE_TTL_SECONDS,
        logger=manager.logger,
    )


def get_pageview_recorder(manager: ServiceManager = Depends(get_service_manager)) -> PageViewRecorder:
    return manager.recorder


def get_page_store(db: AsyncSession = Depends(get_db)) -> PageStore:
    return PageStore(db)


def get_redirect_engine(
    ctx: RequestContext = Depends(get_request_context),
    store: PageStore = Depends(get_page_store),
    cache: SlugCache = Depends(get_slug_cache),
    recorder: PageViewRecorder = Depends(get_pageview_recorder),
) -> RedirectEngine:
    return RedirectEngine(store, cache, recorder, logger=ctx.logger)


def get_page_service(
    ctx: RequestContext = Depends(get_request_context),
    store: PageStore = Depends(get_page_store),
    cache: SlugCache = Depends(get_slug_cache),
) -> PageService:
    return PageService(store, cache, settings=ctx.settings, logger=ctx.logger)


def get_current_owner(x_user_id: int | None = Header(default=None, alias="X-User-ID")) -> int:
    """Owner identity asserted by the upstream authentication proxy."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id
