"""Shared pytest fixtures: in-memory database, Redis stand-ins and API client."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from scvl.analytics import PageViewRecorder
from scvl.cache import SlugCache
from scvl.database import Base, get_db
from scvl.dependencies import get_pageview_recorder, get_slug_cache
from scvl.main import app
from scvl.schemas import PageViewEvent
from scvl.store import PageStore
from tests.support import InMemoryRedis

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def page_store(db_session: AsyncSession) -> PageStore:
    return PageStore(db_session)


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def slug_cache(fake_redis: InMemoryRedis) -> SlugCache:
    return SlugCache(fake_redis, prefix="test")


@pytest.fixture
def recorded_views() -> list[PageViewEvent]:
    return []


@pytest.fixture
def recorder(recorded_views: list[PageViewEvent]) -> PageViewRecorder:
    async def sink(event: PageViewEvent) -> None:
        recorded_views.append(event)

    return PageViewRecorder(sink)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    slug_cache: SlugCache,
    recorder: PageViewRecorder,
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_slug_cache] = lambda: slug_cache
    app.dependency_overrides[get_pageview_recorder] = lambda: recorder

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await recorder.drain()
    app.dependency_overrides.clear()
