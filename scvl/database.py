"""Database engine and session management.

Provides the SQLAlchemy async engine, the declarative ``Base`` shared by all
models, and the FastAPI session dependency.

How to Use
===========
**Step 1 — Initialize on startup**::
    await init_db()  # Creates tables

**Step 2 — Use in FastAPI endpoints**::
    @app.get("/pages")
    async def list_pages(db: AsyncSession = Depends(get_db)):
        result = await db.execute(select(Page))
        return result.scalars().all()

**Step 3 — Cleanup on shutdown**::
    await close_db()

Key Behaviours
===============
- One session per request, closed in ``finally``.
- Connection checkout and statements are bounded by DATABASE_TIMEOUT_SECONDS.
- Engine is disposed on application shutdown.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from scvl.config import Settings, get_settings

__all__ = ["Base", "async_session", "build_engine", "close_db", "engine", "get_db", "init_db"]

settings = get_settings()


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine with bounded pool and driver timeouts."""
    options: dict[str, Any] = {
        "echo": config.APP_ENV == "development",
        "pool_pre_ping": True,
    }
    if make_url(config.DATABASE_URL).get_backend_name() == "postgresql":
        options.update(
            pool_size=config.DATABASE_POOL_SIZE,
            max_overflow=config.DATABASE_MAX_OVERFLOW,
            pool_timeout=config.DATABASE_TIMEOUT_SECONDS,
            connect_args={
                "timeout": config.DATABASE_TIMEOUT_SECONDS,
                "command_timeout": config.DATABASE_TIMEOUT_SECONDS,
            },
        )
    return create_async_engine(config.DATABASE_URL, **options)


engine = build_engine(settings)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
