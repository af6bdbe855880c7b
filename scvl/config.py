"""Configuration management for the scvl link service.

Settings are loaded from environment variables (and an optional ``.env`` file)
through Pydantic BaseSettings and cached after first access.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache │
    │ (lru_cache) │
    └──────┬──────┘
    HIT?   │
    ┌──────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from scvl.config import get_settings

**Step 2 — Read values**::
    settings = get_settings()
    print(settings.REDIS_URL, settings.SLUG_LENGTH)

Key Behaviours
===============
- Settings are cached after first access.
- Environment variables override defaults automatically.
- Every network client built from these settings gets a finite timeout.

Classes:
    Settings:  Pydantic model for all configuration values.
"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "scvl"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8080"

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://scvl:scvl@db:5432/scvl"
    DATABASE_TIMEOUT_SECONDS: float = 5.0
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_REPLICA_URL: str = ""
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 0.5
    CACHE_KEY_PREFIX: str = "scvl"
    # None keeps entries until Redis evicts them
    CACHE_TTL_SECONDS: int | None = None

    # Slugs
    SLUG_LENGTH: int = 7
    SLUG_MAX_ATTEMPTS: int = 5

    # Page view analytics
    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    KAFKA_REQUEST_TIMEOUT_MS: int = 5000
    PAGEVIEW_TOPIC: str = "page_views"
    PAGEVIEW_STREAM_KEY: str = "page_views"
    INGESTION_CONSUMER_GROUP: str = "page_view_ingestion_group"
    INGESTION_CONSUMER_NAME: str = "ingestion-consumer-1"
    INGESTION_BATCH_SIZE: int = 500
    INGESTION_BLOCK_MS: int = 1000
    INGESTION_METRICS_PORT: int = 9200

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
