"""FastAPI application entry point for the scvl link service.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ init_db()   │
    │ init_kafka()│
    │ services    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ drain views │
    │ close_kafka │
    │ close_db()  │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn scvl.main:app --host 0.0.0.0 --port 8080

**Step 2 — Make API calls**::
    curl -X POST http://localhost:8080/api/pages \\
         -H "X-User-ID: 1" -H "Content-Type: application/json" \\
         -d '{"url": "https://example.com"}'

    curl -i http://localhost:8080/<slug>

Key Behaviours
===============
- Database tables are created on startup.
- Kafka is optional at startup; page views fall back to a Redis stream.
- Pending page-view deliveries are drained before Kafka and Redis close.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from scvl.config import get_settings
from scvl.database import close_db, init_db
from scvl.dependencies import _service_manager
from scvl.kafka import close_kafka, init_kafka
from scvl.routes import router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await init_db()
    await init_kafka()
    await _service_manager.initialize()
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_kafka()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Short links with cache-aside redirects, OGP previews and page-view analytics",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
