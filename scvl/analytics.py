"""Fire-and-forget page-view recording.

The redirect path hands a ``PageViewEvent`` to ``PageViewRecorder.record`` and
returns immediately. Delivery runs on a detached asyncio task, so a slow or
broken analytics backend can never delay or fail a redirect.

Delivery Flow
=============
::
    ┌──────────────┐
    │ record(event)│  (returns at once)
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ detached task│
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Publish to   │
    │ Kafka        │
    └──────┬───────┘
   SUCCESS?│
    ┌──────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Redis   │  │ done    │
│ stream  │  └─────────┘
│ fallback│
└────┬────┘
     │ error
     ▼
┌─────────┐
│ log only│
└─────────┘

Both channels are drained into the ``page_views`` table by the ingestion
worker (``services/ingestion/worker.py``). Failed deliveries are not retried.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as redis
from prometheus_client import Counter

from scvl.config import get_settings
from scvl.kafka import publish_page_view
from scvl.schemas import PageViewEvent

__all__ = ["KafkaPageViewSink", "PageViewRecorder", "PageViewSink"]

settings = get_settings()

PAGEVIEW_EVENTS_PUBLISHED_TOTAL = Counter(
    "scvl_pageview_events_published_total",
    "Page-view events published to Kafka",
)
PAGEVIEW_EVENTS_FALLBACK_TOTAL = Counter(
    "scvl_pageview_events_fallback_total",
    "Page-view events written to the Redis stream because Kafka was unavailable",
)
PAGEVIEW_EVENTS_FAILED_TOTAL = Counter(
    "scvl_pageview_events_failed_total",
    "Page-view events dropped after every delivery channel failed",
)

PageViewSink = Callable[[PageViewEvent], Awaitable[None]]


class KafkaPageViewSink:
    """Publish to Kafka, falling back to a Redis stream."""

    def __init__(
        self,
        stream_writer: redis.Redis,
        *,
        stream_key: str = settings.PAGEVIEW_STREAM_KEY,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._stream_writer = stream_writer
        self._stream_key = stream_key
        self._logger = logger or logging.getLogger("scvl")

    async def __call__(self, event: PageViewEvent) -> None:
        try:
            if await publish_page_view(event):
                PAGEVIEW_EVENTS_PUBLISHED_TOTAL.inc()
                return
        except Exception as exc:
            self._logger.warning(f"Kafka publish error for page view of {event.slug}: {exc}")

        await self._stream_writer.xadd(self._stream_key, {"payload": event.model_dump_json()})
        PAGEVIEW_EVENTS_FALLBACK_TOTAL.inc()
        self._logger.debug(f"Page view for {event.slug} stored in Redis stream")


class PageViewRecorder:
    def __init__(
        self,
        sink: PageViewSink,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._sink = sink
        self._logger = logger or logging.getLogger("scvl")
        self._pending: set[asyncio.Task[None]] = set()

    def record(self, event: PageViewEvent) -> None:
        """Schedule delivery of ``event`` without waiting for it."""
        task = asyncio.create_task(self._deliver(event))
        # The loop only keeps weak references to tasks.
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight deliveries, e.g. on shutdown."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _deliver(self, event: PageViewEvent) -> None:
        try:
            await self._sink(event)
        except Exception as exc:
            PAGEVIEW_EVENTS_FAILED_TOTAL.inc()
            self._logger.error(
                f"Page view recording failed for {event.slug}: {exc}",
                extra={"operation": "record_page_view", "slug": event.slug, "error": str(exc)},
            )
