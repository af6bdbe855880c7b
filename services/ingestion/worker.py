"""Page-view ingestion consumer.

Consumes ``PageViewEvent`` payloads from Kafka and from the Redis fallback
stream, and appends them to the ``page_views`` table in batches.

Run with::

    python -m services.ingestion.worker
"""

import asyncio
import json
import logging

import redis.asyncio as redis
from aiokafka import AIOKafkaConsumer
from prometheus_client import Counter, start_http_server
from pydantic import ValidationError
from redis.asyncio.client import Redis as AsyncRedis

from scvl.cache import create_redis_client
from scvl.config import get_settings
from scvl.database import async_session, init_db
from scvl.models import PageView
from scvl.schemas import PageViewEvent
from scvl.store import PageStore

__all__ = ["run", "to_page_view"]

settings = get_settings()
logger = logging.getLogger(__name__)

INGESTION_KAFKA_EVENTS_TOTAL = Counter(
    "ingestion_kafka_events_total",
    "Page-view events consumed from Kafka by ingestion workers",
)
INGESTION_STREAM_EVENTS_TOTAL = Counter(
    "ingestion_stream_events_total",
    "Page-view events consumed from the Redis fallback stream by ingestion workers",
)
INGESTION_DB_ROWS_TOTAL = Counter(
    "ingestion_db_rows_total",
    "Page-view rows inserted by ingestion workers",
)


def to_page_view(event: PageViewEvent) -> PageView:
    return PageView(
        slug=event.slug,
        real_ip=event.real_ip,
        referer=event.referer,
        mobile=event.mobile,
        platform=event.platform,
        os=event.os,
        browser_name=event.browser_name,
        created_at=event.timestamp,
    )


async def _store_batch(batch: list[PageViewEvent]) -> int:
    if not batch:
        return 0
    async with async_session() as session:
        inserted = await PageStore(session).add_page_views(to_page_view(event) for event in batch)
    INGESTION_DB_ROWS_TOTAL.inc(inserted)
    return inserted


async def _read_fallback_stream(client: AsyncRedis, cursor: str = ">") -> tuple[list[PageViewEvent], list[str]]:
    """Read one batch from the fallback stream.

    Returns the parsed events and the ids of every message read, malformed
    ones included. Nothing is acknowledged here. ``cursor="0"`` re-reads this
    consumer's delivered but unacknowledged entries instead of new ones.
    """
    streams = await client.xreadgroup(
        groupname=settings.INGESTION_CONSUMER_GROUP,
        consumername=settings.INGESTION_CONSUMER_NAME,
        streams={settings.PAGEVIEW_STREAM_KEY: cursor},
        count=settings.INGESTION_BATCH_SIZE,
        block=settings.INGESTION_BLOCK_MS,
    )
    batch: list[PageViewEvent] = []
    message_ids: list[str] = []
    for _, messages in streams or []:
        for message_id, fields in messages:
            message_ids.append(message_id)
            try:
                batch.append(PageViewEvent.model_validate_json(fields["payload"]))
            except (KeyError, ValidationError):
                logger.warning("invalid fallback page view payload", exc_info=True)
    INGESTION_STREAM_EVENTS_TOTAL.inc(len(batch))
    return batch, message_ids


async def _ack_fallback_stream(client: AsyncRedis, message_ids: list[str]) -> None:
    if not message_ids:
        return
    await client.xack(settings.PAGEVIEW_STREAM_KEY, settings.INGESTION_CONSUMER_GROUP, *message_ids)


async def _ensure_fallback_group(client: AsyncRedis) -> None:
    try:
        await client.xgroup_create(
            settings.PAGEVIEW_STREAM_KEY,
            settings.INGESTION_CONSUMER_GROUP,
            id="0",
            mkstream=True,
        )
    except redis.ResponseError as exc:
        if "BUSYGROUP" not in str(exc):
            raise


async def _ingest_once(consumer: AIOKafkaConsumer, client: AsyncRedis, stream_cursor: str) -> str:
    """Move one batch from Kafka and the fallback stream into the database.

    Stream acks and Kafka offsets advance only after the insert commits.
    Returns the stream cursor for the next iteration: ``"0"`` keeps draining
    this consumer's pending entries, ``">"`` reads new ones.
    """
    records = await consumer.getmany(
        timeout_ms=settings.INGESTION_BLOCK_MS, max_records=settings.INGESTION_BATCH_SIZE
    )
    batch: list[PageViewEvent] = []
    for topic_partition_records in records.values():
        for record in topic_partition_records:
            try:
                batch.append(PageViewEvent.model_validate(record.value))
            except ValidationError:
                logger.warning("invalid kafka page view payload", exc_info=True)
    INGESTION_KAFKA_EVENTS_TOTAL.inc(len(batch))

    stream_batch, message_ids = await _read_fallback_stream(client, stream_cursor)
    batch.extend(stream_batch)
    await _store_batch(batch)
    await _ack_fallback_stream(client, message_ids)
    await consumer.commit()

    if stream_cursor == "0" and not message_ids:
        return ">"
    return stream_cursor


async def run() -> None:
    start_http_server(settings.INGESTION_METRICS_PORT)
    await init_db()

    # blocking stream reads must outlive the socket timeout
    client = create_redis_client(settings.REDIS_URL, socket_timeout=settings.INGESTION_BLOCK_MS / 1000 + 5)
    consumer = AIOKafkaConsumer(
        settings.PAGEVIEW_TOPIC,
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        group_id=settings.INGESTION_CONSUMER_GROUP,
        value_deserializer=lambda payload: json.loads(payload.decode("utf-8")),
        client_id=settings.INGESTION_CONSUMER_NAME,
        enable_auto_commit=False,
    )

    await _ensure_fallback_group(client)
    await consumer.start()
    # start with entries left pending by a previous run
    stream_cursor = "0"
    try:
        while True:
            try:
                stream_cursor = await _ingest_once(consumer, client, stream_cursor)
            except Exception:
                logger.warning("ingestion loop iteration failed", exc_info=True)
                stream_cursor = "0"
                await asyncio.sleep(1)
    finally:
        await consumer.stop()
        await client.aclose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run())
