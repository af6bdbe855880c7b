"""Kafka producer management for page-view events."""

import json

from aiokafka import AIOKafkaProducer

from scvl.config import get_settings
from scvl.schemas import PageViewEvent

__all__ = ["close_kafka", "init_kafka", "publish_page_view"]

settings = get_settings()

_producer: AIOKafkaProducer | None = None


async def init_kafka() -> None:
    global _producer
    if _producer is not None:
        return

    producer = AIOKafkaProducer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        request_timeout_ms=settings.KAFKA_REQUEST_TIMEOUT_MS,
        value_serializer=lambda payload: json.dumps(payload).encode("utf-8"),
    )
    try:
        await producer.start()
        _producer = producer
    except Exception:
        await producer.stop()
        _producer = None


async def close_kafka() -> None:
    global _producer
    if _producer is None:
        return
    await _producer.stop()
    _producer = None


async def publish_page_view(event: PageViewEvent) -> bool:
    assert isinstance(event, PageViewEvent), f"event must be PageViewEvent, got {type(event).__name__}"

    if _producer is None:
        return False

    await _producer.send_and_wait(
        settings.PAGEVIEW_TOPIC,
        event.model_dump(mode="json"),
        key=event.slug.encode("utf-8"),
    )
    return True
