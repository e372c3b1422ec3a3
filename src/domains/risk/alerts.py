"""Publishing risk events to Kafka for downstream notification."""

import json
from typing import Any

import structlog

logger = structlog.get_logger()


async def publish_event(producer, topic: str, payload: dict[str, Any], key: str | None = None) -> bool:
    """Publish a JSON event. Never raises; returns whether the send succeeded.

    Args:
        producer: An aiokafka AIOKafkaProducer instance, or None.
        topic: Destination topic.
        payload: JSON-serializable body.
        key: Optional partition key.
    """
    if producer is None:
        logger.debug("kafka_producer_not_available", topic=topic)
        return False

    try:
        await producer.send_and_wait(
            topic,
            value=json.dumps(payload, default=str).encode("utf-8"),
            key=key.encode("utf-8") if key else None,
        )
        logger.info("risk_event_published", topic=topic, event_type=payload.get("event_type"))
        return True
    except Exception:
        logger.exception("risk_event_publish_failed", topic=topic)
        return False
