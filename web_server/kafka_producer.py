"""Kafka producer helper for web-server.

When a visitor submits a transaction reference, the checkout flow hands a
PaymentSubmitted event to `send_payment_submitted`. api-server consumes the
topic into its payment-review queue.

- The producer is created once at startup and reused.
- `produce()` only queues the message; `flush()` waits for the broker ack so
  a submission is on the topic before the request returns.
- The message key is the user email: same key, same partition, so one
  user's submissions stay ordered.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from confluent_kafka import Producer

from .config import KAFKA_BOOTSTRAP_SERVERS
from .models import PaymentSubmittedEvent

logger = logging.getLogger(__name__)


def create_producer() -> Producer:
    """Create and configure a Confluent Kafka Producer."""
    conf: dict[str, Any] = {
        "bootstrap.servers": KAFKA_BOOTSTRAP_SERVERS,
        # Broker-side dedupe of retried sends.
        "enable.idempotence": True,
    }
    return Producer(conf)


def _delivery_report(err, msg) -> None:
    """Delivery callback, invoked on broker ack or final delivery failure."""
    if err is not None:
        logger.error("Delivery failed: %s", err)
    else:
        logger.info("Delivered to %s [%s] @ offset %s", msg.topic(), msg.partition(), msg.offset())


def send_payment_submitted(producer: Producer, topic: str, event: PaymentSubmittedEvent) -> None:
    """Serialize and send the PaymentSubmitted event to Kafka."""
    payload: bytes = json.dumps(event.model_dump()).encode("utf-8")
    key: bytes = event.userEmail.encode("utf-8")

    producer.produce(
        topic=topic,
        key=key,
        value=payload,
        callback=_delivery_report,
    )

    # Blocks until queued messages are delivered or the timeout passes.
    producer.flush(5)
