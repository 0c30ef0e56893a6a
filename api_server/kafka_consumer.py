"""Kafka consumer loop for the payment-review queue.

High-level flow:
    poll -> decode JSON -> validate schema -> write review to Mongo -> commit offset

The web-server publishes a PaymentSubmitted event whenever a visitor submits a
transaction reference at checkout. Staff verify those references by hand, so
this loop only has to land each event in `payment_reviews` exactly once.

- Offsets are committed manually, after the Mongo write succeeds. That gives
  at-least-once delivery; the review `_id` (checkout attempt id) makes the
  write idempotent.
- `consumer.poll(1.0)` waits at most a second so the loop can notice
  `stop_event` on shutdown.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from confluent_kafka import Consumer
from pydantic import ValidationError

from .config import KAFKA_BOOTSTRAP_SERVERS, KAFKA_GROUP_ID, KAFKA_TOPIC
from .models import PaymentSubmittedEvent
from .mongo import insert_payment_review

logger = logging.getLogger(__name__)


def create_consumer() -> Consumer:
    """Create and configure a Confluent Kafka Consumer.

    - auto.offset.reset=earliest: a brand new group starts at the beginning
      of the topic so no submitted payment is skipped.
    - enable.auto.commit=False: offsets are committed only after Mongo
      accepted the review.
    """
    conf: dict[str, Any] = {
        "bootstrap.servers": KAFKA_BOOTSTRAP_SERVERS,
        "group.id": KAFKA_GROUP_ID,
        "auto.offset.reset": "earliest",
        "enable.auto.commit": False,
    }
    return Consumer(conf)


def review_from_event(event: PaymentSubmittedEvent) -> dict[str, Any]:
    """Transform a PaymentSubmitted event into a review document."""
    return {
        "_id": event.eventId,
        "attemptId": event.attemptId,
        "eventVersion": event.eventVersion,
        "timestamp": event.timestamp,
        "userEmail": event.userEmail,
        "methodId": event.methodId,
        "reference": event.reference,
        "amount": event.amount,
        "itemCount": event.itemCount,
        "status": "pending_review",
    }


def handle_message(db, msg) -> bool:
    """Process one Kafka message. Returns True when its offset may be committed.

    Poison messages (bad JSON / wrong schema) are logged and reported as
    committable. Otherwise the consumer would re-read them forever.
    """
    try:
        data = json.loads(msg.value().decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(
            "Bad payload (decode/json): %s. Skipping. partition=%s offset=%s",
            e,
            msg.partition(),
            msg.offset(),
        )
        return True

    try:
        event = PaymentSubmittedEvent.model_validate(data)
    except ValidationError as e:
        logger.warning("Bad event schema: %s. data=%s", e, data)
        return True

    logger.info(
        "Received payment submission %s for %s (p=%s o=%s)",
        event.eventId,
        event.userEmail,
        msg.partition(),
        msg.offset(),
    )
    return insert_payment_review(db, review_from_event(event))


def run_consumer(db, stop_event) -> None:
    """Run the consumer loop until `stop_event.is_set()` becomes True.

    Args:
        db: MongoDB database handle.
        stop_event: A threading.Event (or compatible object) used to stop the loop.
    """
    logger.info("Starting payment-review consumer on %s", KAFKA_TOPIC)

    consumer = create_consumer()
    consumer.subscribe([KAFKA_TOPIC])

    try:
        while not stop_event.is_set():
            msg = consumer.poll(1.0)

            if msg is None:
                continue

            # Kafka-level error, not an application payload error.
            if msg.error():
                logger.error("Kafka error: %s", msg.error())
                continue

            if handle_message(db, msg):
                consumer.commit(msg)

    finally:
        consumer.close()
        logger.info("Payment-review consumer closed")
