"""MongoDB helper functions for api-server.

This module has one job: handle MongoDB interactions. Everything above it gets
plain dicts or pydantic models back.

Key design choices:
- `users.email` carries a unique index, so a signup race still cannot create
  two accounts for one address.
- Payment reviews use the checkout attempt id as `_id`. Replaying the same
  Kafka message is then rejected by Mongo and treated as "already processed".
"""

from __future__ import annotations

import logging
from typing import Any

from pymongo import ASCENDING, DESCENDING, MongoClient, errors
from pymongo.database import Database

from .config import (
    EVENTS_COLLECTION,
    MONGO_DB,
    MONGO_URI,
    PAYMENT_REVIEWS_COLLECTION,
    USERS_COLLECTION,
)
from .errors import EmailTakenError
from .models import Category, Event

logger = logging.getLogger(__name__)


def get_database() -> Database:
    """Connect to MongoDB and return the configured database."""
    client = MongoClient(MONGO_URI)
    return client[MONGO_DB]


def ensure_indexes(db: Database) -> None:
    """Create the indexes the read paths rely on.

    - events: filter by category, sort by date ascending
    - users: unique email
    - payment_reviews: find(userEmail).sort(timestamp desc)
    """
    db[EVENTS_COLLECTION].create_index([("category", ASCENDING), ("date", ASCENDING)])
    db[USERS_COLLECTION].create_index([("email", ASCENDING)], unique=True)
    db[PAYMENT_REVIEWS_COLLECTION].create_index(
        [("userEmail", ASCENDING), ("timestamp", DESCENDING)]
    )


def _event_from_doc(doc: dict[str, Any]) -> Event:
    # Prices and counters have been stored as strings by older seed scripts.
    return Event(
        id=str(doc["_id"]),
        title=doc["title"],
        artist=doc.get("artist"),
        image=doc.get("image"),
        date=doc["date"],
        time=doc.get("time"),
        venue=doc["venue"],
        location=doc["location"],
        category=doc["category"],
        price=float(doc["price"]),
        originalPrice=float(doc["originalPrice"]) if doc.get("originalPrice") else None,
        rating=float(doc.get("rating") or 0),
        seatsLeft=int(doc.get("seatsLeft") or 0),
    )


def list_events(db: Database, category: Category | None = None) -> list[Event]:
    """Return catalog events sorted by date ascending, optionally by category."""
    query: dict[str, Any] = {}
    if category is not None:
        query["category"] = category.value
    docs = db[EVENTS_COLLECTION].find(query).sort("date", ASCENDING)
    return [_event_from_doc(doc) for doc in docs]


def find_user_by_email(db: Database, email: str) -> dict[str, Any] | None:
    return db[USERS_COLLECTION].find_one({"email": email})


def insert_user(db: Database, user: dict[str, Any]) -> str:
    """Insert a user document and return its id.

    Raises:
        EmailTakenError: the unique email index rejected the insert.
    """
    try:
        result = db[USERS_COLLECTION].insert_one(user)
    except errors.DuplicateKeyError as e:
        raise EmailTakenError(user["email"]) from e
    logger.info("Inserted user %s", result.inserted_id)
    return str(result.inserted_id)


def get_balance(db: Database, email: str) -> float | None:
    """Return the stored balance for `email`, or None if there is no such user."""
    doc = db[USERS_COLLECTION].find_one({"email": email}, projection={"balance": 1})
    if doc is None:
        return None
    return float(doc.get("balance") or 0)


def insert_payment_review(db: Database, review: dict[str, Any]) -> bool:
    """Insert a payment-review document.

    Returns:
        True  -> insert succeeded OR duplicate was ignored
        False -> unexpected failure (caller may choose to not commit offset)
    """
    try:
        db[PAYMENT_REVIEWS_COLLECTION].insert_one(review)
        logger.info("Inserted payment review %s", review["_id"])
        return True
    except errors.DuplicateKeyError:
        logger.info("Duplicate payment review ignored: %s", review["_id"])
        return True
    except errors.PyMongoError as e:
        logger.error("Insert failed: %s review_id=%s", e, review.get("_id"))
        return False


def get_payment_reviews(db: Database, user_email: str) -> list[dict[str, Any]]:
    """Return payment reviews for a user, newest first."""
    return list(
        db[PAYMENT_REVIEWS_COLLECTION].find({"userEmail": user_email}).sort("timestamp", DESCENDING)
    )
