"""api-server configuration.

Only environment variables are read here, so the same code runs locally, in
Docker or on EC2 without edits. Defaults are meant for development; override
them in any shared environment (especially SESSION_SECRET).
"""

from __future__ import annotations

import os

# --- Logging -----------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# --- MongoDB -----------------------------------------------------------------
# Mongo connection string. Example: "mongodb://172.31.2.197:27017"
MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")

# Database name
MONGO_DB: str = os.getenv("MONGO_DB", "eventhorizon")

# Collection names
EVENTS_COLLECTION: str = os.getenv("EVENTS_COLLECTION", "events")
USERS_COLLECTION: str = os.getenv("USERS_COLLECTION", "users")
PAYMENT_REVIEWS_COLLECTION: str = os.getenv("PAYMENT_REVIEWS_COLLECTION", "payment_reviews")

# --- Sessions ----------------------------------------------------------------
# HMAC secret for the session JWT. Must match the web-server's value.
SESSION_SECRET: str = os.getenv("SESSION_SECRET", "dev-session-secret-change-me")
SESSION_ALGORITHM: str = "HS256"

# Token lifetime in seconds (30 days).
SESSION_MAX_AGE: int = int(os.getenv("SESSION_MAX_AGE", str(30 * 24 * 60 * 60)))

# Cookie name the web-server stores the token under.
SESSION_COOKIE: str = os.getenv("SESSION_COOKIE", "session_token")

# bcrypt work factor
BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

# --- Kafka -------------------------------------------------------------------
# The payment-review consumer only runs when this is set.
KAFKA_ENABLED: bool = os.getenv("KAFKA_ENABLED", "false").lower() in ("1", "true", "yes")

# Kafka bootstrap servers (broker addresses). Example: "172.31.0.202:9092"
KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")

# Topic carrying PaymentSubmitted events from the web-server.
KAFKA_TOPIC: str = os.getenv("KAFKA_TOPIC", "payments.v1")

# Consumer group id. Changing it makes the consumer behave like a brand new
# group and (with auto.offset.reset=earliest) re-read old events.
KAFKA_GROUP_ID: str = os.getenv("KAFKA_GROUP_ID", "payment-review-consumer")
