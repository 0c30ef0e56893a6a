"""web-server configuration.

The web-server is the "client-facing" service:
- It owns each visitor's cart and checkout flow.
- It publishes PaymentSubmitted events to Kafka for manual review.
- It proxies catalog and auth requests to api-server.

Everything is controlled by environment variables so this service can run
anywhere (local, EC2, Docker) without code changes.
"""

from __future__ import annotations

import os

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# api-server base URL (internal VPC IP or DNS)
API_SERVER_URL: str = os.getenv("API_SERVER_URL", "http://localhost:8000")
API_TIMEOUT_SECONDS: float = float(os.getenv("API_TIMEOUT_SECONDS", "10"))

# Sessions: same secret as api-server, which signs the tokens.
SESSION_SECRET: str = os.getenv("SESSION_SECRET", "dev-session-secret-change-me")
SESSION_ALGORITHM: str = "HS256"
SESSION_COOKIE: str = os.getenv("SESSION_COOKIE", "session_token")

# Visitor storage: one directory per visitor, one file per slot.
VISITOR_COOKIE: str = os.getenv("VISITOR_COOKIE", "visitor_id")
CART_STORAGE_DIR: str = os.getenv("CART_STORAGE_DIR", "/tmp/eventhorizon-visitors")
CART_STORAGE_KEY: str = os.getenv("CART_STORAGE_KEY", "eventCart")

# Checkout
VERIFICATION_SECONDS: int = int(os.getenv("VERIFICATION_SECONDS", "1800"))
SIGNIN_PATH: str = os.getenv("SIGNIN_PATH", "/auth/signin")

# Kafka
KAFKA_ENABLED: bool = os.getenv("KAFKA_ENABLED", "false").lower() in ("1", "true", "yes")
KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
KAFKA_TOPIC: str = os.getenv("KAFKA_TOPIC", "payments.v1")
# Flows not yet verifying are dropped after this long without a request;
# verified receipts are kept for the same time.
FLOW_IDLE_SECONDS: int = int(os.getenv("FLOW_IDLE_SECONDS", "3600"))
