"""Pydantic models for api-server.

Request bodies, response shapes and the Kafka event contract all live here so
the wire format is explicit and self-documenting.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Category(str, Enum):
    """Fixed catalog categories."""

    concerts = "concerts"
    sports = "sports"
    festivals = "festivals"
    theater = "theater"


class Event(BaseModel):
    """A catalog event as returned by `GET /events`.

    Built from a Mongo document; `id` is the stringified `_id`.
    """

    id: str
    title: str
    artist: Optional[str] = None
    image: Optional[str] = None
    date: datetime
    time: Optional[str] = None
    venue: str
    location: str
    category: Category
    price: float = Field(ge=0)
    originalPrice: Optional[float] = None
    rating: float = 0
    seatsLeft: int = 0


class SignupRequest(BaseModel):
    """Request body for `POST /auth/signup`."""

    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    name: str = Field(min_length=1)


class SigninRequest(BaseModel):
    """Request body for `POST /auth/signin`."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SessionUser(BaseModel):
    """Identity snapshot carried inside the session token."""

    id: str
    email: str
    name: str
    balance: float = 0


class UserAccount(BaseModel):
    """Public view of a stored account (never includes the password hash)."""

    id: str
    email: str
    name: str
    balance: float = Field(default=0, ge=0)
    createdAt: datetime


class SigninResponse(BaseModel):
    token: str
    expiresAt: datetime
    user: SessionUser


class PaymentSubmittedEvent(BaseModel):
    """Kafka event schema for a payment reference awaiting manual review.

    Fields:
        eventId: Unique id of this submission (UUID string). Stored as Mongo `_id`.
        attemptId: The checkout attempt; several submissions share one after a cancel.
        timestamp: ISO8601 timestamp string (UTC).
        userEmail: Who submitted the reference.
        methodId: Payment method the visitor chose (e.g. "bank_transfer").
        reference: The transaction reference the visitor typed in.
        amount: Order total at submission time.
        itemCount: Number of tickets in the order.

    Must match the schema produced by the web-server.
    """

    eventId: str
    attemptId: Optional[str] = None
    eventType: Literal["PaymentSubmitted"] = "PaymentSubmitted"
    eventVersion: int = 1
    timestamp: str

    userEmail: str
    methodId: str
    reference: str = Field(min_length=1)
    amount: float = Field(ge=0)
    itemCount: int = Field(ge=0)
