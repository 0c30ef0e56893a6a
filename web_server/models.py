"""Pydantic models for web-server.

We validate input at the HTTP boundary so that:
- bad requests fail fast with a clear error
- only well-formed line items reach visitor storage
- the PaymentSubmitted contract stays consistent with api-server
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field

TicketTier = Literal["general", "vip"]


def cart_key(event_id: str, tier: str) -> str:
    """Composite key of a line item: one entry per (event, tier)."""
    return f"{event_id}-{tier}"


class LineItem(BaseModel):
    """One (event, ticket tier) pairing in the cart.

    Title, image and date are copied from the catalog at add time so the cart
    renders without another catalog fetch.
    """

    eventId: str
    tier: str
    quantity: int = Field(ge=0)
    price: float = Field(ge=0)
    title: str = ""
    image: Optional[str] = None
    date: Optional[str] = None

    @computed_field
    @property
    def cartKey(self) -> str:
        return cart_key(self.eventId, self.tier)

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


class AddToCartRequest(BaseModel):
    """Request body for `POST /cart/items`."""

    eventId: str = Field(min_length=1)
    tier: TicketTier = "general"
    quantity: int = Field(default=1, ge=0)
    price: float = Field(ge=0)
    title: str = ""
    image: Optional[str] = None
    date: Optional[str] = None


class QuantityRequest(BaseModel):
    """Request body for `PUT /cart/items/{key}`.

    Deliberately loose: the cart coerces anything non-numeric to 1.
    """

    quantity: object = None


class SigninRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SignupRequest(BaseModel):
    email: str
    password: str
    name: str


class SelectMethodRequest(BaseModel):
    methodId: str


class SubmitReferenceRequest(BaseModel):
    reference: str = ""


class SessionUser(BaseModel):
    """Identity snapshot decoded from the session token."""

    id: str
    email: str
    name: str
    balance: float = 0


class PaymentSubmittedEvent(BaseModel):
    """Kafka event produced by web-server.

    This must match the schema expected by api-server.
    """

    eventId: str
    attemptId: str
    eventType: Literal["PaymentSubmitted"] = "PaymentSubmitted"
    eventVersion: int = 1
    timestamp: str

    userEmail: str
    methodId: str
    reference: str = Field(min_length=1)
    amount: float = Field(ge=0)
    itemCount: int = Field(ge=0)
