"""Visitor cart.

`CartStore` is the only writer of the visitor's `eventCart` slot. It keeps the
line items in memory, rehydrates them from storage on construction and writes
the whole cart back after every mutation.
"""

from __future__ import annotations

import json
import logging
import math

import pydantic

from .config import CART_STORAGE_KEY
from .models import AddToCartRequest, LineItem, cart_key
from .storage import ClientStorage

logger = logging.getLogger(__name__)

MIN_QUANTITY = 1
MAX_QUANTITY = 10

# VIP package: early entry + perks, flat surcharge over general admission.
VIP_SURCHARGE = 100


def tier_price(event_price: float, tier: str) -> float:
    """Unit price of a ticket tier for an event listed at `event_price`."""
    if tier == "vip":
        return event_price + VIP_SURCHARGE
    return event_price


def clamp_quantity(value: object) -> int:
    """Coerce user input to a quantity in [1, 10].

    Numeric strings are accepted; anything non-numeric, NaN or below 1 is 1.
    """
    if isinstance(value, bool):
        return MIN_QUANTITY
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return MIN_QUANTITY
    if math.isnan(number) or number < MIN_QUANTITY:
        return MIN_QUANTITY
    if number > MAX_QUANTITY:
        return MAX_QUANTITY
    return int(number)


def dump_cart(items: list[LineItem]) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items])


def parse_cart(raw: str) -> list[LineItem]:
    """Parse a serialized cart.

    Raises:
        ValueError: not JSON, not a list, or an entry is not a valid line item.
    """
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("cart must be a JSON array")
    return [LineItem.model_validate(entry) for entry in data]


class CartStore:
    """Ordered line items mirrored to a storage slot."""

    def __init__(self, storage: ClientStorage, key: str = CART_STORAGE_KEY) -> None:
        self._storage = storage
        self._key = key
        self._items: list[LineItem] = []
        self.load()

    def load(self) -> list[LineItem]:
        """Rehydrate from storage.

        A missing slot is an empty cart. A malformed slot is dropped from
        storage so the next load does not trip over it again.
        """
        raw = self._storage.get_item(self._key)
        if raw is None:
            self._items = []
            return self.items

        try:
            self._items = parse_cart(raw)
        except (ValueError, pydantic.ValidationError) as e:
            logger.warning("Failed to parse stored cart, clearing it: %s", e)
            self._storage.remove_item(self._key)
            self._items = []
        return self.items

    def _save(self) -> None:
        self._storage.set_item(self._key, dump_cart(self._items))

    @property
    def items(self) -> list[LineItem]:
        return list(self._items)

    def get(self, key: str) -> LineItem | None:
        for item in self._items:
            if item.cartKey == key:
                return item
        return None

    def add_or_increment(self, request: AddToCartRequest) -> list[LineItem]:
        """Add a ticket selection, merging with an existing (event, tier) entry.

        The merged quantity is not clamped here; `set_quantity` clamps.
        """
        if request.quantity <= 0:
            return self.items

        key = cart_key(request.eventId, request.tier)
        existing = self.get(key)
        if existing is not None:
            existing.quantity += request.quantity
        else:
            self._items.append(LineItem(**request.model_dump()))

        self._save()
        return self.items

    def set_quantity(self, key: str, quantity: object) -> list[LineItem]:
        """Set the quantity of one line item, clamped to [1, 10]."""
        item = self.get(key)
        if item is None:
            return self.items

        item.quantity = clamp_quantity(quantity)
        self._save()
        return self.items

    def remove(self, key: str) -> list[LineItem]:
        """Remove a line item. Removing an absent key is a no-op."""
        remaining = [item for item in self._items if item.cartKey != key]
        if len(remaining) != len(self._items):
            self._items = remaining
            self._save()
        return self.items

    def clear(self) -> None:
        """Empty the cart and drop the storage slot (order placed)."""
        self._items = []
        self._storage.remove_item(self._key)

    def total(self) -> float:
        return sum(item.subtotal for item in self._items)

    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    def summary(self) -> dict:
        """JSON-ready view used by the cart and checkout endpoints."""
        return {
            "items": [item.model_dump(mode="json") for item in self._items],
            "total": self.total(),
            "itemCount": self.item_count(),
        }
