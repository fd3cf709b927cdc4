"""
Purpose: Domain models for the Orders capability.
What it does:
- Defines core data structures:
- Order (id, client id, items, total, status, timestamps, acceptedBy, ETA)
- OrderItem (productId, name, quantity, price)
- Position (uid, city, optional street and coordinates)

Defines enums/constants:
- OrderStatus = pending | accepted | on_the_way | delivered | cancelled | expired
- ACCEPTANCE_WINDOW = 10 minutes

Rule: No store calls, no transition rules. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import FrozenSet, Optional, Sequence, Tuple
import uuid

LatLon = Tuple[float, float]

ACCEPTANCE_WINDOW = timedelta(minutes=10)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.EXPIRED}
)

# statuses a customer is resumed into the tracking screen for
TRACKING_STATUSES: Tuple[OrderStatus, ...] = (
    OrderStatus.ACCEPTED,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
)

# statuses in which the rider still has work to do
RIDER_ACTIVE_STATUSES: Tuple[OrderStatus, ...] = (
    OrderStatus.ACCEPTED,
    OrderStatus.ON_THE_WAY,
)

# statuses that require acceptedBy to be set
CLAIMED_STATUSES: FrozenSet[OrderStatus] = frozenset(TRACKING_STATUSES)


@dataclass(frozen=True)
class OrderItem:
    product_id: str
    name: str
    quantity: int = 1
    price: float = 0.0

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


def order_total(items: Sequence[OrderItem]) -> float:
    return sum(item.price * item.quantity for item in items)


@dataclass(frozen=True)
class Order:
    """
    A customer order as stored in the `orders` collection.
    Items and total are fixed at creation; only status, acceptedBy and the
    ETA move afterwards.
    """

    id: str
    client_id: str
    items: Tuple[OrderItem, ...] = ()
    total: float = 0.0

    status: OrderStatus = OrderStatus.PENDING

    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None  # only meaningful while pending

    accepted_by: Optional[str] = None
    estimated_delivery_time: Optional[float] = None  # minutes

    @staticmethod  # Factory used by the customer flow, total is always derived from items
    def new(
        client_id: str,
        items: Sequence[OrderItem],
        *,
        now: Optional[datetime] = None,
        acceptance_window: timedelta = ACCEPTANCE_WINDOW,
    ) -> Order:
        now = now or utc_now()
        frozen_items = tuple(items)
        return Order(
            id=str(uuid.uuid4()),
            client_id=client_id,
            items=frozen_items,
            total=order_total(frozen_items),
            status=OrderStatus.PENDING,
            created_at=now,
            expires_at=now + acceptance_window,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class Position:
    """
    Last known position of a user (customer or rider). One per uid.
    """

    uid: str
    city: str = ""
    street: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def coordinates(self) -> Optional[LatLon]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)
