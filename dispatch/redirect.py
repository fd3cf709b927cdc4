"""
Purpose: Where to send a user right after login / app start.
What it does:
- Customer: resume tracking of the newest accepted/on_the_way/delivered order,
  else the waiting screen of the newest pending order, else nothing.
  Tracking always wins over pending, whatever the dates.
- Rider: resume the order they are currently carrying, else the list of
  available orders.

Lookups are plain queries (no cross-document consistency). If the store
fails, the user lands on the default screen instead of being blocked.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Union

from orders.models import RIDER_ACTIVE_STATUSES, TRACKING_STATUSES, OrderStatus
from orders.repository import created_at_key, decode_snapshots
from store.base import ORDERS, DocumentStore, StoreError, where

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tracking:
    order_id: str


@dataclass(frozen=True)
class Waiting:
    order_id: str


@dataclass(frozen=True)
class NoRedirect:
    pass


NO_REDIRECT = NoRedirect()

ClientRedirect = Union[Tracking, Waiting, NoRedirect]


@dataclass(frozen=True)
class RiderTracking:
    order_id: str


@dataclass(frozen=True)
class AvailableOrders:
    pass


AVAILABLE_ORDERS = AvailableOrders()

RiderRedirect = Union[RiderTracking, AvailableOrders]


async def find_client_redirect(store: DocumentStore, customer_id: str) -> ClientRedirect:
    if not customer_id:
        return NO_REDIRECT

    try:
        snapshots = await store.query(ORDERS, [where("clientId", "==", customer_id)])
    except StoreError as exc:
        logger.warning("Client redirect lookup failed for %s: %s", customer_id, exc)
        return NO_REDIRECT

    orders = decode_snapshots(snapshots)

    tracking = [o for o in orders if o.status in TRACKING_STATUSES]
    if tracking:
        return Tracking(max(tracking, key=created_at_key).id)

    pending = [o for o in orders if o.status == OrderStatus.PENDING]
    if pending:
        return Waiting(max(pending, key=created_at_key).id)

    return NO_REDIRECT


async def find_rider_redirect(store: DocumentStore, rider_id: str) -> RiderRedirect:
    if not rider_id:
        return AVAILABLE_ORDERS

    try:
        snapshots = await store.query(
            ORDERS,
            [
                where("acceptedBy", "==", rider_id),
                where("status", "in", [s.value for s in RIDER_ACTIVE_STATUSES]),
            ],
        )
    except StoreError as exc:
        logger.warning("Rider redirect lookup failed for %s: %s", rider_id, exc)
        return AVAILABLE_ORDERS

    orders = decode_snapshots(snapshots)
    if not orders:
        return AVAILABLE_ORDERS
    return RiderTracking(max(orders, key=created_at_key).id)
