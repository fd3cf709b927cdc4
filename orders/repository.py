"""
Purpose: Order persistence and the customer/rider lifecycle operations.
What it does:
- create_order(): validates the basket, stamps the pending window, persists
- cancel / dispatch / deliver / expire: each runs as one guarded transaction
  so a transition is always decided against the latest stored status
- available_orders_for_city(): the rider's list of claimable orders
- positions: read the latest position for a uid, upsert your own

Rule: Repository owns store access, order_state owns the transition rules.
Claiming an order is NOT here: see dispatch.dispatcher.AcceptanceCoordinator.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Callable, Dict, List, Optional, Sequence

from dispatch.state_machines.order_state import (
    OrderStateException,
    effective_status,
    is_expired,
    is_terminal,
    transition_order_to_cancelled,
    transition_order_to_delivered,
    transition_order_to_expired,
    transition_order_to_on_the_way,
)
from riders.selection import cities_match
from store.base import ORDERS, POSITIONS, DocumentSnapshot, DocumentStore, Transaction, where

from .cart import Cart
from .codec import OrderDecodeError, decode_order, decode_position, encode_order, encode_position
from .models import TERMINAL_STATUSES, Order, OrderItem, OrderStatus, Position, utc_now
from .policy import LifecyclePolicy, default_lifecycle_policy

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

ACTIVE_STATUSES = [s.value for s in OrderStatus if s not in TERMINAL_STATUSES]


class InvalidOrderError(ValueError):
    """Raised when an order cannot be created from the given items."""
    pass


class OrderNotFoundError(LookupError):
    """Raised when a lifecycle operation targets an order that does not exist."""
    pass


class ActiveOrderExistsError(Exception):
    """Raised when the policy refuses a second non-terminal order for a customer."""
    pass


def created_at_key(order: Order):
    """Newest-first sort key. Missing createdAt sorts oldest; ties go to the greater id."""
    return (order.created_at or _EPOCH, order.id)


def decode_snapshots(snapshots: Sequence[DocumentSnapshot]) -> List[Order]:
    orders = []
    for snapshot in snapshots:
        decoded = decode_order(snapshot.id, snapshot.data)
        if isinstance(decoded, OrderDecodeError):
            logger.warning("Skipping order %s: %s", decoded.doc_id, decoded.reason)
            continue
        orders.append(decoded)
    return orders


async def find_position(store: DocumentStore, uid: str) -> Optional[Position]:
    """
    Latest position stored for `uid` (normally there is exactly one).
    """
    if not uid:
        return None
    snapshots = await store.query(POSITIONS, [where("uid", "==", uid)])
    positions = [p for p in (decode_position(s.data) for s in snapshots) if p is not None]
    if not positions:
        return None
    return max(positions, key=lambda p: p.timestamp)


def validate_items(items: Sequence[OrderItem]) -> None:
    if not items:
        raise InvalidOrderError("An order needs at least one item.")
    for item in items:
        if item.quantity < 1:
            raise InvalidOrderError(f"Quantity for {item.product_id} must be >= 1, got {item.quantity}")
        if item.price < 0:
            raise InvalidOrderError(f"Price for {item.product_id} must be >= 0, got {item.price}")
    if sum(item.price * item.quantity for item in items) <= 0:
        raise InvalidOrderError("Order total must be > 0.")


class OrdersRepository:
    def __init__(
        self,
        store: DocumentStore,
        policy: Optional[LifecyclePolicy] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.policy = policy or default_lifecycle_policy()
        self.clock = clock

    # --- creation ---

    async def create_order(self, client_id: str, items: Sequence[OrderItem]) -> Order:
        if not client_id:
            raise InvalidOrderError("An order needs a client id.")
        validate_items(items)

        if self.policy.reject_when_active:
            active = await self.find_active_order(client_id)
            if active is not None:
                raise ActiveOrderExistsError(
                    f"Client {client_id} already has order {active.id} in status {active.status.value}"
                )

        order = Order.new(
            client_id,
            items,
            now=self.clock(),
            acceptance_window=self.policy.acceptance_window,
        )
        await self.store.set(ORDERS, order.id, encode_order(order))
        logger.info("Order %s created for client %s (total=%.2f)", order.id, client_id, order.total)
        return order

    async def create_order_from_cart(self, client_id: str, cart: Cart) -> Order:
        """
        Submits the basket. The cart is only cleared once the order is stored.
        """
        order = await self.create_order(client_id, cart.items)
        cart.clear()
        return order

    # --- reads ---

    async def get_order(self, order_id: str) -> Optional[Order]:
        snapshot = await self.store.get(ORDERS, order_id)
        if not snapshot.exists:
            return None
        decoded = decode_order(snapshot.id, snapshot.data)
        if isinstance(decoded, OrderDecodeError):
            logger.warning("Order %s unreadable: %s", decoded.doc_id, decoded.reason)
            return None
        return decoded

    async def find_active_order(self, client_id: str) -> Optional[Order]:
        snapshots = await self.store.query(
            ORDERS,
            [where("clientId", "==", client_id), where("status", "in", ACTIVE_STATUSES)],
        )
        orders = decode_snapshots(snapshots)
        if not orders:
            return None
        return max(orders, key=created_at_key)

    async def available_orders_for_city(self, city: str) -> List[Order]:
        """
        Pending, unexpired orders whose customer is in `city`, newest first.
        """
        now = self.clock()
        snapshots = await self.store.query(ORDERS, [where("status", "==", OrderStatus.PENDING.value)])
        pending = [o for o in decode_snapshots(snapshots) if not is_expired(o, now)]
        if not pending:
            return []

        client_ids = sorted({o.client_id for o in pending})
        positions = await asyncio.gather(*(find_position(self.store, uid) for uid in client_ids))
        city_by_client: Dict[str, str] = {
            uid: position.city for uid, position in zip(client_ids, positions) if position is not None
        }

        matching = [o for o in pending if cities_match(city_by_client.get(o.client_id), city)]
        matching.sort(key=created_at_key, reverse=True)
        return matching

    # --- transitions ---

    async def _transition(self, order_id: str, apply: Callable[[Order], Order]) -> Order:
        async def _run(tx: Transaction) -> Order:
            snapshot = await tx.get(ORDERS, order_id)
            if not snapshot.exists:
                raise OrderNotFoundError(f"Order {order_id} not found")

            current = decode_order(snapshot.id, snapshot.data)
            if isinstance(current, OrderDecodeError):
                raise OrderStateException(f"Order {order_id} is unreadable: {current.reason}")

            updated = apply(current)

            fields = {"status": updated.status.value}
            if updated.estimated_delivery_time != current.estimated_delivery_time:
                fields["estimatedDeliveryTime"] = updated.estimated_delivery_time
            tx.update(ORDERS, order_id, fields)
            return updated

        updated = await self.store.run_transaction(_run)
        logger.info("Order %s -> %s", order_id, updated.status.value)
        return updated

    async def cancel_order(self, order_id: str) -> Order:
        return await self._transition(order_id, transition_order_to_cancelled)

    async def dispatch_order(self, order_id: str) -> Order:
        """accepted -> on_the_way, with the dispatch ETA decrement."""
        return await self._transition(order_id, transition_order_to_on_the_way)

    async def deliver_order(self, order_id: str) -> Order:
        return await self._transition(order_id, transition_order_to_delivered)

    async def expire_order(self, order_id: str) -> Order:
        return await self._transition(order_id, lambda order: transition_order_to_expired(order, self.clock()))

    async def discard_order(self, order_id: str) -> bool:
        """
        Deletes an order the customer has finished with (cancelled, expired,
        delivered, or pending past its deadline). Returns False if it was
        already gone.
        """
        async def _run(tx: Transaction) -> bool:
            snapshot = await tx.get(ORDERS, order_id)
            if not snapshot.exists:
                return False

            current = decode_order(snapshot.id, snapshot.data)
            if not isinstance(current, OrderDecodeError):
                status = effective_status(current, self.clock())
                if not is_terminal(status):
                    raise OrderStateException(
                        f"Order {order_id} is still {status.value} and cannot be discarded"
                    )
            tx.delete(ORDERS, order_id)
            return True

        return await self.store.run_transaction(_run)

    # --- positions ---

    async def find_position(self, uid: str) -> Optional[Position]:
        return await find_position(self.store, uid)

    async def upsert_position(self, position: Position) -> None:
        """Each user only ever writes their own position document (keyed by uid)."""
        await self.store.set(POSITIONS, position.uid, encode_position(position))
