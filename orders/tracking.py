"""
Purpose: Live views of a single order for the waiting / tracking screens.
What it does:
- view_order(): pure reduction of (latest stored order, now) -> OrderView
- watch_order(): subscribes to the order document and yields a fresh view on
  every snapshot AND on every tick, so the deadline is re-evaluated locally
  even when storage never changes
- wait_for_resolution(): the customer's waiting screen; optionally writes the
  observed expiry back when the policy asks for it

Expiry here is advisory: a view can say "expired" while storage still says
"pending". See orders.policy for the write-back switch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import math
from typing import AsyncIterator, Callable, Iterable, Optional

from dispatch.state_machines.order_state import OrderStateException, effective_status
from store.base import ORDERS, DocumentSnapshot, DocumentStore

from .codec import OrderDecodeError, decode_order
from .models import Order, OrderStatus, utc_now
from .repository import OrderNotFoundError, OrdersRepository

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    OrderStatus.PENDING: "Waiting for a rider to accept your order...",
    OrderStatus.ACCEPTED: "Your order was accepted, the rider is heading to the shop",
    OrderStatus.ON_THE_WAY: "The rider is on the way to you",
    OrderStatus.DELIVERED: "Order delivered",
    OrderStatus.CANCELLED: "Order cancelled",
    OrderStatus.EXPIRED: "Order expired",
}

STATUS_PROGRESS = {
    OrderStatus.PENDING: 0.25,
    OrderStatus.ACCEPTED: 0.5,
    OrderStatus.ON_THE_WAY: 0.75,
    OrderStatus.DELIVERED: 1.0,
}


def status_message(status: Optional[OrderStatus]) -> str:
    if status is None:
        return "Order not found"
    return STATUS_MESSAGES.get(status, status.value)


def progress_for_status(status: Optional[OrderStatus]) -> float:
    return STATUS_PROGRESS.get(status, 0.0)


@dataclass(frozen=True)
class OrderView:
    order_id: str
    exists: bool
    status: Optional[OrderStatus] = None            # as stored
    effective_status: Optional[OrderStatus] = None  # as the user should see it
    remaining_seconds: int = 0
    eta_minutes: Optional[float] = None
    accepted_by: Optional[str] = None

    @property
    def resolved(self) -> bool:
        """The waiting screen is done: gone, claimed, cancelled or expired."""
        return not self.exists or self.effective_status != OrderStatus.PENDING


def remaining_seconds(order: Order, now: datetime) -> int:
    if order.status != OrderStatus.PENDING or order.expires_at is None:
        return 0
    return max(0, math.floor((order.expires_at - now).total_seconds()))


def view_order(order_id: str, order: Optional[Order], now: datetime) -> OrderView:
    if order is None:
        return OrderView(order_id=order_id, exists=False)

    return OrderView(
        order_id=order_id,
        exists=True,
        status=order.status,
        effective_status=effective_status(order, now),
        remaining_seconds=remaining_seconds(order, now),
        eta_minutes=order.estimated_delivery_time,
        accepted_by=order.accepted_by,
    )


def reduce_snapshots(events: Iterable[DocumentSnapshot], current: Optional[Order] = None) -> Optional[Order]:
    """Folds snapshot events into the latest readable order (None once deleted)."""
    for snapshot in events:
        if not snapshot.exists:
            current = None
            continue
        decoded = decode_order(snapshot.id, snapshot.data)
        if isinstance(decoded, OrderDecodeError):
            logger.warning("Ignoring unreadable snapshot of %s: %s", decoded.doc_id, decoded.reason)
            continue
        current = decoded
    return current


async def watch_order(
    store: DocumentStore,
    order_id: str,
    *,
    clock: Callable[[], datetime] = utc_now,
    tick_seconds: float = 1.0,
    until_resolved: bool = True,
) -> AsyncIterator[OrderView]:
    subscription = store.listen(ORDERS, order_id)
    order: Optional[Order] = None
    seen_first = False
    try:
        while True:
            events = await subscription.poll(tick_seconds if seen_first else None)
            if events:
                seen_first = True
                order = reduce_snapshots(events, order)
            elif subscription.closed:
                return

            if not seen_first:
                continue

            view = view_order(order_id, order, clock())
            yield view
            if until_resolved and view.resolved:
                return
    finally:
        subscription.close()


async def wait_for_resolution(
    repository: OrdersRepository,
    order_id: str,
    on_view: Optional[Callable[[OrderView], None]] = None,
) -> OrderView:
    """
    Runs the waiting screen until the order leaves pending (in the user's eyes)
    and returns the final view. With persist_observed_expiry, an observed
    expiry is written back; losing that race to a rider is fine.
    """
    last_view = OrderView(order_id=order_id, exists=False)
    async for view in watch_order(
        repository.store,
        order_id,
        clock=repository.clock,
        tick_seconds=repository.policy.expiry_tick_seconds,
    ):
        last_view = view
        if on_view is not None:
            on_view(view)

    expired_locally = (
        last_view.effective_status == OrderStatus.EXPIRED
        and last_view.status == OrderStatus.PENDING
    )
    if expired_locally and repository.policy.persist_observed_expiry:
        try:
            await repository.expire_order(order_id)
        except (OrderStateException, OrderNotFoundError) as exc:
            logger.info("Observed expiry of %s not written back: %s", order_id, exc)

    return last_view
