"""
Purpose: The order lifecycle state machine.
What it does:
- Declares the only legal status transitions
- Guards each transition and refuses anything else with OrderStateException
- Returns a new Order for every accepted transition (Order is frozen)

    pending ──► accepted ──► on_the_way ──► delivered
       │
       ├──► cancelled
       └──► expired

delivered, cancelled and expired are terminal.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, FrozenSet

from orders.models import TERMINAL_STATUSES, Order, OrderStatus
from routing.eta_service import adjust_eta_on_dispatch


class OrderStateException(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.CANCELLED, OrderStatus.EXPIRED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.ON_THE_WAY}),
    OrderStatus.ON_THE_WAY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.EXPIRED: frozenset(),
}


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(source: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, frozenset())


def _ensure_transition(order: Order, target: OrderStatus) -> None:
    if not can_transition(order.status, target):
        raise OrderStateException(
            f"Cannot transition order {order.id} from {order.status.value} to {target.value}"
        )


def is_expired(order: Order, now: datetime) -> bool:
    """
    True once the pending window has elapsed. Only pending orders expire;
    an order without a deadline never does.
    """
    if order.status != OrderStatus.PENDING or order.expires_at is None:
        return False
    return now >= order.expires_at


def effective_status(order: Order, now: datetime) -> OrderStatus:
    """
    What a client should show. Storage may still say pending after the
    deadline because expiry is evaluated at read time.
    """
    if is_expired(order, now):
        return OrderStatus.EXPIRED
    return order.status


def can_claim(order: Order, now: datetime) -> bool:
    """Acceptance guard: pending, unclaimed and still inside the window."""
    return (
        order.status == OrderStatus.PENDING
        and not order.accepted_by
        and not is_expired(order, now)
    )


def transition_order_to_accepted(order: Order, rider_id: str, now: datetime) -> Order:
    """
    Only the acceptance coordinator calls this, inside its transaction.
    """
    if not rider_id:
        raise OrderStateException(f"Cannot accept order {order.id} without a rider id")
    if not can_claim(order, now):
        raise OrderStateException(
            f"Order {order.id} is not claimable (status={order.status.value}, "
            f"acceptedBy={order.accepted_by!r})"
        )
    return replace(order, status=OrderStatus.ACCEPTED, accepted_by=rider_id)


def transition_order_to_cancelled(order: Order) -> Order:
    """
    Customer-initiated, only while the order is still waiting for a rider.
    """
    _ensure_transition(order, OrderStatus.CANCELLED)
    return replace(order, status=OrderStatus.CANCELLED)


def transition_order_to_expired(order: Order, now: datetime) -> Order:
    _ensure_transition(order, OrderStatus.EXPIRED)
    if not is_expired(order, now):
        raise OrderStateException(f"Order {order.id} is still inside its acceptance window")
    return replace(order, status=OrderStatus.EXPIRED)


def transition_order_to_on_the_way(order: Order) -> Order:
    """
    Rider leaves for the customer. The ETA shrinks by the dispatch rule;
    without a usable prior ETA only the status changes.
    """
    _ensure_transition(order, OrderStatus.ON_THE_WAY)
    new_eta = adjust_eta_on_dispatch(order.estimated_delivery_time)
    if new_eta is None:
        return replace(order, status=OrderStatus.ON_THE_WAY)
    return replace(order, status=OrderStatus.ON_THE_WAY, estimated_delivery_time=new_eta)


def transition_order_to_delivered(order: Order) -> Order:
    _ensure_transition(order, OrderStatus.DELIVERED)
    return replace(order, status=OrderStatus.DELIVERED)
