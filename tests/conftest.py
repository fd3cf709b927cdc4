import asyncio

import pytest
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from orders.codec import encode_order
from orders.models import Order, OrderItem, OrderStatus, Position
from orders.policy import LifecyclePolicy
from orders.repository import OrdersRepository
from store.base import ORDERS, USERS
from store.memory import InMemoryDocumentStore

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the tests move by hand."""
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeRouting:
    """
    RoutingCapability double: returns a fixed raw estimate (or raises)
    and remembers what it was asked.
    """
    def __init__(self, minutes: Optional[float] = 7.0, error: Optional[Exception] = None, delay: float = 0.0):
        self.minutes = minutes
        self.error = error
        self.delay = delay
        self.calls: List[tuple] = []

    async def travel_minutes(self, origin, destination):
        self.calls.append((origin, destination))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.minutes


def basket() -> List[OrderItem]:
    return [
        OrderItem(product_id="p_cig", name="Cigarettes", quantity=2, price=5.5),
        OrderItem(product_id="p_lighter", name="Lighter", quantity=1, price=1.5),
    ]


async def put_order(store, order: Order) -> Order:
    await store.set(ORDERS, order.id, encode_order(order))
    return order


async def put_rider(store, uid: str, *, token: str = "", active: bool = True, online: bool = True) -> None:
    await store.set(USERS, uid, {
        "uid": uid,
        "email": f"{uid}@example.com",
        "role": "rider",
        "active": active,
        "online": online,
        "fcmToken": token or f"token-{uid}-0000000000",
    })


def make_order(
    order_id: str,
    client_id: str = "client-1",
    *,
    status: OrderStatus = OrderStatus.PENDING,
    created_at: datetime = T0,
    accepted_by: Optional[str] = None,
    eta: Optional[float] = None,
) -> Order:
    items = tuple(basket())
    return Order(
        id=order_id,
        client_id=client_id,
        items=items,
        total=sum(i.price * i.quantity for i in items),
        status=status,
        created_at=created_at,
        expires_at=created_at + timedelta(minutes=10),
        accepted_by=accepted_by,
        estimated_delivery_time=eta,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def policy():
    return LifecyclePolicy()


@pytest.fixture
def repository(store, policy, clock):
    return OrdersRepository(store, policy, clock=clock)


@pytest.fixture
def harare_positions():
    return [
        Position(uid="client-1", city="Harare", latitude=-17.8249, longitude=31.0530),
        Position(uid="rider-1", city="harare ", latitude=-17.8300, longitude=31.0400),
    ]
