from datetime import timedelta

import pytest

from dispatch.redirect import (
    AVAILABLE_ORDERS,
    NO_REDIRECT,
    RiderTracking,
    Tracking,
    Waiting,
    find_client_redirect,
    find_rider_redirect,
)
from orders.models import OrderStatus
from store.base import ORDERS

from conftest import T0, make_order, put_order


@pytest.mark.asyncio
async def test_tracking_beats_a_newer_pending_order(store):
    await put_order(store, make_order("accepted", status=OrderStatus.ACCEPTED, accepted_by="r", created_at=T0))
    await put_order(store, make_order("pending", created_at=T0 + timedelta(minutes=5)))

    assert await find_client_redirect(store, "client-1") == Tracking("accepted")


@pytest.mark.asyncio
async def test_newest_tracking_order_is_resumed(store):
    await put_order(store, make_order("old", status=OrderStatus.DELIVERED, accepted_by="r", created_at=T0))
    await put_order(store, make_order(
        "new", status=OrderStatus.ON_THE_WAY, accepted_by="r", created_at=T0 + timedelta(hours=1),
    ))

    assert await find_client_redirect(store, "client-1") == Tracking("new")


@pytest.mark.asyncio
async def test_pending_order_resumes_waiting_screen(store):
    await put_order(store, make_order("p1", created_at=T0))
    await put_order(store, make_order("p2", created_at=T0 + timedelta(seconds=1)))
    await put_order(store, make_order("gone", status=OrderStatus.CANCELLED))

    assert await find_client_redirect(store, "client-1") == Waiting("p2")


@pytest.mark.asyncio
async def test_tie_on_created_at_goes_to_greater_id(store):
    await put_order(store, make_order("a", created_at=T0))
    await put_order(store, make_order("b", created_at=T0))

    assert await find_client_redirect(store, "client-1") == Waiting("b")


@pytest.mark.asyncio
async def test_nothing_to_resume(store):
    await put_order(store, make_order("x", status=OrderStatus.EXPIRED))
    await put_order(store, make_order("other", client_id="client-2"))

    assert await find_client_redirect(store, "client-1") is NO_REDIRECT
    assert await find_client_redirect(store, "") is NO_REDIRECT


@pytest.mark.asyncio
async def test_store_failure_never_blocks_login(store):
    await put_order(store, make_order("p1"))
    store.available = False

    assert await find_client_redirect(store, "client-1") is NO_REDIRECT
    assert await find_rider_redirect(store, "rider-1") is AVAILABLE_ORDERS


@pytest.mark.asyncio
async def test_rider_resumes_the_order_they_carry(store):
    await put_order(store, make_order("done", status=OrderStatus.DELIVERED, accepted_by="rider-1"))
    await put_order(store, make_order("carrying", status=OrderStatus.ON_THE_WAY, accepted_by="rider-1"))
    await put_order(store, make_order("someone-else", status=OrderStatus.ACCEPTED, accepted_by="rider-2"))

    assert await find_rider_redirect(store, "rider-1") == RiderTracking("carrying")
    assert await find_rider_redirect(store, "rider-3") is AVAILABLE_ORDERS


@pytest.mark.asyncio
async def test_document_with_an_absurd_timestamp_does_not_break_the_lookup(store):
    await put_order(store, make_order("good", status=OrderStatus.ACCEPTED, accepted_by="r", created_at=T0))
    await store.set(ORDERS, "bad", {
        "clientId": "client-1",
        "status": "pending",
        "createdAt": {"_seconds": 10**15},
        "expiresAt": 10**20,
    })

    assert await find_client_redirect(store, "client-1") == Tracking("good")
