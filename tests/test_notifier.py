from typing import Dict, List, Sequence

import pytest

from dispatch.notifier import PUSH_KIND_ORDER_PENDING, PendingOrderNotifier, PushResult, became_pending
from orders.codec import encode_order
from orders.models import Position
from orders.repository import OrdersRepository
from store.base import USERS

from conftest import make_order, put_rider


class RecordingSender:
    def __init__(self, failing: Sequence[str] = ()):
        self.failing = set(failing)
        self.calls: List[tuple] = []

    async def send_each(self, tokens: Sequence[str], data: Dict[str, str]) -> List[PushResult]:
        self.calls.append((list(tokens), dict(data)))
        return [
            PushResult(success=False, error_code="messaging/invalid-registration-token", error_message="bad")
            if token in self.failing else PushResult(success=True)
            for token in tokens
        ]


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def notifier(store, sender):
    return PendingOrderNotifier(store, sender)


async def _place(store, uid, city):
    await OrdersRepository(store).upsert_position(Position(uid=uid, city=city))


def test_became_pending():
    pending = {"status": "pending"}
    accepted = {"status": "accepted"}

    assert became_pending(None, pending)
    assert became_pending(accepted, pending)
    assert not became_pending(pending, pending)
    assert not became_pending(pending, accepted)
    assert not became_pending(pending, None)


@pytest.mark.asyncio
async def test_riders_in_the_same_city_are_notified(store, notifier, sender):
    await _place(store, "client-1", "Harare")
    await put_rider(store, "r-local", token="tok-local-000000001")
    await _place(store, "r-local", " harare")
    await put_rider(store, "r-away", token="tok-away-000000002")
    await _place(store, "r-away", "Bulawayo")
    await put_rider(store, "r-offline", token="tok-off-000000003", online=False)
    await _place(store, "r-offline", "Harare")
    await put_rider(store, "r-unapproved", token="tok-new-000000004", active=False)
    await _place(store, "r-unapproved", "Harare")

    order = make_order("o1")
    summary = await notifier.on_order_written("o1", None, encode_order(order))

    assert summary.notified == 1
    assert summary.failures == 0
    assert summary.client_city == "Harare"

    tokens, payload = sender.calls[0]
    assert tokens == ["tok-local-000000001"]
    assert payload["kind"] == PUSH_KIND_ORDER_PENDING
    assert payload["orderId"] == "o1"
    assert payload["clientCity"] == "Harare"


@pytest.mark.asyncio
async def test_riders_without_a_token_are_skipped(store, notifier, sender):
    await _place(store, "client-1", "Harare")
    await store.set(USERS, "r-no-token", {"role": "rider", "active": True, "online": True})
    await _place(store, "r-no-token", "Harare")

    summary = await notifier.on_order_written("o1", None, encode_order(make_order("o1")))

    assert summary.notified == 0
    assert sender.calls == []


@pytest.mark.asyncio
async def test_shared_token_is_sent_once(store, notifier, sender):
    await _place(store, "client-1", "Harare")
    for uid in ("r1", "r2"):
        await put_rider(store, uid, token="shared-device-token")
        await _place(store, uid, "Harare")

    await notifier.on_order_written("o1", None, encode_order(make_order("o1")))

    assert sender.calls[0][0] == ["shared-device-token"]


@pytest.mark.asyncio
async def test_one_bad_token_does_not_block_the_rest(store):
    notifier = PendingOrderNotifier(store, RecordingSender(failing=["tok-bad-0000000001"]))
    await _place(store, "client-1", "Harare")
    for uid, token in (("r1", "tok-bad-0000000001"), ("r2", "tok-good-000000002")):
        await put_rider(store, uid, token=token)
        await _place(store, uid, "Harare")

    summary = await notifier.on_order_written("o1", None, encode_order(make_order("o1")))

    assert summary.notified == 1
    assert summary.failures == 1


@pytest.mark.asyncio
async def test_no_push_when_not_a_transition_into_pending(store, notifier, sender):
    document = encode_order(make_order("o1"))

    assert await notifier.on_order_written("o1", document, document) is None
    assert sender.calls == []


@pytest.mark.asyncio
async def test_client_without_a_city_notifies_nobody(store, notifier, sender):
    await put_rider(store, "r1")
    await _place(store, "r1", "Harare")

    summary = await notifier.on_order_written("o1", None, encode_order(make_order("o1")))

    assert summary.notified == 0
    assert summary.client_city == ""
    assert sender.calls == []
