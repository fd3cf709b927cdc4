"""
Purpose: Consumer of order write events that tells nearby riders about new work.
What it does:
Fires when an order document *becomes* pending (created, or moved back to
pending), resolves the customer's city, finds riders that are approved,
online and in the same city, and sends each of them a data-only push.

One bad token never blocks the others: failures are logged per token.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from orders.models import OrderStatus
from orders.repository import find_position
from riders.models import UserRole, decode_user
from riders.selection import cities_match, filter_eligible_riders
from store.base import USERS, DocumentStore, where

logger = logging.getLogger(__name__)

PUSH_KIND_ORDER_PENDING = "order_pending"


@dataclass(frozen=True)
class PushResult:
    success: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class PushSender(Protocol):
    async def send_each(self, tokens: Sequence[str], data: Dict[str, str]) -> List[PushResult]:
        """One result per token, in the same order."""
        ...


@dataclass(frozen=True)
class NotificationSummary:
    order_id: str
    client_city: str = ""
    notified: int = 0
    failures: int = 0


def became_pending(before: Optional[Mapping[str, Any]], after: Optional[Mapping[str, Any]]) -> bool:
    if not after or after.get("status") != OrderStatus.PENDING.value:
        return False
    return not before or before.get("status") != OrderStatus.PENDING.value


class PendingOrderNotifier:
    def __init__(self, store: DocumentStore, sender: PushSender):
        self.store = store
        self.sender = sender

    async def _rider_city(self, uid: str) -> str:
        position = await find_position(self.store, uid)
        return position.city.strip() if position else ""

    async def on_order_written(
        self,
        order_id: str,
        before: Optional[Mapping[str, Any]],
        after: Optional[Mapping[str, Any]],
    ) -> Optional[NotificationSummary]:
        """
        Returns None when the write is not a transition into pending,
        otherwise a summary of who was notified.
        """
        if not became_pending(before, after):
            return None

        client_id = str(after.get("clientId") or "").strip()
        if not client_id:
            logger.warning("Order %s pending but clientId missing", order_id)
            return NotificationSummary(order_id=order_id)

        client_position = await find_position(self.store, client_id)
        client_city = client_position.city.strip() if client_position else ""
        if not client_city:
            logger.info("Client city not found in positions (order=%s, client=%s)", order_id, client_id)
            return NotificationSummary(order_id=order_id)

        logger.info("Order %s became pending (client=%s, city=%s)", order_id, client_id, client_city)

        snapshots = await self.store.query(
            USERS,
            [
                where("role", "==", UserRole.RIDER.value),
                where("active", "==", True),
                where("online", "==", True),
            ],
        )
        riders = filter_eligible_riders(decode_user(s.id, s.data) for s in snapshots)
        logger.info("Candidate riders (online & active): %d", len(riders))

        cities = await asyncio.gather(*(self._rider_city(rider.uid) for rider in riders))

        # token -> uid, dedup riders sharing a device token
        token_to_uid: Dict[str, str] = {}
        for rider, city in zip(riders, cities):
            if cities_match(city, client_city):
                token_to_uid[rider.fcm_token] = rider.uid

        tokens = list(token_to_uid.keys())
        logger.info("Riders in the client's city: %d", len(tokens))
        if not tokens:
            return NotificationSummary(order_id=order_id, client_city=client_city)

        payload = {
            "kind": PUSH_KIND_ORDER_PENDING,
            "orderId": order_id,
            "clientCity": client_city,
            "title": "New order in your city",
            "body": "Tap to see the details",
        }
        results = await self.sender.send_each(tokens, payload)

        failures = 0
        for index, result in enumerate(results):
            if result.success:
                continue
            failures += 1
            logger.info(
                "Push failure index=%d code=%s message=%s token=...%s",
                index, result.error_code, result.error_message, tokens[index][-8:],
            )

        summary = NotificationSummary(
            order_id=order_id,
            client_city=client_city,
            notified=len(results) - failures,
            failures=failures,
        )
        logger.info("Push sent for order %s: notified=%d failures=%d", order_id, summary.notified, summary.failures)
        return summary
