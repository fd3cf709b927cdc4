"""
Purpose: The acceptance coordinator (the rider's "Accept" button).
What it does:
Claims a pending order for exactly one rider, then enriches it with a
delivery ETA on a best-effort basis.

Step 1 (atomic claim) runs as a single store transaction: read the order,
check the guard, write status + acceptedBy. The store's transaction isolation
is the only thing serializing racing riders: a loser either fails the guard on
its first read or on the re-run after a commit conflict, and gets False back.

Step 2 (ETA enrichment) only runs for the winner and is bounded by the
policy's routing timeout. Whatever goes wrong in there is logged and
dropped: the order stays accepted.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from orders.codec import OrderDecodeError, decode_order
from orders.models import utc_now
from orders.policy import LifecyclePolicy, default_lifecycle_policy
from orders.repository import find_position
from routing.eta_service import estimate_delivery_eta
from routing.route_service import RoutingCapability
from store.base import ORDERS, DocumentStore, StoreError, Transaction

from .state_machines.order_state import can_claim, transition_order_to_accepted

logger = logging.getLogger(__name__)

MSG_NOT_AVAILABLE = "This order is no longer available."
MSG_RETRY = "Something went wrong, please retry."


class AcceptanceCoordinator:
    """
    Coordinates the claim of an order by a rider.
    """
    def __init__(
        self,
        store: DocumentStore,
        routing: Optional[RoutingCapability] = None,
        policy: Optional[LifecyclePolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.routing = routing
        self.policy = policy or default_lifecycle_policy()
        self.clock = clock

    async def accept_order(self, order_id: str, rider_id: str) -> bool:
        """
        True if this rider now holds the order. False for the expected
        outcomes (not found, already claimed, expired, not pending).
        Store failures during the claim propagate as StoreError so the
        caller can offer a retry.
        """
        if not order_id or not rider_id:
            return False

        accepted = await self._claim(order_id, rider_id)
        if not accepted:
            logger.info("Rider %s could not claim order %s", rider_id, order_id)
            return False

        logger.info("Order %s accepted by rider %s", order_id, rider_id)
        await self._attach_eta(order_id, rider_id)
        return True

    async def _claim(self, order_id: str, rider_id: str) -> bool:
        async def _run(tx: Transaction) -> bool:
            snapshot = await tx.get(ORDERS, order_id)
            if not snapshot.exists:
                return False

            order = decode_order(snapshot.id, snapshot.data)
            if isinstance(order, OrderDecodeError):
                logger.warning("Order %s unreadable, refusing claim: %s", order_id, order.reason)
                return False

            now = self.clock()
            if not can_claim(order, now):
                return False

            claimed = transition_order_to_accepted(order, rider_id, now)
            tx.update(ORDERS, order_id, {
                "status": claimed.status.value,
                "acceptedBy": claimed.accepted_by,
            })
            return True

        return await self.store.run_transaction(_run)

    async def _attach_eta(self, order_id: str, rider_id: str) -> None:
        if self.routing is None:
            return

        try:
            snapshot = await self.store.get(ORDERS, order_id)
            order = decode_order(snapshot.id, snapshot.data) if snapshot.exists else None
            if order is None or isinstance(order, OrderDecodeError):
                return

            client_position = await find_position(self.store, order.client_id)
            rider_position = await find_position(self.store, rider_id)

            now = self.clock()
            try:
                estimate = await asyncio.wait_for(
                    estimate_delivery_eta(self.routing, rider_position, client_position, now=now),
                    timeout=self.policy.routing_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "ETA for order %s timed out after %.1fs, leaving it unset",
                    order_id, self.policy.routing_timeout_seconds,
                )
                return
            if estimate is None:
                return

            await self.store.update(ORDERS, order_id, {
                "estimatedDeliveryTime": estimate.adjusted_minutes,  # None if routing failed
                "etaCalculatedAt": now,
                "etaDebug": estimate.debug_metadata(),
            })
            logger.info(
                "ETA for order %s: %s min (%s)",
                order_id, estimate.adjusted_minutes, estimate.rule_applied,
            )
        except Exception:
            logger.exception("ETA enrichment failed for order %s, keeping the acceptance", order_id)

    @staticmethod
    def describe_failure(exc: Optional[BaseException] = None) -> str:
        """
        User-facing message: a refused claim reads as "no longer available",
        a store failure as "please retry".
        """
        if isinstance(exc, StoreError):
            return MSG_RETRY
        return MSG_NOT_AVAILABLE
