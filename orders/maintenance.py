"""
Purpose: Administrative sweeps over the orders collection.
What it does:
- purge_orders_by_statuses(): bulk-delete finished orders in bounded batches
- expire_overdue_orders(): write "expired" onto pending orders past their
  deadline (only for deployments running the 'sweep' expiry mode)

Both are idempotent: running them twice in a row does nothing the second time.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Iterable, Optional

from dispatch.state_machines.order_state import OrderStateException, is_expired
from store.base import ORDERS, DocumentStore, where

from .models import OrderStatus, utc_now
from .policy import EXPIRY_SWEEP, LifecyclePolicy, default_lifecycle_policy
from .repository import OrderNotFoundError, OrdersRepository, decode_snapshots

logger = logging.getLogger(__name__)

PURGEABLE_STATUSES = (OrderStatus.CANCELLED, OrderStatus.EXPIRED)


async def purge_orders_by_statuses(
    store: DocumentStore,
    statuses: Iterable[OrderStatus] = PURGEABLE_STATUSES,
    *,
    batch_size: Optional[int] = None,
) -> int:
    """
    Deletes every order whose status is in `statuses`, committing at most
    `batch_size` deletes per batch. Returns how many documents were deleted.
    """
    batch_size = batch_size or default_lifecycle_policy().sweep_batch_size
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")

    total_deleted = 0
    for status in statuses:
        snapshots = await store.query(ORDERS, [where("status", "==", OrderStatus(status).value)])
        if not snapshots:
            continue

        batch = store.batch()
        for snapshot in snapshots:
            batch.delete(ORDERS, snapshot.id)
            if len(batch) == batch_size:
                await batch.commit()
                total_deleted += batch_size
                batch = store.batch()

        if len(batch):
            await batch.commit()
            total_deleted += len(batch)

    logger.info("Purged %d orders", total_deleted)
    return total_deleted


async def expire_overdue_orders(
    store: DocumentStore,
    *,
    policy: Optional[LifecyclePolicy] = None,
    clock=utc_now,
    now: Optional[datetime] = None,
) -> int:
    """
    Server-side expiry. Each order goes through the guarded transition, so an
    order claimed in the meantime is simply skipped.
    """
    policy = policy or default_lifecycle_policy()
    if policy.expiry_mode != EXPIRY_SWEEP:
        logger.info("Expiry mode is %s, skipping expiry sweep", policy.expiry_mode)
        return 0

    now = now or clock()
    repository = OrdersRepository(store, policy, clock=lambda: now)

    snapshots = await store.query(ORDERS, [where("status", "==", OrderStatus.PENDING.value)])
    overdue = [o for o in decode_snapshots(snapshots) if is_expired(o, now)]

    expired = 0
    for order in overdue:
        try:
            await repository.expire_order(order.id)
            expired += 1
        except (OrderStateException, OrderNotFoundError) as exc:
            logger.info("Order %s not expired: %s", order.id, exc)

    logger.info("Expired %d overdue orders", expired)
    return expired
