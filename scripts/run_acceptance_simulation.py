"""
Purpose: End-to-end acceptance race simulation.
What it does:
Loads the mock customers/riders/orders (scripts/generate_mock_data.py),
seeds an in-memory store, creates every order, notifies same-city riders,
then lets several of those riders hit "Accept" at the same time.
Every order must end up with at most one winner.
"""

import argparse
import asyncio
import json
import logging
import math
import os
import random
from typing import Dict, List, Optional, Sequence

import pandas as pd

from dispatch.dispatcher import AcceptanceCoordinator
from dispatch.notifier import PendingOrderNotifier, PushResult
from orders.codec import encode_order
from orders.models import OrderItem, Position
from orders.repository import OrdersRepository
from riders.selection import cities_match
from routing.osrm_client import OSRMClient
from routing.route_service import RouteService
from store.base import ORDERS, USERS
from store.memory import InMemoryDocumentStore

logger = logging.getLogger("simulation")


class StraightLineRouting:
    """
    Offline stand-in for the routing backend: haversine distance at ~30 km/h,
    with an occasional failure so the best-effort path gets exercised.
    """
    def __init__(self, failure_rate: float = 0.1):
        self.failure_rate = failure_rate

    async def travel_minutes(self, origin, destination) -> Optional[float]:
        await asyncio.sleep(0)
        if random.random() < self.failure_rate:
            return None
        lat1, lon1 = map(math.radians, origin)
        lat2, lon2 = map(math.radians, destination)
        a = math.sin((lat2 - lat1) / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
        km = 2 * 6371.0 * math.asin(math.sqrt(a))
        return float(math.ceil(km / 30.0 * 60.0))


class CollectingPushSender:
    def __init__(self):
        self.sent: Dict[str, List[str]] = {}

    async def send_each(self, tokens: Sequence[str], data: Dict[str, str]) -> List[PushResult]:
        self.sent[data["orderId"]] = list(tokens)
        return [PushResult(success=True) for _ in tokens]


async def seed_store(repository: OrdersRepository, customers: pd.DataFrame, riders: pd.DataFrame) -> None:
    for row in customers.itertuples(index=False):
        await repository.upsert_position(
            Position(uid=row.uid, city=row.city, latitude=float(row.latitude), longitude=float(row.longitude))
        )

    for row in riders.itertuples(index=False):
        await repository.upsert_position(
            Position(uid=row.uid, city=row.city, latitude=float(row.latitude), longitude=float(row.longitude))
        )
        await repository.store.set(USERS, row.uid, {
            "uid": row.uid,
            "email": f"{row.uid}@example.com",
            "role": "rider",
            "active": bool(row.active),
            "online": bool(row.online),
            "fcmToken": row.fcm_token,
        })


async def run_simulation(data_dir: str, racers: int, use_osrm: bool) -> pd.DataFrame:
    customers = pd.read_csv(os.path.join(data_dir, "customers.csv"))
    riders = pd.read_csv(os.path.join(data_dir, "riders.csv"))
    orders = pd.read_csv(os.path.join(data_dir, "orders.csv"))
    print(f"Loaded {len(customers)} customers, {len(riders)} riders, {len(orders)} orders.\n")

    store = InMemoryDocumentStore()
    repository = OrdersRepository(store)
    routing = (
        RouteService(OSRMClient(), timeout_seconds=repository.policy.routing_timeout_seconds)
        if use_osrm else StraightLineRouting()
    )
    coordinator = AcceptanceCoordinator(store, routing, repository.policy)
    sender = CollectingPushSender()
    notifier = PendingOrderNotifier(store, sender)

    await seed_store(repository, customers, riders)
    city_by_customer = dict(zip(customers["uid"], customers["city"]))

    results = []
    for row in orders.itertuples(index=False):
        items = [
            OrderItem(product_id=i["productId"], name=i["name"], quantity=int(i["quantity"]), price=float(i["price"]))
            for i in json.loads(row.items)
        ]
        order = await repository.create_order(row.client_id, items)
        await notifier.on_order_written(order.id, None, encode_order(order))

        client_city = city_by_customer.get(row.client_id, "")
        notified = sender.sent.get(order.id, [])
        same_city = [
            r.uid for r in riders.itertuples(index=False)
            if r.fcm_token in notified and cities_match(r.city, client_city)
        ]
        contenders = random.sample(same_city, min(racers, len(same_city)))

        outcomes = await asyncio.gather(*(coordinator.accept_order(order.id, uid) for uid in contenders))
        winners = [uid for uid, ok in zip(contenders, outcomes) if ok]
        if len(winners) > 1:
            raise AssertionError(f"Order {order.id} was claimed by {winners}")

        stored = await repository.get_order(order.id)
        results.append({
            "order_ref": row.order_ref,
            "order_id": order.id,
            "client_city": client_city,
            "total": round(order.total, 2),
            "riders_notified": len(notified),
            "contenders": len(contenders),
            "accepted_by": winners[0] if winners else "UNCLAIMED",
            "status": stored.status.value if stored else "missing",
            "eta_minutes": stored.estimated_delivery_time if stored else None,
        })

    snapshot_count = len(await store.query(ORDERS))
    print(f"Orders in store: {snapshot_count}")
    return pd.DataFrame(results)


def main():
    parser = argparse.ArgumentParser(description="Race riders on pending orders against an in-memory store.")
    parser.add_argument("--data-dir", default=".", help="directory holding customers.csv, riders.csv, orders.csv")
    parser.add_argument("--racers", type=int, default=3, help="riders racing on each order")
    parser.add_argument("--osrm", action="store_true", help="use the OSRM server from BASE_URL for ETAs")
    parser.add_argument("--output", default="acceptance_results.csv")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("=== STARTING ACCEPTANCE RACE SIMULATION ===")
    df = asyncio.run(run_simulation(args.data_dir, args.racers, args.osrm))
    df.to_csv(args.output, index=False)

    claimed = df[df["accepted_by"] != "UNCLAIMED"]
    print("\n=== SIMULATION COMPLETE ===")
    print(f"Orders claimed: {len(claimed)} / {len(df)}")
    print(f"Orders with an ETA: {claimed['eta_minutes'].notna().sum()} / {len(claimed)}")
    if len(claimed):
        print(f"Mean ETA: {claimed['eta_minutes'].mean():.1f} min")
    print(f"Results written to '{args.output}'.")


if __name__ == "__main__":
    main()
