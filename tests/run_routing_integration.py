"""
Manual check against a live OSRM server (BASE_URL in .env).
Not collected by pytest: run it with `PYTHONPATH=. python tests/run_routing_integration.py`.
"""

import asyncio
from dataclasses import dataclass

from orders.models import Position
from routing.eta_service import estimate_delivery_eta
from routing.osrm_client import OSRMClient
from routing.route_service import RouteService


@dataclass
class Rider:
    id: str
    lat: float
    lon: float


async def run():
    routing = RouteService(OSRMClient(profile="driving", timeout=10))

    client = Position(uid="client", city="Harare", latitude=-17.8292, longitude=31.0522)

    riders = [
        Rider("r1", -17.8250, 31.0490),
        Rider("r2", -17.7990, 31.0390),
        Rider("r3", -17.8600, 31.0200),
    ]

    print(f"\nETAs to client at {client.coordinates}:\n")
    for r in riders:
        rider = Position(uid=r.id, city="Harare", latitude=r.lat, longitude=r.lon)
        estimate = await estimate_delivery_eta(routing, rider, client)
        print(
            f"{r.id}: raw {estimate.raw_minutes} min | "
            f"rule {estimate.rule_applied} | "
            f"shown {estimate.adjusted_minutes} min"
        )


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
