"""
Purpose: The routing capability the order core consumes.
What it does:
- Asks the routing backend for rider -> customer travel time
- Bounds every call with a timeout and treats the backend as unreliable:
  any failure becomes None ("no estimate"), never an exception
- Runs the blocking HTTP client in a worker thread so callers can await it
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional, Protocol

import requests

from .osrm_client import LatLon, OSRMClient, OSRMError

logger = logging.getLogger(__name__)


class RoutingCapability(Protocol):
    async def travel_minutes(self, origin: LatLon, destination: LatLon) -> Optional[float]:
        """Travel time in whole minutes, or None when it cannot be estimated."""
        ...


def _finite(coords: LatLon) -> bool:
    return all(isinstance(c, (int, float)) and math.isfinite(c) for c in coords)


class RouteService:
    """
    RoutingCapability backed by an OSRMClient (or anything with the same
    compute_route signature).
    """

    def __init__(self, client: OSRMClient, timeout_seconds: float = 10.0):
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def travel_minutes(self, origin: LatLon, destination: LatLon) -> Optional[float]:
        if not _finite(origin) or not _finite(destination):
            logger.error("Invalid coordinates (NaN/Infinity): origin=%s destination=%s", origin, destination)
            return None

        try:
            route = await asyncio.wait_for(
                asyncio.to_thread(self.client.compute_route, [origin, destination]),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Routing timed out after %.1fs", self.timeout_seconds)
            return None
        except (OSRMError, requests.RequestException, ValueError, KeyError) as exc:
            logger.warning("Routing failed: %s", exc)
            return None

        duration_s = route.get("duration")
        if not isinstance(duration_s, (int, float)) or not math.isfinite(duration_s) or duration_s <= 0:
            logger.error("Invalid duration (seconds)=%s", duration_s)
            return None

        minutes = float(math.ceil(duration_s / 60.0))
        logger.debug("Parsed duration: %.0f sec -> %d min", duration_s, minutes)
        return minutes
