#Purpose: ETA estimation policy.
#Converts routing outputs into the delivery ETA shown to the customer:
#sanitize the raw travel minutes (no estimate is ever zero or negative)
#add the handling overhead buckets on acceptance
#shrink the estimate when the rider leaves for the customer
#Keeps ETA logic separate from route computation (route_service.py).

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import math
from typing import Any, Dict, Optional, Tuple

from orders.models import LatLon, Position, utc_now

from .route_service import RoutingCapability

logger = logging.getLogger(__name__)

RULE_UNDER_5 = "<5 => +11"
RULE_5_TO_10 = "5..10 => +10"
RULE_OVER_10 = ">10 => +9"


def sanitize_minutes(raw: Any) -> Optional[float]:
    """None, NaN, infinities, non-numbers and anything <= 0 mean 'no estimate'."""
    if raw is None or isinstance(raw, bool):
        return None
    if not isinstance(raw, (int, float)):
        return None
    minutes = float(raw)
    if not math.isfinite(minutes) or minutes <= 0:
        return None
    return minutes


def correct_minutes(minutes: float) -> Tuple[float, str]:
    """
    Raw driving time misses pickup/handling overhead, which is modelled
    as a fixed add-on per magnitude bucket.
    """
    if minutes < 5:
        return minutes + 11, RULE_UNDER_5
    if minutes <= 10:
        return minutes + 10, RULE_5_TO_10
    return minutes + 9, RULE_OVER_10


def adjust_eta_on_dispatch(minutes: Optional[float]) -> Optional[float]:
    """
    New ETA when the rider sets off (accepted -> on_the_way).
    Returns None when there is no usable prior ETA, meaning "leave it alone".
    """
    if minutes is None or not math.isfinite(minutes) or minutes <= 0:
        return None

    if minutes < 10:
        adjusted = minutes - 5
    elif minutes <= 15:
        adjusted = minutes - 7
    else:
        adjusted = minutes - 8

    return adjusted if adjusted > 0 else 1


@dataclass(frozen=True)
class EtaEstimate:
    """
    Result of one estimation run, kept together with what produced it
    so the stored value can be audited later.
    """
    raw_minutes: Optional[float]
    sanitized_minutes: Optional[float]
    adjusted_minutes: Optional[float]
    rule_applied: Optional[str]
    origin: Optional[LatLon] = None       # rider
    destination: Optional[LatLon] = None  # customer
    calculated_at: Optional[datetime] = None

    def debug_metadata(self) -> Dict[str, Any]:
        def _point(coords: Optional[LatLon]) -> Optional[Dict[str, float]]:
            if coords is None:
                return None
            return {"lat": coords[0], "lng": coords[1]}

        raw = self.raw_minutes
        if isinstance(raw, float) and not math.isfinite(raw):
            raw = None  # keep the document JSON-safe

        return {
            "calculatedAt": self.calculated_at,
            "from": _point(self.origin),
            "to": _point(self.destination),
            "rawMinutes": raw,
            "sanitizedMinutes": self.sanitized_minutes,
            "ruleApplied": self.rule_applied,
            "adjustedMinutes": self.adjusted_minutes,
        }


def estimate_from_raw(
    raw_minutes: Any,
    *,
    origin: Optional[LatLon] = None,
    destination: Optional[LatLon] = None,
    now: Optional[datetime] = None,
) -> EtaEstimate:
    sanitized = sanitize_minutes(raw_minutes)
    adjusted, rule = (None, None) if sanitized is None else correct_minutes(sanitized)
    return EtaEstimate(
        raw_minutes=raw_minutes if isinstance(raw_minutes, (int, float)) and not isinstance(raw_minutes, bool) else None,
        sanitized_minutes=sanitized,
        adjusted_minutes=adjusted,
        rule_applied=rule,
        origin=origin,
        destination=destination,
        calculated_at=now or utc_now(),
    )


async def estimate_delivery_eta(
    routing: RoutingCapability,
    rider_position: Optional[Position],
    client_position: Optional[Position],
    *,
    now: Optional[datetime] = None,
) -> Optional[EtaEstimate]:
    """
    Rider -> customer estimate. Returns None when either endpoint has no usable
    coordinates (nothing to route). A routing failure still yields an
    EtaEstimate, just with adjusted_minutes = None.
    """
    origin = rider_position.coordinates if rider_position else None
    destination = client_position.coordinates if client_position else None
    if origin is None or destination is None:
        logger.info("ETA skipped: rider or customer position unavailable")
        return None

    raw = await routing.travel_minutes(origin, destination)
    estimate = estimate_from_raw(raw, origin=origin, destination=destination, now=now)
    logger.debug(
        "ETA raw=%s sanitized=%s rule=%s adjusted=%s",
        estimate.raw_minutes, estimate.sanitized_minutes,
        estimate.rule_applied, estimate.adjusted_minutes,
    )
    return estimate
