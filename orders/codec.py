"""
Purpose: Translate between stored documents and Order / Position models.
What it does:
- encode_order(): Order -> document dict (store field names, camelCase)
- decode_order(): document dict -> Order, or OrderDecodeError

Documents may have been written by an older schema, so the read path is
tolerant: malformed or missing fields fall back to safe defaults and only a
document we cannot interpret at all becomes an OrderDecodeError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import math
from typing import Any, Dict, List, Mapping, Optional, Union

from .models import Order, OrderItem, OrderStatus, Position


@dataclass(frozen=True)
class OrderDecodeError:
    """Decode failure for one stored order document."""
    doc_id: str
    reason: str


DecodedOrder = Union[Order, OrderDecodeError]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# --- field coercion helpers ---

def to_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def to_int(value: Any) -> Optional[int]:
    number = to_float(value)
    if number is None or not math.isfinite(number):
        return None
    return int(number)


def _from_epoch_seconds(seconds: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Accepts datetimes, epoch milliseconds, ISO-8601 strings and the
    {"_seconds", "_nanoseconds"} maps older clients wrote.
    Naive datetimes are taken as UTC; instants outside the datetime range
    read as None.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return _from_epoch_seconds(value / 1000.0)

    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    if isinstance(value, Mapping):
        seconds = to_float(value.get("_seconds"))
        if seconds is None:
            return None
        nanos = to_float(value.get("_nanoseconds")) or 0.0
        if not math.isfinite(seconds) or not math.isfinite(nanos):
            return None
        return _from_epoch_seconds(seconds + nanos / 1e9)

    return None


def _decode_items(value: Any) -> List[OrderItem]:
    if not isinstance(value, list):
        return []

    items = []
    for element in value:
        if not isinstance(element, Mapping):
            continue
        quantity = to_int(element.get("quantity"))
        price = to_float(element.get("price"))
        items.append(
            OrderItem(
                product_id=to_str(element.get("productId")),
                name=to_str(element.get("name")),
                quantity=quantity if quantity is not None else 0,
                price=price if price is not None and math.isfinite(price) else 0.0,
            )
        )
    return items


# --- orders ---

def encode_item(item: OrderItem) -> Dict[str, Any]:
    return {
        "productId": item.product_id,
        "name": item.name,
        "quantity": item.quantity,
        "price": item.price,
    }


def encode_order(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "clientId": order.client_id,
        "items": [encode_item(item) for item in order.items],
        "total": order.total,
        "status": order.status.value,
        "createdAt": order.created_at,
        "expiresAt": order.expires_at,
        "acceptedBy": order.accepted_by,
        "estimatedDeliveryTime": order.estimated_delivery_time,
    }


def decode_order(doc_id: str, data: Any) -> DecodedOrder:
    if not isinstance(data, Mapping):
        return OrderDecodeError(doc_id=doc_id, reason="document body is not a mapping")

    raw_status = data.get("status")
    if raw_status is None:
        status = OrderStatus.PENDING
    else:
        try:
            status = OrderStatus(raw_status)
        except ValueError:
            return OrderDecodeError(doc_id=doc_id, reason=f"unknown status {raw_status!r}")

    total = to_float(data.get("total"))
    eta = to_float(data.get("estimatedDeliveryTime"))
    accepted_by = to_str(data.get("acceptedBy")) or None

    return Order(
        id=to_str(data.get("id")) or doc_id,
        client_id=to_str(data.get("clientId")),
        items=tuple(_decode_items(data.get("items"))),
        total=total if total is not None and math.isfinite(total) else 0.0,
        status=status,
        created_at=to_datetime(data.get("createdAt")),
        expires_at=to_datetime(data.get("expiresAt")),
        accepted_by=accepted_by,
        estimated_delivery_time=eta if eta is not None and math.isfinite(eta) else None,
    )


# --- positions ---

def encode_position(position: Position) -> Dict[str, Any]:
    return {
        "uid": position.uid,
        "city": position.city,
        "street": position.street,
        "latitude": position.latitude,
        "longitude": position.longitude,
        "timestamp": int(position.timestamp.timestamp() * 1000),
    }


def decode_position(data: Any) -> Optional[Position]:
    if not isinstance(data, Mapping):
        return None

    uid = to_str(data.get("uid"))
    if not uid:
        return None

    latitude = to_float(data.get("latitude"))
    longitude = to_float(data.get("longitude"))
    timestamp = to_datetime(data.get("timestamp"))

    return Position(
        uid=uid,
        city=to_str(data.get("city")),
        street=to_str(data.get("street")) or None,
        latitude=latitude if latitude is not None and math.isfinite(latitude) else None,
        longitude=longitude if longitude is not None and math.isfinite(longitude) else None,
        timestamp=timestamp or EPOCH,  # undated records lose to dated ones
    )
