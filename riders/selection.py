"""
Purpose: Business rules for which riders may hear about an order.
What it does:
Filters the user pool down to riders that are approved, online and
reachable by push, and matches them to the customer's city.
"""

from typing import Iterable, List, Optional

from .models import UserProfile


def cities_match(left: Optional[str], right: Optional[str]) -> bool:
    """
    Plain city-string matching: trimmed and case-insensitive.
    An empty city never matches anything.
    """
    if not left or not right:
        return False
    left, right = left.strip().casefold(), right.strip().casefold()
    return bool(left) and left == right


def filter_eligible_riders(users: Iterable[UserProfile], require_token: bool = True) -> List[UserProfile]:
    """
    Returns only riders who are active (approved), online and, unless
    told otherwise, have a push token to deliver to.
    """
    eligible = []

    for user in users:
        if not user.is_rider:
            continue

        if not user.active or not user.online:
            continue

        if require_token and not user.fcm_token:
            continue

        eligible.append(user)

    return eligible
