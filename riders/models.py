"""
Purpose: Core data models for the users collection (riders in particular).
What it does:
Defines the structure of a user profile and their role, decoded defensively
from the stored document.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class UserRole(str, Enum):
    """
    Standardizes the role stored on a user document.
    """
    CUSTOMER = "customer"
    RIDER = "rider"
    ADMIN = "admin"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class UserProfile:
    """
    A stateless representation of a user document at a specific point in time.
    Riders need an admin to flip `active` before they can receive orders.
    """
    uid: str
    email: str = ""
    role: UserRole = UserRole.UNKNOWN
    active: bool = False
    online: bool = False
    fcm_token: str = ""
    identity_document: str = ""

    @property
    def is_rider(self) -> bool:
        return self.role == UserRole.RIDER


def decode_user(uid: str, data: Any) -> UserProfile:
    if not isinstance(data, Mapping):
        return UserProfile(uid=uid)

    raw_role = data.get("role")
    try:
        role = UserRole(raw_role.strip().lower()) if isinstance(raw_role, str) else UserRole.UNKNOWN
    except ValueError:
        role = UserRole.UNKNOWN

    def _text(key: str) -> str:
        value = data.get(key)
        return value.strip() if isinstance(value, str) else ""

    return UserProfile(
        uid=_text("uid") or uid,
        email=_text("email"),
        role=role,
        active=data.get("active") is True,
        online=data.get("online") is True,
        fcm_token=_text("fcmToken"),
        identity_document=_text("identityDocument"),
    )
