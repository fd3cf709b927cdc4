"""
Riders domain package.

Public API:
- Models: UserProfile, UserRole, decode_user
- Selection: filter_eligible_riders, cities_match
"""
from .models import UserProfile, UserRole, decode_user
from .selection import cities_match, filter_eligible_riders

__all__ = ["UserProfile",
           "UserRole",
             "decode_user",
               "cities_match",
               "filter_eligible_riders",
               ]
