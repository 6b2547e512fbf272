"""
Daper Users module - user records, plan roles, and usage projection.
"""

from daper.users.models import SerializableUser, UsageSnapshot, User, UserRole

__all__ = [
    "SerializableUser",
    "UsageSnapshot",
    "User",
    "UserRole",
]
