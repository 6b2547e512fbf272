"""
User domain models.

A user record carries the plan role and the usage counters consulted by quota
enforcement. Profile fields are refreshed on every login.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def parse_dt(value: str | None) -> datetime | None:
    """Parse an ISO timestamp from the database (naive values are taken as UTC)."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class UserRole(str, Enum):
    """Plan role governing quota."""

    FREE = "free"
    PAID = "paid"


class SerializableUser(BaseModel):
    """Profile payload sent on every login."""

    model_config = ConfigDict(populate_by_name=True)

    uid: str = Field(..., min_length=1)
    email: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    photo_url: str | None = Field(default=None, alias="photoURL")

    @field_validator("uid")
    @classmethod
    def uid_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("uid cannot be empty")
        return v.strip()


class User(BaseModel):
    """Stored user record."""

    model_config = ConfigDict(use_enum_values=True)

    uid: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None
    role: UserRole = UserRole.FREE
    idea_count: int = Field(default=0, ge=0)
    api_request_count: int = Field(default=0, ge=0)
    last_api_request_date: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    last_login: datetime = Field(default_factory=utc_now)

    @property
    def is_paid(self) -> bool:
        return self.role == UserRole.PAID.value

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> User:
        """Create User from database row."""
        return cls(
            uid=row["uid"],
            email=row.get("email"),
            display_name=row.get("display_name"),
            photo_url=row.get("photo_url"),
            role=UserRole(row["role"]),
            idea_count=row["idea_count"],
            api_request_count=row["api_request_count"],
            last_api_request_date=parse_dt(row.get("last_api_request_date")),
            created_at=parse_dt(row["created_at"]) or utc_now(),
            last_login=parse_dt(row["last_login"]) or utc_now(),
        )


class UsageSnapshot(BaseModel):
    """Read-only usage projection. None means unlimited (paid plan)."""

    role: UserRole
    daily_left: int | None
    ideas_left: int | None

    model_config = ConfigDict(use_enum_values=True)
