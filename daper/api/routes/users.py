"""User API endpoints: login upsert and usage display."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from daper.api.errors import unwrap
from daper.api.middleware.user_auth import AuthenticatedUser, get_current_user
from daper.users.models import SerializableUser, UsageSnapshot, User
from daper.users.service import UserService

router = APIRouter(prefix="/api/users", tags=["users"])


class ProfileOverride(BaseModel):
    """Optional profile fields; anything omitted comes from the verified token."""

    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None


@router.post("/me", response_model=User)
async def upsert_me(
    override: ProfileOverride | None = None,
    user: AuthenticatedUser = Depends(get_current_user),
) -> User:
    """Create or refresh the caller's user record. Call on every login."""
    override = override or ProfileOverride()
    profile = SerializableUser(
        uid=user.id,
        email=override.email or user.email or None,
        display_name=override.display_name or user.name,
        photo_url=override.photo_url or user.picture,
    )
    return unwrap(UserService.upsert_user(profile))


@router.get("/me/usage", response_model=UsageSnapshot)
async def get_my_usage(user: AuthenticatedUser = Depends(get_current_user)) -> UsageSnapshot:
    """Remaining generations today and idea slots. Null means unlimited."""
    return unwrap(UserService.get_user_usage(user.id))
