"""User service layer - login upserts and usage display."""

from __future__ import annotations

from datetime import datetime

from daper.contracts.results import ErrorKind, OperationResult
from daper.infrastructure import quota
from daper.observability.logging import get_logger
from daper.observability.telemetry import log_event
from daper.users.models import SerializableUser, UsageSnapshot, User
from daper.users.repository import UserRepository

logger = get_logger(__name__)


class UserService:
    """Service layer for user records."""

    @staticmethod
    def upsert_user(profile: SerializableUser) -> OperationResult[User]:
        """Called on every login. Creates the free-plan record on first login."""
        try:
            user = UserRepository.upsert(profile)
        except Exception:
            logger.exception("Failed to upsert user %s", profile.uid)
            return OperationResult.failure(
                ErrorKind.PERSISTENCE_FAILED, "Failed to save user profile."
            )

        log_event("user.login", role=user.role)
        return OperationResult.success(user)

    @staticmethod
    def get_user_usage(uid: str, now: datetime | None = None) -> OperationResult[UsageSnapshot]:
        """Remaining daily generations and idea slots (None means unlimited)."""
        try:
            usage = quota.get_usage(uid, now)
        except Exception:
            logger.exception("Failed to read usage for user %s", uid)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, "Failed to fetch usage.")

        if usage is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "User not found.")
        return OperationResult.success(usage)
