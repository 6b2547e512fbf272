"""
Quota enforcement for idea generation (free / paid plans).

Free plan rules:
- at most FREE_USER_IDEA_LIMIT saved ideas
- at most FREE_USER_DAILY_LIMIT generations per rolling window; the window
  restarts when the last counted request is more than USAGE_WINDOW_MS old

Paid plan is unlimited. check_quota() is a cheap pre-check on a record the
caller already holds; consume_quota() is the only path that increments the
request counter and re-reads the user row inside an IMMEDIATE transaction.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import NamedTuple

from daper.config import FREE_USER_DAILY_LIMIT, FREE_USER_IDEA_LIMIT, USAGE_WINDOW_MS
from daper.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from daper.observability.logging import get_logger
from daper.observability.telemetry import counter
from daper.users.models import UsageSnapshot, User, UserRole, utc_now

logger = get_logger(__name__)

USAGE_WINDOW = timedelta(milliseconds=USAGE_WINDOW_MS)

LIMIT_TOTAL = "total"
LIMIT_DAILY = "daily"


class QuotaStatus(NamedTuple):
    """Quota decision for a user at a point in time."""

    role: str
    ideas_used: int
    idea_limit: int | None
    requests_today: int
    daily_limit: int | None
    is_allowed: bool
    limit_kind: str | None
    reason: str | None


def effective_request_count(user: User, now: datetime) -> int:
    """Requests counted in the current rolling window (0 once the window has lapsed)."""
    last = user.last_api_request_date
    if last is None or now - last > USAGE_WINDOW:
        return 0
    return user.api_request_count


def check_quota(
    user: User,
    now: datetime | None = None,
    idea_limit: int = FREE_USER_IDEA_LIMIT,
    daily_limit: int = FREE_USER_DAILY_LIMIT,
) -> QuotaStatus:
    """
    Decide whether user may start one more generation.

    Read-only. The total-ideas rule is checked before the daily rule, so a
    user over both limits is told about the total.
    """
    now = now or utc_now()
    requests_today = effective_request_count(user, now)

    if user.role == UserRole.PAID.value:
        return QuotaStatus(
            role=user.role,
            ideas_used=user.idea_count,
            idea_limit=None,
            requests_today=requests_today,
            daily_limit=None,
            is_allowed=True,
            limit_kind=None,
            reason=None,
        )

    if user.idea_count >= idea_limit:
        return QuotaStatus(
            role=user.role,
            ideas_used=user.idea_count,
            idea_limit=idea_limit,
            requests_today=requests_today,
            daily_limit=daily_limit,
            is_allowed=False,
            limit_kind=LIMIT_TOTAL,
            reason=f"Idea limit reached ({user.idea_count}/{idea_limit})",
        )

    if requests_today >= daily_limit:
        return QuotaStatus(
            role=user.role,
            ideas_used=user.idea_count,
            idea_limit=idea_limit,
            requests_today=requests_today,
            daily_limit=daily_limit,
            is_allowed=False,
            limit_kind=LIMIT_DAILY,
            reason=f"Daily limit reached ({requests_today}/{daily_limit})",
        )

    return QuotaStatus(
        role=user.role,
        ideas_used=user.idea_count,
        idea_limit=idea_limit,
        requests_today=requests_today,
        daily_limit=daily_limit,
        is_allowed=True,
        limit_kind=None,
        reason=None,
    )


@retry_on_db_lock()
def consume_quota(
    uid: str,
    now: datetime | None = None,
    idea_limit: int = FREE_USER_IDEA_LIMIT,
    daily_limit: int = FREE_USER_DAILY_LIMIT,
) -> QuotaStatus | None:
    """
    Atomically re-check quota and count one request.

    The user row is re-read under the write lock; if a concurrent request has
    used up the allowance in the meantime, nothing is written and the
    rejecting status is returned.

    Returns:
        The QuotaStatus that was decided on, or None if the user does not exist.
    """
    now = now or utc_now()

    with db_transaction(immediate=True) as conn:
        row = conn.execute("SELECT * FROM users WHERE uid = ?", (uid,)).fetchone()
        if row is None:
            return None

        user = User.from_db_row(dict(row))
        status = check_quota(user, now, idea_limit=idea_limit, daily_limit=daily_limit)

        if not status.is_allowed:
            counter(f"quota.rejected.{status.limit_kind}")
            logger.info("Quota rejected for user %s: %s", uid, status.reason)
            return status

        conn.execute(
            """
            UPDATE users
            SET api_request_count = ?, last_api_request_date = ?
            WHERE uid = ?
            """,
            (status.requests_today + 1, now.isoformat(), uid),
        )

    counter("quota.consumed")
    return status._replace(requests_today=status.requests_today + 1)


def get_usage(
    uid: str,
    now: datetime | None = None,
    idea_limit: int = FREE_USER_IDEA_LIMIT,
    daily_limit: int = FREE_USER_DAILY_LIMIT,
) -> UsageSnapshot | None:
    """Remaining allowance for display. None values mean unlimited."""
    now = now or utc_now()

    with get_db_connection() as conn:
        row = conn.execute("SELECT * FROM users WHERE uid = ?", (uid,)).fetchone()

    if row is None:
        return None

    user = User.from_db_row(dict(row))
    if user.role == UserRole.PAID.value:
        return UsageSnapshot(role=UserRole.PAID, daily_left=None, ideas_left=None)

    used_today = effective_request_count(user, now)
    return UsageSnapshot(
        role=UserRole.FREE,
        daily_left=max(0, daily_limit - used_today),
        ideas_left=max(0, idea_limit - user.idea_count),
    )
