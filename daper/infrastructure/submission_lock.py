"""
Submission deduplication locks for idea generation.

A lock row keyed by the client-supplied request id marks "a generation attempt
for this id has started". Claiming is a read plus conditional write inside one
IMMEDIATE transaction, so two concurrent submissions with the same id cannot
both succeed.

Locks older than SUBMISSION_LOCK_TTL_SECONDS are stale: they may be reclaimed
by a new attempt and are deleted by purge_expired() at startup.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from hashlib import sha256

from daper.config import SUBMISSION_LOCK_TTL_SECONDS
from daper.infrastructure.database import db_transaction, retry_on_db_lock
from daper.observability.logging import get_logger
from daper.observability.telemetry import counter, log_event
from daper.users.models import parse_dt, utc_now

logger = get_logger(__name__)


class LockStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def _key_hash(request_id: str) -> str:
    return sha256(request_id.encode()).hexdigest()[:12]


@retry_on_db_lock()
def try_acquire(
    request_id: str,
    user_id: str,
    now: datetime | None = None,
    ttl_seconds: int = SUBMISSION_LOCK_TTL_SECONDS,
) -> bool:
    """Claim request_id for user_id.

    Returns:
        True if the lock was created (or a stale one reclaimed), False if a live
        lock already exists. False is a duplicate submission, not a retry signal.

    Raises:
        ValueError: if request_id or user_id is empty
    """
    if not request_id or not user_id:
        raise ValueError("request_id and user_id are required")

    now = now or utc_now()
    cutoff = now - timedelta(seconds=ttl_seconds)

    with db_transaction(immediate=True) as conn:
        row = conn.execute(
            "SELECT created_at FROM locks WHERE request_id = ?",
            (request_id,),
        ).fetchone()

        if row is not None:
            created_at = parse_dt(row["created_at"])
            if created_at is not None and created_at > cutoff:
                counter("submission_lock.duplicate")
                log_event("submission_lock.duplicate", key_hash=_key_hash(request_id))
                return False
            logger.info("Reclaiming stale submission lock %s", _key_hash(request_id))
            counter("submission_lock.reclaimed")

        conn.execute(
            """
            INSERT INTO locks (request_id, user_id, status, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(request_id) DO UPDATE SET
                user_id = excluded.user_id,
                status = excluded.status,
                created_at = excluded.created_at
            """,
            (request_id, user_id, LockStatus.PROCESSING.value, now.isoformat()),
        )

    return True


@retry_on_db_lock()
def mark_status(request_id: str, status: LockStatus) -> bool:
    """Record the outcome of the attempt. The lock stays claimed either way."""
    with db_transaction() as conn:
        cursor = conn.execute(
            "UPDATE locks SET status = ? WHERE request_id = ?",
            (LockStatus(status).value, request_id),
        )
    return cursor.rowcount > 0


def get_status(request_id: str) -> LockStatus | None:
    """Current status of a lock, or None when no lock exists."""
    with db_transaction() as conn:
        row = conn.execute(
            "SELECT status FROM locks WHERE request_id = ?",
            (request_id,),
        ).fetchone()
    return LockStatus(row["status"]) if row else None


@retry_on_db_lock()
def purge_expired(
    now: datetime | None = None,
    ttl_seconds: int = SUBMISSION_LOCK_TTL_SECONDS,
) -> int:
    """Delete stale locks. Returns the number of rows removed."""
    cutoff = (now or utc_now()) - timedelta(seconds=ttl_seconds)

    with db_transaction() as conn:
        cursor = conn.execute(
            "DELETE FROM locks WHERE created_at <= ?",
            (cutoff.isoformat(),),
        )

    if cursor.rowcount:
        logger.info("Purged %d stale submission locks", cursor.rowcount)
        counter("submission_lock.purged", cursor.rowcount)
    return cursor.rowcount
