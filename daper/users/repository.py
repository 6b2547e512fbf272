"""
User Repository - CRUD operations for the users table.

Counter columns (idea_count, api_request_count, last_api_request_date) are
written here and by daper.infrastructure.quota; profile upserts never touch them.
"""

from __future__ import annotations

from daper.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from daper.observability.logging import get_logger
from daper.users.models import SerializableUser, User, UserRole, utc_now

logger = get_logger(__name__)


class UserRepository:
    """Repository for User records."""

    @staticmethod
    @retry_on_db_lock()
    def upsert(profile: SerializableUser) -> User:
        """
        Create the user on first login or refresh profile fields.

        New rows start on the free plan with zeroed counters. Existing rows keep
        their role and counters; only email, display name, photo and last_login
        are updated.
        """
        now = utc_now().isoformat()

        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO users (
                    uid, email, display_name, photo_url, role,
                    idea_count, api_request_count, last_api_request_date,
                    created_at, last_login
                ) VALUES (?, ?, ?, ?, ?, 0, 0, NULL, ?, ?)
                ON CONFLICT(uid) DO UPDATE SET
                    email = excluded.email,
                    display_name = excluded.display_name,
                    photo_url = excluded.photo_url,
                    last_login = excluded.last_login
                """,
                (
                    profile.uid,
                    profile.email,
                    profile.display_name,
                    profile.photo_url,
                    UserRole.FREE.value,
                    now,
                    now,
                ),
            )
            row = conn.execute("SELECT * FROM users WHERE uid = ?", (profile.uid,)).fetchone()

        logger.info("Upserted user %s", profile.uid)
        return User.from_db_row(dict(row))

    @staticmethod
    def get_by_uid(uid: str) -> User | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE uid = ?", (uid,)).fetchone()

        if row is None:
            return None
        return User.from_db_row(dict(row))

    @staticmethod
    @retry_on_db_lock()
    def increment_idea_count(uid: str) -> bool:
        """Add one saved idea to the user's counter. Returns False if the user is missing."""
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET idea_count = idea_count + 1 WHERE uid = ?",
                (uid,),
            )

        return cursor.rowcount > 0

    @staticmethod
    @retry_on_db_lock()
    def set_role(uid: str, role: UserRole) -> User | None:
        """Switch plan role (billing hook)."""
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET role = ? WHERE uid = ?",
                (UserRole(role).value, uid),
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM users WHERE uid = ?", (uid,)).fetchone()

        logger.info("User %s role set to %s", uid, UserRole(role).value)
        return User.from_db_row(dict(row))
