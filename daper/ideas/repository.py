"""
Idea Repository - CRUD operations for the ideas table.

Follows the database patterns in daper/infrastructure/database.py. No method
changes user_id once a row exists.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any

from daper.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from daper.ideas.models import DeleteOutcome, Idea, IdeaCreate, MindMapNode, utc_now
from daper.observability.logging import get_logger

logger = get_logger(__name__)


class IdeaRepository:
    """
    Repository for Idea records.

    All methods use connection pooling and proper transaction handling.
    """

    @staticmethod
    @retry_on_db_lock()
    def create(idea: IdeaCreate) -> Idea:
        """
        Insert a new idea (not favorited, no mind map).

        Returns:
            Created Idea with generated id and timestamps
        """
        now = utc_now()
        record = Idea(
            id=str(uuid.uuid4()),
            user_id=idea.user_id,
            title=idea.title,
            summary=idea.summary,
            outline=idea.outline,
            language=idea.language,
            favorited=False,
            created_at=now,
            updated_at=now,
        )

        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO ideas (
                    id, user_id, title, summary, outline, mind_map, favorited,
                    language, ai_suggestions, business_plan, share_id,
                    created_at, updated_at
                ) VALUES (
                    :id, :user_id, :title, :summary, :outline, :mind_map, :favorited,
                    :language, :ai_suggestions, :business_plan, :share_id,
                    :created_at, :updated_at
                )
                """,
                record.to_db_dict(),
            )

        logger.info("Created idea %s for user %s", record.id, record.user_id)
        return record

    @staticmethod
    def get_by_id(idea_id: str) -> Idea | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM ideas WHERE id = ?", (idea_id,)).fetchone()

        if not row:
            return None
        return Idea.from_db_row(dict(row))

    @staticmethod
    def get_by_share_id(share_id: str) -> Idea | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM ideas WHERE share_id = ?", (share_id,)).fetchone()

        if not row:
            return None
        return Idea.from_db_row(dict(row))

    @staticmethod
    def list_by_user(
        user_id: str,
        favorited: bool | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Idea]:
        """
        List a user's ideas, newest first.

        Args:
            user_id: Owner
            favorited: When set, only ideas with that favorite flag
            limit: Maximum rows (None for all)
            offset: Rows to skip
        """
        query = "SELECT * FROM ideas WHERE user_id = ?"
        params: list[Any] = [user_id]

        if favorited is not None:
            query += " AND favorited = ?"
            params.append(1 if favorited else 0)

        query += " ORDER BY created_at DESC"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [Idea.from_db_row(dict(row)) for row in rows]

    @staticmethod
    @retry_on_db_lock()
    def set_favorited(idea_id: str, favorited: bool) -> bool:
        """Returns False if the idea does not exist."""
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE ideas SET favorited = ?, updated_at = ? WHERE id = ?",
                (1 if favorited else 0, utc_now().isoformat(), idea_id),
            )
        return cursor.rowcount > 0

    @staticmethod
    @retry_on_db_lock()
    def update_content(
        idea_id: str,
        title: str | None = None,
        summary: str | None = None,
        outline: str | None = None,
    ) -> Idea | None:
        """
        Overwrite any of the text artifacts. Fields left as None are untouched.

        Returns:
            Updated Idea, or None if not found
        """
        updates: dict[str, Any] = {}
        if title is not None:
            updates["title"] = title
        if summary is not None:
            updates["summary"] = summary
        if outline is not None:
            updates["outline"] = outline

        if not updates:
            return IdeaRepository.get_by_id(idea_id)

        updates["updated_at"] = utc_now().isoformat()
        # Column names come from the fixed keys above
        assignments = ", ".join(f"{column} = ?" for column in updates)

        with db_transaction() as conn:
            cursor = conn.execute(
                f"UPDATE ideas SET {assignments} WHERE id = ?",
                (*updates.values(), idea_id),
            )
            if cursor.rowcount == 0:
                return None

        logger.info("Updated content of idea %s (%s)", idea_id, ", ".join(sorted(updates)))
        return IdeaRepository.get_by_id(idea_id)

    @staticmethod
    @retry_on_db_lock()
    def set_mind_map(idea_id: str, tree: MindMapNode) -> bool:
        """Replace the whole mind map. Returns False if the idea does not exist."""
        with db_transaction() as conn:
            return IdeaRepository.write_mind_map(conn, idea_id, tree)

    @staticmethod
    def fetch(conn: sqlite3.Connection, idea_id: str) -> Idea | None:
        """Read an idea on a connection the caller already holds (inside its transaction)."""
        row = conn.execute("SELECT * FROM ideas WHERE id = ?", (idea_id,)).fetchone()
        return Idea.from_db_row(dict(row)) if row else None

    @staticmethod
    def write_mind_map(conn: sqlite3.Connection, idea_id: str, tree: MindMapNode) -> bool:
        """Write the mind map on a connection the caller already holds."""
        cursor = conn.execute(
            "UPDATE ideas SET mind_map = ?, updated_at = ? WHERE id = ?",
            (tree.model_dump_json(), utc_now().isoformat(), idea_id),
        )
        return cursor.rowcount > 0

    @staticmethod
    @retry_on_db_lock()
    def set_suggestions(idea_id: str, payload: dict[str, Any]) -> bool:
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE ideas SET ai_suggestions = ?, updated_at = ? WHERE id = ?",
                (json.dumps(payload), utc_now().isoformat(), idea_id),
            )
        return cursor.rowcount > 0

    @staticmethod
    @retry_on_db_lock()
    def set_business_plan(idea_id: str, payload: dict[str, Any]) -> bool:
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE ideas SET business_plan = ?, updated_at = ? WHERE id = ?",
                (json.dumps(payload), utc_now().isoformat(), idea_id),
            )
        return cursor.rowcount > 0

    @staticmethod
    @retry_on_db_lock()
    def set_share_id(idea_id: str, share_id: str) -> str | None:
        """
        Attach a public share id unless one is already set.

        Returns:
            The share id now stored on the idea, or None if the idea does not exist
        """
        with db_transaction(immediate=True) as conn:
            row = conn.execute("SELECT share_id FROM ideas WHERE id = ?", (idea_id,)).fetchone()
            if row is None:
                return None
            if row["share_id"]:
                return row["share_id"]

            conn.execute(
                "UPDATE ideas SET share_id = ?, updated_at = ? WHERE id = ?",
                (share_id, utc_now().isoformat(), idea_id),
            )

        logger.info("Shared idea %s", idea_id)
        return share_id

    @staticmethod
    @retry_on_db_lock()
    def delete_owned(idea_id: str, user_id: str) -> DeleteOutcome:
        """
        Delete an idea if user_id owns it, and decrement the owner's idea_count.

        Both writes happen in one transaction; the counter never goes below 0.
        """
        with db_transaction(immediate=True) as conn:
            row = conn.execute("SELECT user_id FROM ideas WHERE id = ?", (idea_id,)).fetchone()
            if row is None:
                return DeleteOutcome.NOT_FOUND
            if row["user_id"] != user_id:
                return DeleteOutcome.NOT_OWNER

            conn.execute("DELETE FROM ideas WHERE id = ?", (idea_id,))
            conn.execute(
                "UPDATE users SET idea_count = MAX(idea_count - 1, 0) WHERE uid = ?",
                (user_id,),
            )

        logger.info("Deleted idea %s for user %s", idea_id, user_id)
        return DeleteOutcome.DELETED
