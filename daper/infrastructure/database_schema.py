"""
Database schema initialization for Daper.

Three collections map to three tables: users (keyed by uid), ideas (keyed by
generated id) and locks (keyed by the client-supplied request id). Nested
documents (mind map, suggestions, business plan) are stored as JSON text.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from daper.observability.logging import get_logger

logger = get_logger(__name__)


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Safe to run multiple times - uses CREATE TABLE IF NOT EXISTS.

    Args:
        db_path: Path to the database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                uid TEXT PRIMARY KEY,
                email TEXT,
                display_name TEXT,
                photo_url TEXT,
                role TEXT NOT NULL DEFAULT 'free' CHECK (role IN ('free', 'paid')),
                idea_count INTEGER NOT NULL DEFAULT 0 CHECK (idea_count >= 0),
                api_request_count INTEGER NOT NULL DEFAULT 0 CHECK (api_request_count >= 0),
                last_api_request_date TEXT,
                created_at TEXT NOT NULL,
                last_login TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS ideas (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                summary TEXT NOT NULL,
                outline TEXT NOT NULL,
                mind_map TEXT,
                favorited INTEGER NOT NULL DEFAULT 0,
                language TEXT NOT NULL DEFAULT 'English',
                ai_suggestions TEXT,
                business_plan TEXT,
                share_id TEXT UNIQUE,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_ideas_user_created
                ON ideas(user_id, created_at DESC);
            CREATE INDEX IF NOT EXISTS idx_ideas_user_favorited
                ON ideas(user_id, favorited);

            CREATE TABLE IF NOT EXISTS locks (
                request_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'processing',
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_locks_created ON locks(created_at);
        """)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database schema initialized at %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected schema

    Raises:
        ValueError: If tables or columns are missing
    """
    required_tables = {
        "users": ["uid", "role", "idea_count", "api_request_count", "last_api_request_date"],
        "ideas": ["id", "user_id", "title", "summary", "outline", "mind_map", "favorited"],
        "locks": ["request_id", "user_id", "status", "created_at"],
    }

    cursor = conn.cursor()
    cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
    existing_tables = {row[0] for row in cursor.fetchall()}

    missing_tables = set(required_tables.keys()) - existing_tables
    if missing_tables:
        raise ValueError(f"Database missing tables: {missing_tables}")

    for table, required_cols in required_tables.items():
        # Identifiers cannot be parameterized; names come from the dict above
        cursor.execute(f"PRAGMA table_info({table})")
        existing_cols = {row[1] for row in cursor.fetchall()}

        missing_cols = set(required_cols) - existing_cols
        if missing_cols:
            raise ValueError(f"Table '{table}' missing columns: {missing_cols}")

    return True
