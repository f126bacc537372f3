"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from contentstore.config import DATABASE_PATH

SQLITE_BUSY_TIMEOUT_SECONDS = 30.0


def init_database() -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    db_path = Path(DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("PRAGMA journal_mode = WAL")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS contents (
                content_id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                content_type TEXT NOT NULL,
                total_chunks INTEGER NOT NULL,
                total_size INTEGER,
                created_at INTEGER NOT NULL,
                encryption_iv BLOB NOT NULL,
                additional_metadata TEXT,
                is_complete INTEGER NOT NULL DEFAULT 0,
                is_pinned INTEGER NOT NULL DEFAULT 0,
                is_large_file INTEGER NOT NULL DEFAULT 0
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chunks (
                content_id TEXT NOT NULL,
                chunk_index INTEGER NOT NULL,
                size INTEGER NOT NULL,
                iv BLOB NOT NULL,
                checksum TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                PRIMARY KEY(content_id, chunk_index),
                FOREIGN KEY(content_id) REFERENCES contents(content_id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_contents_session ON contents(session_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_contents_created ON contents(created_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_contents_session_pinned ON contents(session_id, is_pinned)
        """)

        conn.commit()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(DATABASE_PATH, timeout=SQLITE_BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA synchronous = FULL")
    try:
        yield conn
    finally:
        conn.close()
