"""Content repository for database operations."""

import sqlite3
from typing import List, Optional, Set

from common.logging_config import get_logger
from common.types import ContentRecord
from contentstore.database import get_db_connection

logger = get_logger(__name__)

_CONTENT_COLUMNS = """
    content_id, session_id, content_type, total_chunks, total_size, created_at,
    encryption_iv, additional_metadata, is_complete, is_pinned, is_large_file
"""


def _row_to_record(row: sqlite3.Row) -> ContentRecord:
    return ContentRecord(
        content_id=row["content_id"],
        session_id=row["session_id"],
        content_type=row["content_type"],
        total_chunks=row["total_chunks"],
        total_size=row["total_size"],
        created_at=row["created_at"],
        encryption_iv=bytes(row["encryption_iv"] or b""),
        additional_metadata=row["additional_metadata"],
        is_complete=bool(row["is_complete"]),
        is_pinned=bool(row["is_pinned"]),
        is_large_file=bool(row["is_large_file"]),
    )


class ContentRepository:
    @staticmethod
    def upsert(record: ContentRecord) -> ContentRecord:
        """
        Insert a content record, or merge it into the existing one.

        On conflict a field is only replaced by a non-empty value (a total_size
        of None means not provided, zero is a real size); session_id,
        created_at, is_complete and is_pinned are never touched and
        is_large_file can only be raised.
        """
        logger.debug(f"Upserting content [content_id={record.content_id}]")
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO contents (
                    content_id, session_id, content_type, total_chunks, total_size, created_at,
                    encryption_iv, additional_metadata, is_complete, is_pinned, is_large_file
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                ON CONFLICT(content_id) DO UPDATE SET
                    content_type = CASE WHEN excluded.content_type != ''
                        THEN excluded.content_type ELSE contents.content_type END,
                    total_chunks = CASE WHEN excluded.total_chunks > 0
                        THEN excluded.total_chunks ELSE contents.total_chunks END,
                    total_size = COALESCE(excluded.total_size, contents.total_size),
                    encryption_iv = CASE WHEN length(excluded.encryption_iv) > 0
                        THEN excluded.encryption_iv ELSE contents.encryption_iv END,
                    additional_metadata = COALESCE(excluded.additional_metadata, contents.additional_metadata),
                    is_large_file = MAX(contents.is_large_file, excluded.is_large_file)
                """,
                (
                    record.content_id,
                    record.session_id,
                    record.content_type,
                    record.total_chunks,
                    record.total_size,
                    record.created_at,
                    sqlite3.Binary(record.encryption_iv),
                    record.additional_metadata,
                    int(record.is_pinned),
                    int(record.is_large_file),
                )
            )
            conn.commit()

            cursor.execute(
                f"SELECT {_CONTENT_COLUMNS} FROM contents WHERE content_id = ?",
                (record.content_id,)
            )
            return _row_to_record(cursor.fetchone())

    @staticmethod
    def get_by_id(content_id: str) -> Optional[ContentRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_CONTENT_COLUMNS} FROM contents WHERE content_id = ?",
                (content_id,)
            )
            row = cursor.fetchone()

            if row is None:
                return None

            return _row_to_record(row)

    @staticmethod
    def _update_flag(content_id: str, column: str, value: bool) -> bool:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE contents SET {column} = ? WHERE content_id = ?",
                (int(value), content_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def set_complete(content_id: str) -> bool:
        return ContentRepository._update_flag(content_id, "is_complete", True)

    @staticmethod
    def set_pinned(content_id: str, pinned: bool) -> bool:
        return ContentRepository._update_flag(content_id, "is_pinned", pinned)

    @staticmethod
    def replace_additional_metadata(content_id: str, additional_metadata: Optional[str]) -> bool:
        """
        Overwrite the metadata document, bypassing the merge rules of upsert.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE contents SET additional_metadata = ? WHERE content_id = ?",
                (additional_metadata, content_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def delete(content_id: str) -> bool:
        """
        Delete a content record; its chunk rows cascade.
        """
        logger.debug(f"Deleting content [content_id={content_id}]")
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM contents WHERE content_id = ?", (content_id,))
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def list_by_session(session_id: str, limit: int, offset: int = 0) -> List[ContentRecord]:
        """
        Pinned content first, then newest first.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_CONTENT_COLUMNS}
                FROM contents
                WHERE session_id = ?
                ORDER BY is_pinned DESC, created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (session_id, limit, offset)
            )
            return [_row_to_record(row) for row in cursor.fetchall()]

    @staticmethod
    def count_by_session(session_id: str) -> int:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM contents WHERE session_id = ?", (session_id,))
            return cursor.fetchone()[0]

    @staticmethod
    def count_pinned(session_id: str) -> int:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COUNT(*) FROM contents WHERE session_id = ? AND is_pinned = 1",
                (session_id,)
            )
            return cursor.fetchone()[0]

    @staticmethod
    def list_unpinned_ids(session_id: str, skip_newest: int = 0) -> List[str]:
        """
        Unpinned content ids of a session, newest first, skipping the newest skip_newest.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT content_id FROM contents
                WHERE session_id = ? AND is_pinned = 0
                ORDER BY created_at DESC, rowid DESC
                LIMIT -1 OFFSET ?
                """,
                (session_id, skip_newest)
            )
            return [row["content_id"] for row in cursor.fetchall()]

    @staticmethod
    def list_expired_ids(created_before_ms: int) -> List[str]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT content_id FROM contents
                WHERE is_pinned = 0 AND created_at < ?
                ORDER BY created_at
                """,
                (created_before_ms,)
            )
            return [row["content_id"] for row in cursor.fetchall()]

    @staticmethod
    def list_all_ids() -> Set[str]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT content_id FROM contents")
            return {row["content_id"] for row in cursor.fetchall()}
