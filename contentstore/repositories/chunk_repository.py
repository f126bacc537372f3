"""Chunk repository for database operations."""

import sqlite3
from typing import List, Optional

from common.logging_config import get_logger
from common.types import ChunkRecord
from contentstore.database import get_db_connection

logger = get_logger(__name__)


def _row_to_chunk(row: sqlite3.Row) -> ChunkRecord:
    return ChunkRecord(
        content_id=row["content_id"],
        chunk_index=row["chunk_index"],
        size=row["size"],
        iv=bytes(row["iv"]),
        checksum=row["checksum"],
        created_at=row["created_at"],
    )


class ChunkRepository:
    @staticmethod
    def upsert_chunk(chunk: ChunkRecord) -> None:
        """
        Record a stored chunk; re-saving an index replaces the previous row.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO chunks (content_id, chunk_index, size, iv, checksum, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(content_id, chunk_index) DO UPDATE SET
                    size = excluded.size,
                    iv = excluded.iv,
                    checksum = excluded.checksum,
                    created_at = excluded.created_at
                """,
                (
                    chunk.content_id,
                    chunk.chunk_index,
                    chunk.size,
                    sqlite3.Binary(chunk.iv),
                    chunk.checksum,
                    chunk.created_at,
                )
            )
            conn.commit()
        logger.debug(f"Recorded chunk {chunk.chunk_index} [content_id={chunk.content_id}]")

    @staticmethod
    def get_chunk(content_id: str, chunk_index: int) -> Optional[ChunkRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT content_id, chunk_index, size, iv, checksum, created_at
                FROM chunks
                WHERE content_id = ? AND chunk_index = ?
                """,
                (content_id, chunk_index)
            )
            row = cursor.fetchone()

            if row is None:
                return None

            return _row_to_chunk(row)

    @staticmethod
    def get_chunks_by_content(content_id: str) -> List[ChunkRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT content_id, chunk_index, size, iv, checksum, created_at
                FROM chunks
                WHERE content_id = ?
                ORDER BY chunk_index
                """,
                (content_id,)
            )
            return [_row_to_chunk(row) for row in cursor.fetchall()]

    @staticmethod
    def count_chunks(content_id: str, total_chunks: int) -> int:
        """
        Count distinct stored indices within [0, total_chunks).
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT COUNT(*) FROM chunks
                WHERE content_id = ? AND chunk_index >= 0 AND chunk_index < ?
                """,
                (content_id, total_chunks)
            )
            return cursor.fetchone()[0]
