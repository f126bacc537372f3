"""Metadata ledger: the per-content record and its chunk bookkeeping."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Set

from common.logging_config import get_logger
from common.types import ChunkRecord, ContentRecord
from contentstore.content_locks import ContentLockRegistry
from contentstore.repositories.chunk_repository import ChunkRepository
from contentstore.repositories.content_repository import ContentRepository

logger = get_logger(__name__)


class MetadataLedger:
    """
    Durable ContentRecord and ChunkRecord store.

    Every mutation of a content runs inside that content's exclusion scope.
    Callers that need a read-modify-write sequence hold ``exclusive()``
    themselves; the ledger methods re-enter the scope safely.
    """

    def __init__(self, locks: Optional[ContentLockRegistry] = None):
        self.locks = locks or ContentLockRegistry()
        self.content_repo = ContentRepository()
        self.chunk_repo = ChunkRepository()

    @asynccontextmanager
    async def exclusive(self, content_id: str) -> AsyncIterator[None]:
        async with self.locks.exclusive(content_id):
            yield

    async def create_or_update(self, record: ContentRecord) -> ContentRecord:
        async with self.exclusive(record.content_id):
            existing = self.content_repo.get_by_id(record.content_id)
            if existing is not None and existing.session_id != record.session_id:
                logger.warning(
                    f"Ignoring session change for content {record.content_id}: "
                    f"{existing.session_id} -> {record.session_id}"
                )
            stored = self.content_repo.upsert(record)
            if existing is None:
                logger.info(
                    f"Created content record {record.content_id} "
                    f"[session_id={record.session_id}, total_chunks={stored.total_chunks}]"
                )
            return stored

    async def get_metadata(self, content_id: str) -> Optional[ContentRecord]:
        return self.content_repo.get_by_id(content_id)

    async def set_complete(self, content_id: str) -> bool:
        async with self.exclusive(content_id):
            return self.content_repo.set_complete(content_id)

    async def set_pinned(self, content_id: str, pinned: bool) -> bool:
        async with self.exclusive(content_id):
            return self.content_repo.set_pinned(content_id, pinned)

    async def replace_additional_metadata(self, content_id: str, additional_metadata: Optional[str]) -> bool:
        async with self.exclusive(content_id):
            return self.content_repo.replace_additional_metadata(content_id, additional_metadata)

    async def delete(self, content_id: str) -> bool:
        async with self.exclusive(content_id):
            return self.content_repo.delete(content_id)

    async def record_chunk(self, chunk: ChunkRecord) -> bool:
        """
        Record a durably written chunk.

        Returns:
            False if the content record no longer exists
        """
        async with self.exclusive(chunk.content_id):
            if self.content_repo.get_by_id(chunk.content_id) is None:
                return False
            self.chunk_repo.upsert_chunk(chunk)
            return True

    async def get_chunk(self, content_id: str, chunk_index: int) -> Optional[ChunkRecord]:
        return self.chunk_repo.get_chunk(content_id, chunk_index)

    async def get_chunks(self, content_id: str) -> List[ChunkRecord]:
        return self.chunk_repo.get_chunks_by_content(content_id)

    async def count_chunks(self, content_id: str, total_chunks: int) -> int:
        return self.chunk_repo.count_chunks(content_id, total_chunks)

    async def list_by_session(self, session_id: str, limit: int, offset: int = 0) -> List[ContentRecord]:
        return self.content_repo.list_by_session(session_id, limit, offset)

    async def count_by_session(self, session_id: str) -> int:
        return self.content_repo.count_by_session(session_id)

    async def count_pinned(self, session_id: str) -> int:
        return self.content_repo.count_pinned(session_id)

    async def list_unpinned_ids(self, session_id: str, skip_newest: int = 0) -> List[str]:
        return self.content_repo.list_unpinned_ids(session_id, skip_newest)

    async def list_expired_ids(self, created_before_ms: int) -> List[str]:
        return self.content_repo.list_expired_ids(created_before_ms)

    async def list_all_ids(self) -> Set[str]:
        return self.content_repo.list_all_ids()
