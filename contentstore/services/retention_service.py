"""Retention policy: pinning, session-end eviction and periodic cleanup."""

import asyncio
from typing import Iterable, List, Optional

from chunkstore.chunk_storage import delete_content_chunks, list_content_ids
from common.logging_config import get_logger
from common.types import RetentionResult, StoreResult
from contentstore import config
from contentstore.ledger import MetadataLedger
from contentstore.utils import content_not_found, current_time_ms

logger = get_logger(__name__)


class RetentionService:
    """
    Decides which content outlives its session.

    Deletion removes the ledger record first and the chunk files second, so
    a crash in between leaves orphaned files for sweep_orphaned_chunks and
    never a record pointing at missing bytes.
    """

    def __init__(self, ledger: MetadataLedger):
        self.ledger = ledger

    async def _delete_files(self, content_id: str) -> bool:
        try:
            await asyncio.to_thread(delete_content_chunks, content_id)
        except OSError as e:
            logger.warning(f"Failed to delete chunk files of {content_id}, leaving them for the orphan sweep: {e}")
            return False
        return True

    async def _remove(self, content_id: str, keep_pinned: bool) -> bool:
        async with self.ledger.exclusive(content_id):
            record = await self.ledger.get_metadata(content_id)
            if record is None:
                return False
            if keep_pinned and record.is_pinned:
                return False

            await self.ledger.delete(content_id)
            await self._delete_files(content_id)
        return True

    async def _remove_unpinned(self, content_ids: Iterable[str]) -> List[str]:
        removed = []
        for content_id in content_ids:
            if await self._remove(content_id, keep_pinned=True):
                removed.append(content_id)
        return removed

    async def on_session_ended(self, session_id: str) -> RetentionResult:
        """
        Evict every unpinned content of a session that has ended.

        Pinned content is kept and stays readable by content id.
        """
        candidates = await self.ledger.list_unpinned_ids(session_id)
        removed = await self._remove_unpinned(candidates)
        logger.info(f"Session {session_id} ended: removed {len(removed)} unpinned items")
        return RetentionResult(removed=removed)

    async def pin(self, content_id: str) -> bool:
        """
        Pin content so it survives the end of its session.

        Returns:
            False if the content does not exist
        """
        pinned = await self.ledger.set_pinned(content_id, True)
        if pinned:
            logger.info(f"Pinned content {content_id}")
        return pinned

    async def unpin(self, content_id: str) -> bool:
        unpinned = await self.ledger.set_pinned(content_id, False)
        if unpinned:
            logger.info(f"Unpinned content {content_id}")
        return unpinned

    async def remove_content(self, content_id: str) -> StoreResult:
        """
        Explicitly delete one content, pinned or not.
        """
        if not await self._remove(content_id, keep_pinned=False):
            return StoreResult(success=False, error=content_not_found(content_id))

        logger.info(f"Removed content {content_id}")
        return StoreResult(success=True)

    async def cleanup_old_content(self, session_id: str, max_items: Optional[int] = None) -> RetentionResult:
        """
        Keep every pinned item plus the max_items newest unpinned ones.
        """
        if max_items is None:
            max_items = config.MAX_ITEMS_PER_SESSION
        if max_items < 0:
            raise ValueError(f"max_items must be non-negative, got {max_items}")

        candidates = await self.ledger.list_unpinned_ids(session_id, skip_newest=max_items)
        removed = await self._remove_unpinned(candidates)
        if removed:
            logger.info(f"Trimmed session {session_id} to {max_items} unpinned items, removed {len(removed)}")
        return RetentionResult(removed=removed)

    async def cleanup_expired_content(self, max_age_seconds: Optional[int] = None) -> RetentionResult:
        """
        Remove unpinned content created more than max_age_seconds ago.
        """
        if max_age_seconds is None:
            max_age_seconds = config.CONTENT_MAX_AGE_DAYS * 24 * 3600

        cutoff = current_time_ms() - max_age_seconds * 1000
        candidates = await self.ledger.list_expired_ids(cutoff)
        removed = await self._remove_unpinned(candidates)
        if removed:
            logger.info(f"Removed {len(removed)} expired items older than {max_age_seconds}s")
        return RetentionResult(removed=removed)

    async def sweep_orphaned_chunks(self) -> RetentionResult:
        """
        Delete chunk directories that no ledger record refers to.
        """
        on_disk = await asyncio.to_thread(list_content_ids)
        known = await self.ledger.list_all_ids()

        removed = []
        for content_id in on_disk:
            if content_id in known:
                continue
            async with self.ledger.exclusive(content_id):
                if await self.ledger.get_metadata(content_id) is not None:
                    continue
                if not await self._delete_files(content_id):
                    continue
            removed.append(content_id)

        if removed:
            logger.info(f"Swept {len(removed)} orphaned chunk directories")
        return RetentionResult(removed=removed)

    async def get_pinned_content_count(self, session_id: str) -> int:
        return await self.ledger.count_pinned(session_id)
