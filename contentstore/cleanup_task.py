"""Background task removing expired content and orphaned chunk files."""

import asyncio
from typing import Optional

from common.logging_config import get_logger
from contentstore import config
from contentstore.services.content_store import ChunkedContentStore

logger = get_logger(__name__)


class ExpiredContentCleaner:
    """
    Background task that periodically applies age-based retention.
    """

    def __init__(self, store: ChunkedContentStore, interval_seconds: Optional[int] = None):
        """
        Initialize cleaner task.

        Args:
            store: Content store to clean
            interval_seconds: Time between cleanup cycles (default CLEANUP_INTERVAL_SECONDS)
        """
        self.store = store
        self.interval_seconds = interval_seconds or config.CLEANUP_INTERVAL_SECONDS
        self._running = False
        self._task = None

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._running:
            logger.warning("Cleanup task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started expired content cleanup task (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped expired content cleanup task")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await self.run_cycle()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in cleanup task: {e}", exc_info=True)

    async def run_cycle(self) -> int:
        """
        Execute one cleanup cycle.

        Returns:
            Number of content items and orphaned directories removed
        """
        expired = await self.store.cleanup_expired_content()
        orphans = await self.store.sweep_orphaned_chunks()

        removed = len(expired.removed) + len(orphans.removed)
        if removed:
            logger.info(
                f"Cleanup cycle complete: {len(expired.removed)} expired, "
                f"{len(orphans.removed)} orphaned directories"
            )
        else:
            logger.debug("Cleanup cycle complete: nothing to remove")
        return removed
