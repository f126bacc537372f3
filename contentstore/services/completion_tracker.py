"""Completion tracking: flips a content from Collecting to Complete exactly once."""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional

from chunkstore.chunk_storage import chunk_exists
from chunkstore.cipher_layout import expected_chunk_count, layout_violations
from common.logging_config import get_logger
from common.types import ContentRecord
from contentstore import config
from contentstore.ledger import MetadataLedger

logger = get_logger(__name__)


class CompletionState(str, Enum):
    COLLECTING = "collecting"
    COMPLETE = "complete"


@dataclass(frozen=True)
class CompletionCheck:
    state: CompletionState
    chunks_present: int
    total_chunks: int
    transitioned: bool = False


CompletionListener = Callable[[ContentRecord], object]


class CompletionTracker:
    """
    Per-content state machine driven by chunk-presence counts.

    The check runs inside the content's exclusion scope, so concurrent chunk
    writes observe a consistent set of stored indices and exactly one of them
    performs the Collecting -> Complete transition. Arrival order is irrelevant.
    Content whose declared size disagrees with a stored chunk stays Collecting.
    """

    def __init__(self, ledger: MetadataLedger, strict_cipher_layout: Optional[bool] = None):
        self.ledger = ledger
        self._listeners: List[CompletionListener] = []
        self._strict_cipher_layout = strict_cipher_layout

    @property
    def strict_cipher_layout(self) -> bool:
        if self._strict_cipher_layout is None:
            return config.STRICT_CIPHER_LAYOUT
        return self._strict_cipher_layout

    def add_listener(self, listener: CompletionListener) -> None:
        """
        Register a callback fired once per content when it becomes complete.
        The callback may be a plain function or a coroutine function.
        """
        self._listeners.append(listener)

    async def check(self, content_id: str) -> Optional[CompletionCheck]:
        """
        Re-evaluate completion for a content.

        Returns:
            The resulting state, or None if the content does not exist
        """
        completed: Optional[ContentRecord] = None

        async with self.ledger.exclusive(content_id):
            record = await self.ledger.get_metadata(content_id)
            if record is None:
                return None

            total = record.total_chunks
            if record.is_complete:
                return CompletionCheck(CompletionState.COMPLETE, total, total)

            if total <= 0:
                return CompletionCheck(CompletionState.COLLECTING, 0, total)

            present = await self.ledger.count_chunks(content_id, total)
            if present < total:
                return CompletionCheck(CompletionState.COLLECTING, present, total)

            missing = [index for index in range(total) if not chunk_exists(content_id, index)]
            if missing:
                logger.error(
                    f"Content {content_id} has ledger rows for all {total} chunks "
                    f"but chunk files {missing[:10]} are missing on disk"
                )
                return CompletionCheck(CompletionState.COLLECTING, total - len(missing), total)

            if self.strict_cipher_layout and record.total_size is not None:
                chunks = await self.ledger.get_chunks(content_id)
                violations = layout_violations(
                    record.total_size,
                    [(chunk.chunk_index, chunk.size) for chunk in chunks if chunk.chunk_index < total]
                )
                if violations or expected_chunk_count(record.total_size) != total:
                    logger.error(
                        f"Content {content_id} has all {total} chunks but chunks "
                        f"{[index for index, _, _ in violations][:10]} or their count do not fit "
                        f"a total size of {record.total_size}"
                    )
                    return CompletionCheck(CompletionState.COLLECTING, total, total)

            await self.ledger.set_complete(content_id)
            completed = replace(record, is_complete=True)

        logger.info(f"Content {content_id} complete ({total} chunks)")
        await self._notify(completed)
        return CompletionCheck(CompletionState.COMPLETE, total, total, transitioned=True)

    async def _notify(self, record: ContentRecord) -> None:
        for listener in self._listeners:
            try:
                result = listener(record)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Completion listener failed for content {record.content_id}: {e}",
                    exc_info=True
                )
