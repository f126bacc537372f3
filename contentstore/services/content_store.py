"""ChunkedContentStore: single entry point for ingestion, retrieval and retention."""

import asyncio
from typing import Optional

from chunkstore.checksum_validator import verify_checksum
from chunkstore.chunk_storage import read_chunk
from common.logging_config import get_logger
from common.types import (
    ChunkMetadata,
    ChunkRecord,
    ContentPage,
    ContentRecord,
    IntegrityReport,
    RetentionResult,
    StoreResult,
    StreamResult,
    WriteResult,
)
from contentstore.diagnostics import DiagnosticsObserver, LoggingDiagnostics
from contentstore.ledger import MetadataLedger
from contentstore.services.completion_tracker import CompletionListener, CompletionTracker
from contentstore.services.download_streamer import ChunkSink, DownloadStreamer
from contentstore.services.ingestion_service import IngestionService
from contentstore.services.rename_service import RenameService
from contentstore.services.retention_service import RetentionService

logger = get_logger(__name__)


class ChunkedContentStore:
    """
    Facade over the ledger and the services built on it.

    Every collaborator shares one MetadataLedger, and so one per-content
    lock arena; that is what keeps rename, completion and retention from
    interleaving on the same content.
    """

    def __init__(
        self,
        ledger: Optional[MetadataLedger] = None,
        diagnostics: Optional[DiagnosticsObserver] = None,
        strict_cipher_layout: Optional[bool] = None,
    ):
        self.ledger = ledger or MetadataLedger()
        self.diagnostics = diagnostics or LoggingDiagnostics()
        self.tracker = CompletionTracker(self.ledger, strict_cipher_layout=strict_cipher_layout)
        self.ingestion = IngestionService(
            self.ledger,
            self.tracker,
            self.diagnostics,
            strict_cipher_layout=strict_cipher_layout,
        )
        self.streamer = DownloadStreamer(self.ledger, self.diagnostics)
        self.renamer = RenameService(self.ledger)
        self.retention = RetentionService(self.ledger)

    def add_completion_listener(self, listener: CompletionListener) -> None:
        self.tracker.add_listener(listener)

    # Ingestion

    async def save_chunk(self, data: bytes, metadata: ChunkMetadata) -> WriteResult:
        return await self.ingestion.save_chunk(data, metadata)

    async def save_content(self, record: ContentRecord) -> StoreResult:
        return await self.ingestion.save_content(record)

    async def mark_content_complete(self, content_id: str) -> StoreResult:
        return await self.ingestion.mark_content_complete(content_id)

    # Retrieval

    async def get_content_metadata(self, content_id: str) -> Optional[ContentRecord]:
        return await self.ledger.get_metadata(content_id)

    async def get_chunk_metadata(self, content_id: str, chunk_index: int) -> Optional[ChunkRecord]:
        return await self.ledger.get_chunk(content_id, chunk_index)

    async def stream_content_for_download(self, content_id: str, on_chunk: ChunkSink) -> StreamResult:
        return await self.streamer.stream_for_download(content_id, on_chunk)

    async def rename_content(self, content_id: str, new_name: str) -> StoreResult:
        return await self.renamer.rename_content(content_id, new_name)

    async def list_content(self, session_id: str, limit: int = 50, offset: int = 0) -> ContentPage:
        """
        One page of a session's content, pinned items first, then newest first.
        """
        if limit <= 0 or offset < 0:
            raise ValueError("limit must be positive and offset non-negative")

        items = await self.ledger.list_by_session(session_id, limit, offset)
        total_count = await self.ledger.count_by_session(session_id)
        return ContentPage(
            items=items,
            total_count=total_count,
            has_more=offset + len(items) < total_count,
        )

    async def verify_content_integrity(self, content_id: str) -> Optional[IntegrityReport]:
        """
        Re-read every chunk of a content and compare it with its recorded checksum.

        Returns:
            IntegrityReport, or None if the content does not exist
        """
        record = await self.ledger.get_metadata(content_id)
        if record is None:
            return None

        rows = {chunk.chunk_index: chunk for chunk in await self.ledger.get_chunks(content_id)}
        missing_chunks = []
        corrupt_chunks = []

        for chunk_index in range(record.total_chunks):
            row = rows.get(chunk_index)
            if row is None:
                missing_chunks.append(chunk_index)
                continue

            try:
                stored = await asyncio.to_thread(read_chunk, content_id, chunk_index)
            except FileNotFoundError:
                missing_chunks.append(chunk_index)
                continue

            if stored.iv != row.iv or not verify_checksum(stored.data, row.checksum):
                corrupt_chunks.append(chunk_index)

        report = IntegrityReport(
            content_id=content_id,
            missing_chunks=missing_chunks,
            corrupt_chunks=corrupt_chunks,
        )
        if not report.is_intact:
            logger.warning(
                f"Integrity check failed for {content_id}: "
                f"missing={missing_chunks[:10]} corrupt={corrupt_chunks[:10]}"
            )
        return report

    # Retention

    async def on_session_ended(self, session_id: str) -> RetentionResult:
        return await self.retention.on_session_ended(session_id)

    async def pin_content(self, content_id: str) -> bool:
        return await self.retention.pin(content_id)

    async def unpin_content(self, content_id: str) -> bool:
        return await self.retention.unpin(content_id)

    async def remove_content(self, content_id: str) -> StoreResult:
        return await self.retention.remove_content(content_id)

    async def cleanup_old_content(self, session_id: str, max_items: Optional[int] = None) -> RetentionResult:
        return await self.retention.cleanup_old_content(session_id, max_items)

    async def cleanup_expired_content(self, max_age_seconds: Optional[int] = None) -> RetentionResult:
        return await self.retention.cleanup_expired_content(max_age_seconds)

    async def sweep_orphaned_chunks(self) -> RetentionResult:
        return await self.retention.sweep_orphaned_chunks()

    async def get_pinned_content_count(self, session_id: str) -> int:
        return await self.retention.get_pinned_content_count(session_id)
