"""Ingestion interface: chunk and metadata delivery from the real-time transport."""

import asyncio
import json
import sqlite3
from dataclasses import replace
from typing import Optional

from chunkstore.checksum_validator import compute_checksum
from chunkstore.chunk_storage import delete_chunk, is_valid_content_id, write_chunk
from chunkstore.cipher_layout import expected_chunk_ciphertext_size, expected_chunk_count, layout_violations
from common.constants import DEFAULT_CONTENT_TYPE, IV_SIZE_BYTES
from common.exceptions import ChunkWriteError
from common.logging_config import get_logger
from common.types import ChunkMetadata, ChunkRecord, ContentRecord, StoreResult, WriteResult
from contentstore import config
from contentstore.diagnostics import CipherLayoutViolation, DiagnosticsObserver
from contentstore.ledger import MetadataLedger
from contentstore.services.completion_tracker import CompletionState, CompletionTracker
from contentstore.utils import content_not_found, current_time_ms

logger = get_logger(__name__)


class IngestionService:
    def __init__(
        self,
        ledger: MetadataLedger,
        tracker: CompletionTracker,
        diagnostics: DiagnosticsObserver,
        strict_cipher_layout: Optional[bool] = None,
    ):
        self.ledger = ledger
        self.tracker = tracker
        self.diagnostics = diagnostics
        self._strict_cipher_layout = strict_cipher_layout

    @property
    def strict_cipher_layout(self) -> bool:
        if self._strict_cipher_layout is None:
            return config.STRICT_CIPHER_LAYOUT
        return self._strict_cipher_layout

    def _validate_chunk(self, data: bytes, metadata: ChunkMetadata) -> Optional[str]:
        if not is_valid_content_id(metadata.content_id):
            return f"Invalid content id: {metadata.content_id!r}"
        if metadata.total_chunks <= 0:
            return f"total_chunks must be positive, got {metadata.total_chunks}"
        if not 0 <= metadata.chunk_index < metadata.total_chunks:
            return f"Chunk index {metadata.chunk_index} out of range [0, {metadata.total_chunks})"
        if len(metadata.iv) != IV_SIZE_BYTES:
            return f"IV must be {IV_SIZE_BYTES} bytes, got {len(metadata.iv)}"
        if metadata.size != len(data):
            return f"Declared chunk size {metadata.size} does not match received {len(data)} bytes"
        return None

    def _layout_error(self, content_id: str, chunk_index: int, expected: Optional[int], actual: int) -> str:
        self.diagnostics.record(CipherLayoutViolation(
            content_id=content_id,
            chunk_index=chunk_index,
            expected_size=expected,
            actual_size=actual,
        ))
        if expected is None:
            return f"Chunk {chunk_index} lies beyond the declared content size"
        return f"Ciphertext size mismatch for chunk {chunk_index}: expected {expected} bytes, got {actual}"

    def _check_against_record(self, record: ContentRecord, data: bytes, metadata: ChunkMetadata) -> Optional[str]:
        if record.session_id != metadata.session_id:
            return f"Content {record.content_id} belongs to a different session"

        if record.total_chunks > 0 and record.total_chunks != metadata.total_chunks:
            return (
                f"Chunk declares {metadata.total_chunks} total chunks, "
                f"content has {record.total_chunks}"
            )

        if self.strict_cipher_layout and record.total_size is not None:
            expected = expected_chunk_ciphertext_size(record.total_size, metadata.chunk_index)
            if expected != len(data):
                return self._layout_error(record.content_id, metadata.chunk_index, expected, len(data))
        return None

    async def _check_declared_layout(self, merged: ContentRecord) -> Optional[str]:
        """
        Check a size about to be stored against the chunk count and the chunks already on file.
        """
        if merged.total_size is None:
            return None

        expected_count = expected_chunk_count(merged.total_size)
        if merged.total_chunks > 0 and merged.total_chunks != expected_count:
            if not self.strict_cipher_layout:
                logger.warning(
                    f"Content {merged.content_id} declares {merged.total_chunks} chunks "
                    f"but {merged.total_size} bytes split into {expected_count}"
                )
                return None
            return (
                f"Content declares {merged.total_chunks} chunks but "
                f"{merged.total_size} bytes split into {expected_count}"
            )

        if not self.strict_cipher_layout:
            return None

        stored = await self.ledger.get_chunks(merged.content_id)
        violations = layout_violations(merged.total_size, [(chunk.chunk_index, chunk.size) for chunk in stored])
        errors = [
            self._layout_error(merged.content_id, chunk_index, expected, actual)
            for chunk_index, expected, actual in violations
        ]
        if errors:
            return f"Stored chunks do not fit a total size of {merged.total_size}: {errors[0]}"
        return None

    async def save_chunk(self, data: bytes, metadata: ChunkMetadata) -> WriteResult:
        """
        Durably store one chunk and update the ledger.

        Re-sending an index overwrites it. Failures are returned, never
        retried here; the transport retries the whole call.
        """
        content_id = metadata.content_id

        error = self._validate_chunk(data, metadata)
        if error:
            logger.warning(f"Rejected chunk {metadata.chunk_index} of {content_id}: {error}")
            return WriteResult(success=False, error=error)

        try:
            async with self.ledger.exclusive(content_id):
                record = await self.ledger.get_metadata(content_id)
                if record is None:
                    additional = json.dumps({"mimeType": metadata.mime_type}) if metadata.mime_type else None
                    record = await self.ledger.create_or_update(ContentRecord(
                        content_id=content_id,
                        session_id=metadata.session_id,
                        content_type=metadata.content_type or DEFAULT_CONTENT_TYPE,
                        total_chunks=metadata.total_chunks,
                        total_size=None,
                        created_at=current_time_ms(),
                        encryption_iv=bytes(metadata.iv),
                        additional_metadata=additional,
                    ))

                error = self._check_against_record(record, data, metadata)
                if error:
                    logger.warning(f"Rejected chunk {metadata.chunk_index} of {content_id}: {error}")
                    return WriteResult(success=False, error=error)

            await asyncio.to_thread(write_chunk, content_id, metadata.chunk_index, data, bytes(metadata.iv))

            recorded = await self.ledger.record_chunk(ChunkRecord(
                content_id=content_id,
                chunk_index=metadata.chunk_index,
                size=len(data),
                iv=bytes(metadata.iv),
                checksum=compute_checksum(data),
                created_at=current_time_ms(),
            ))
        except ChunkWriteError as e:
            logger.error(f"Chunk write failed: {e}")
            return WriteResult(success=False, error=str(e))
        except sqlite3.Error as e:
            logger.error(f"Ledger update failed for chunk {metadata.chunk_index} of {content_id}: {e}", exc_info=True)
            return WriteResult(success=False, error=f"Failed to record chunk: {e}")

        if not recorded:
            await asyncio.to_thread(delete_chunk, content_id, metadata.chunk_index)
            logger.warning(f"Content {content_id} was removed while chunk {metadata.chunk_index} was being written")
            return WriteResult(success=False, error=content_not_found(content_id))

        logger.debug(f"Stored chunk {metadata.chunk_index + 1}/{metadata.total_chunks} of {content_id}")

        check = await self.tracker.check(content_id)
        is_complete = check is not None and check.state == CompletionState.COMPLETE
        return WriteResult(success=True, is_complete=is_complete)

    async def save_content(self, record: ContentRecord) -> StoreResult:
        """
        Register or merge content metadata, before or alongside chunk delivery.

        A total_size of None leaves the stored size untouched. Once a size is
        known it must agree with the chunk count and with every chunk already
        stored, otherwise the update is rejected.
        """
        if not is_valid_content_id(record.content_id):
            return StoreResult(success=False, error=f"Invalid content id: {record.content_id!r}")
        if record.total_chunks < 0 or (record.total_size is not None and record.total_size < 0):
            return StoreResult(success=False, error="total_chunks and total_size must be non-negative")

        if (
            not record.is_large_file
            and record.total_size is not None
            and record.total_size >= config.LARGE_FILE_THRESHOLD_BYTES
        ):
            record = replace(record, is_large_file=True)

        try:
            async with self.ledger.exclusive(record.content_id):
                existing = await self.ledger.get_metadata(record.content_id)
                merged = record
                if existing is not None:
                    if existing.session_id != record.session_id:
                        return StoreResult(
                            success=False,
                            error=f"Content {record.content_id} belongs to a different session"
                        )
                    merged = replace(
                        existing,
                        total_size=existing.total_size if record.total_size is None else record.total_size,
                        total_chunks=record.total_chunks or existing.total_chunks,
                    )

                error = await self._check_declared_layout(merged)
                if error:
                    logger.warning(f"Rejected metadata for {record.content_id}: {error}")
                    return StoreResult(success=False, error=error)

                await self.ledger.create_or_update(record)
        except sqlite3.Error as e:
            logger.error(f"Failed to save content {record.content_id}: {e}", exc_info=True)
            return StoreResult(success=False, error=f"Failed to save content: {e}")

        await self.tracker.check(record.content_id)
        return StoreResult(success=True)

    async def mark_content_complete(self, content_id: str) -> StoreResult:
        """
        Ask for completion. Content is only marked complete once every chunk is stored.
        """
        check = await self.tracker.check(content_id)
        if check is None:
            return StoreResult(success=False, error=content_not_found(content_id))

        if check.state != CompletionState.COMPLETE:
            logger.info(
                f"Content {content_id} not complete yet: "
                f"{check.chunks_present}/{check.total_chunks} chunks stored"
            )
        return StoreResult(success=True)
