"""Streams a stored content back as ``iv || ciphertext`` per chunk."""

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Union

from chunkstore.chunk_storage import read_chunk
from chunkstore.cipher_layout import declared_length
from common.constants import IV_SIZE_BYTES
from common.exceptions import SinkClosedError
from common.logging_config import get_logger
from common.types import ChunkRecord, ContentRecord, StreamResult, StreamStatus
from contentstore.diagnostics import DiagnosticsObserver, LengthMismatch
from contentstore.ledger import MetadataLedger
from contentstore.metadata_document import resolve_file_name

logger = get_logger(__name__)

ChunkSink = Callable[[bytes], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class PreparedDownload:
    """Everything the HTTP layer announces before the first body byte."""
    record: ContentRecord
    file_name: str
    declared_length: int


class DownloadStreamer:
    """
    Reconstructs content for download without mutating any state.

    A stream works from a snapshot of the record and its chunk rows taken at
    start. If a chunk file disappears mid-stream (the content was deleted)
    the stream ends ABORTED.
    """

    def __init__(self, ledger: MetadataLedger, diagnostics: DiagnosticsObserver):
        self.ledger = ledger
        self.diagnostics = diagnostics

    @staticmethod
    def declared_length(record: ContentRecord, chunks: Sequence[ChunkRecord] = ()) -> int:
        """
        Content-Length of a download.

        Derived from the declared size when there is one, otherwise from the
        stored chunk sizes.
        """
        if record.total_size is None:
            return sum(chunk.size + IV_SIZE_BYTES for chunk in chunks)
        return declared_length(record.total_size, record.total_chunks)

    async def prepare_download(self, content_id: str) -> Optional[PreparedDownload]:
        record = await self.ledger.get_metadata(content_id)
        if record is None:
            return None

        chunks = await self._snapshot_chunks(record) if record.total_size is None else ()
        return PreparedDownload(
            record=record,
            file_name=resolve_file_name(content_id, record.additional_metadata),
            declared_length=self.declared_length(record, chunks),
        )

    async def _snapshot_chunks(self, record: ContentRecord) -> List[ChunkRecord]:
        chunks = await self.ledger.get_chunks(record.content_id)
        return [chunk for chunk in chunks if 0 <= chunk.chunk_index < record.total_chunks]

    async def _read_frame(self, content_id: str, chunk_index: int) -> Optional[bytes]:
        try:
            stored = await asyncio.to_thread(read_chunk, content_id, chunk_index)
        except FileNotFoundError:
            logger.warning(f"Chunk {chunk_index} of content {content_id} disappeared during download")
            return None
        return stored.iv + stored.data

    def _finish(self, content_id: str, declared: int, bytes_sent: int, chunks_sent: int) -> StreamResult:
        result = StreamResult(
            status=StreamStatus.COMPLETED,
            bytes_sent=bytes_sent,
            declared_length=declared,
            chunks_sent=chunks_sent,
        )
        if not result.length_matches:
            self.diagnostics.record(LengthMismatch(
                content_id=content_id,
                declared_length=declared,
                bytes_sent=bytes_sent,
                chunks_sent=chunks_sent,
            ))
        else:
            logger.info(f"Streamed content {content_id}: {bytes_sent} bytes in {chunks_sent} chunks")
        return result

    async def stream_for_download(self, content_id: str, on_chunk: ChunkSink) -> StreamResult:
        """
        Push every chunk of a content to a sink in ascending index order.

        Args:
            content_id: Content to stream
            on_chunk: Called with each ``iv || ciphertext`` frame; may be a
                coroutine function. Raising SinkClosedError stops the stream.

        Returns:
            StreamResult with status COMPLETED, NOT_FOUND or ABORTED
        """
        record = await self.ledger.get_metadata(content_id)
        if record is None:
            return StreamResult(status=StreamStatus.NOT_FOUND)

        chunks = await self._snapshot_chunks(record)
        declared = self.declared_length(record, chunks)
        bytes_sent = 0
        chunks_sent = 0

        for chunk in chunks:
            frame = await self._read_frame(content_id, chunk.chunk_index)
            if frame is None:
                return StreamResult(StreamStatus.ABORTED, bytes_sent, declared, chunks_sent)

            try:
                result = on_chunk(frame)
                if asyncio.iscoroutine(result):
                    await result
            except SinkClosedError:
                logger.info(
                    f"Receiver closed download of {content_id} after "
                    f"{bytes_sent}/{declared} bytes"
                )
                return StreamResult(StreamStatus.ABORTED, bytes_sent, declared, chunks_sent)

            bytes_sent += len(frame)
            chunks_sent += 1

        return self._finish(content_id, declared, bytes_sent, chunks_sent)

    async def iter_download(
        self,
        content_id: str,
        record: Optional[ContentRecord] = None
    ) -> AsyncIterator[bytes]:
        """
        Async-generator form of stream_for_download, for StreamingResponse.

        Closing or cancelling the generator stops the stream at once; no
        length check is made for a stream that did not finish.
        """
        if record is None:
            record = await self.ledger.get_metadata(content_id)
            if record is None:
                logger.warning(f"Download requested for unknown content {content_id}")
                return

        chunks = await self._snapshot_chunks(record)
        declared = self.declared_length(record, chunks)
        bytes_sent = 0
        chunks_sent = 0
        finished = False

        logger.info(f"Starting download of content {content_id} ({len(chunks)} chunks, {declared} bytes)")

        try:
            for chunk in chunks:
                frame = await self._read_frame(content_id, chunk.chunk_index)
                if frame is None:
                    return
                bytes_sent += len(frame)
                chunks_sent += 1
                yield frame
            finished = True
        finally:
            if finished:
                self._finish(content_id, declared, bytes_sent, chunks_sent)
            else:
                logger.info(
                    f"Download of {content_id} aborted after {chunks_sent} chunks "
                    f"({bytes_sent}/{declared} bytes)"
                )
