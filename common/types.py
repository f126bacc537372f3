"""Shared data type definitions (ContentRecord, ChunkRecord, ChunkMetadata, results)."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class ContentRecord:
    """
    Ledger record for one logical item being shared.

    total_size is the plaintext byte count declared by the sender, or None
    until the sender has declared it. Zero is empty content.
    additional_metadata is untrusted text and is never assumed to parse.
    """
    content_id: str
    session_id: str
    content_type: str
    total_chunks: int
    total_size: Optional[int]
    created_at: int
    encryption_iv: bytes = b""
    additional_metadata: Optional[str] = None
    is_complete: bool = False
    is_pinned: bool = False
    is_large_file: bool = False


@dataclass(frozen=True)
class ChunkRecord:
    """
    Ledger bookkeeping for one stored chunk.
    """
    content_id: str
    chunk_index: int
    size: int
    iv: bytes
    checksum: str
    created_at: int


@dataclass(frozen=True)
class ChunkMetadata:
    """
    Metadata delivered by the transport alongside each chunk's ciphertext.
    """
    content_id: str
    session_id: str
    chunk_index: int
    total_chunks: int
    size: int
    iv: bytes
    content_type: Optional[str] = None
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class StoredChunk:
    """
    Bytes read back from the persistence engine.
    """
    data: bytes
    iv: bytes


@dataclass(frozen=True)
class StoreResult:
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class WriteResult:
    success: bool
    error: Optional[str] = None
    is_complete: bool = False


class StreamStatus(str, Enum):
    COMPLETED = "completed"
    NOT_FOUND = "not_found"
    ABORTED = "aborted"


@dataclass(frozen=True)
class StreamResult:
    """
    Outcome of streaming one content to a sink.
    """
    status: StreamStatus
    bytes_sent: int = 0
    declared_length: int = 0
    chunks_sent: int = 0

    @property
    def length_matches(self) -> bool:
        return self.bytes_sent == self.declared_length


@dataclass(frozen=True)
class RetentionResult:
    removed: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContentPage:
    """
    One page of a session's content listing.
    """
    items: List[ContentRecord]
    total_count: int
    has_more: bool


@dataclass(frozen=True)
class IntegrityReport:
    content_id: str
    missing_chunks: List[int] = field(default_factory=list)
    corrupt_chunks: List[int] = field(default_factory=list)

    @property
    def is_intact(self) -> bool:
        return not self.missing_chunks and not self.corrupt_chunks
