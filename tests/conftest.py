"""Shared pytest fixtures for all tests."""

import os
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from chunkstore.cipher_layout import plaintext_chunk_sizes
from common.constants import CHUNK_SIZE_BYTES
from common.types import ChunkMetadata, ContentRecord
from contentstore.database import init_database
from contentstore.diagnostics import LoggingDiagnostics
from contentstore.services.content_store import ChunkedContentStore
from contentstore.utils import current_time_ms

TEST_KEY = bytes(range(32))


def encrypt_chunk(plaintext: bytes, iv: bytes, key: bytes = TEST_KEY) -> bytes:
    """
    Encrypt one chunk the way senders do: AES-CBC with PKCS#7 padding.
    """
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def encrypt_content(plaintext: bytes) -> List[Tuple[bytes, bytes]]:
    """
    Split plaintext at the chunk boundary and encrypt every chunk under a fresh IV.

    Returns:
        (ciphertext, iv) pairs in index order
    """
    chunks = []
    offset = 0
    for size in plaintext_chunk_sizes(len(plaintext), CHUNK_SIZE_BYTES):
        iv = os.urandom(16)
        chunks.append((encrypt_chunk(plaintext[offset:offset + size], iv), iv))
        offset += size
    return chunks


def make_record(
    content_id: str,
    session_id: str = "session-1",
    total_size: Optional[int] = None,
    total_chunks: int = 1,
    additional_metadata: Optional[str] = None,
    is_large_file: bool = True,
    created_at: Optional[int] = None,
    content_type: str = "application/octet-stream",
) -> ContentRecord:
    return ContentRecord(
        content_id=content_id,
        session_id=session_id,
        content_type=content_type,
        total_chunks=total_chunks,
        total_size=total_size,
        created_at=created_at if created_at is not None else current_time_ms(),
        encryption_iv=b"",
        additional_metadata=additional_metadata,
        is_large_file=is_large_file,
    )


def make_chunk_metadata(
    content_id: str,
    chunk_index: int,
    total_chunks: int,
    data: bytes,
    iv: bytes,
    session_id: str = "session-1",
) -> ChunkMetadata:
    return ChunkMetadata(
        content_id=content_id,
        session_id=session_id,
        chunk_index=chunk_index,
        total_chunks=total_chunks,
        size=len(data),
        iv=iv,
    )


async def upload_content(
    store: ChunkedContentStore,
    content_id: str,
    plaintext: bytes,
    session_id: str = "session-1",
    additional_metadata: Optional[str] = None,
    is_large_file: bool = True,
    order: Optional[Iterable[int]] = None,
    created_at: Optional[int] = None,
) -> List[Tuple[bytes, bytes]]:
    """
    Register metadata then deliver every encrypted chunk, optionally out of order.

    Returns:
        The (ciphertext, iv) pairs that were sent, in index order
    """
    chunks = encrypt_content(plaintext)
    result = await store.save_content(make_record(
        content_id,
        session_id=session_id,
        total_size=len(plaintext),
        total_chunks=len(chunks),
        additional_metadata=additional_metadata,
        is_large_file=is_large_file,
        created_at=created_at,
    ))
    assert result.success, result.error

    indices = list(order) if order is not None else range(len(chunks))
    for index in indices:
        data, iv = chunks[index]
        write = await store.save_chunk(
            data,
            make_chunk_metadata(content_id, index, len(chunks), data, iv, session_id=session_id)
        )
        assert write.success, write.error

    return chunks


def expected_body(chunks: List[Tuple[bytes, bytes]]) -> bytes:
    return b"".join(iv + data for data, iv in chunks)


@pytest.fixture
def test_db(monkeypatch, tmp_path) -> Path:
    """
    Create a temporary test database for each test.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setattr("contentstore.database.DATABASE_PATH", str(db_path))
    monkeypatch.setattr("contentstore.config.DATABASE_PATH", str(db_path))
    init_database()
    return db_path


@pytest.fixture
def chunks_dir(monkeypatch, tmp_path) -> Path:
    """
    Point chunk storage at a temporary directory.
    """
    path = tmp_path / "chunks"
    monkeypatch.setattr("chunkstore.chunk_storage.CHUNKS_DIR", path)
    return path


@pytest.fixture
def diagnostics() -> LoggingDiagnostics:
    return LoggingDiagnostics()


@pytest.fixture
def store(test_db, chunks_dir, diagnostics) -> ChunkedContentStore:
    return ChunkedContentStore(diagnostics=diagnostics)
