"""Manages physical chunk files on disk: durable write, read, existence and delete."""

import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import List

from common.constants import (
    CHUNK_FILE_SUFFIX,
    DEFAULT_CONTENT_STORE_PATH,
    IV_SIZE_BYTES,
    MAX_CONTENT_ID_LENGTH,
)
from common.exceptions import ChunkWriteError, InvalidContentIdError
from common.types import StoredChunk

STORAGE_ROOT = Path(os.environ.get("CONTENT_STORE_PATH", DEFAULT_CONTENT_STORE_PATH))
CHUNKS_DIR = STORAGE_ROOT / "chunks"

_CONTENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


def is_valid_content_id(content_id: str) -> bool:
    """
    Check that a content id is safe to use as a directory name.

    Args:
        content_id: Opaque content identifier

    Returns:
        True if the id cannot escape the chunks directory
    """
    if not isinstance(content_id, str) or not content_id:
        return False
    if len(content_id) > MAX_CONTENT_ID_LENGTH:
        return False
    if content_id in (".", ".."):
        return False
    return bool(_CONTENT_ID_PATTERN.match(content_id))


def ensure_chunks_directory() -> None:
    """Ensure chunks directory exists."""
    CHUNKS_DIR.mkdir(parents=True, exist_ok=True)


def get_content_directory(content_id: str) -> Path:
    """
    Get the directory holding every chunk of a content.

    Raises:
        InvalidContentIdError: If the id is not a safe path component
    """
    if not is_valid_content_id(content_id):
        raise InvalidContentIdError(f"Invalid content id: {content_id!r}")
    return CHUNKS_DIR / content_id


def get_chunk_path(content_id: str, chunk_index: int) -> Path:
    """
    Get file path for a chunk.

    Args:
        content_id: Content the chunk belongs to
        chunk_index: Zero-based chunk index

    Returns:
        Path object for chunk file
    """
    if chunk_index < 0:
        raise ValueError(f"Chunk index must be non-negative, got {chunk_index}")
    return get_content_directory(content_id) / f"{chunk_index}{CHUNK_FILE_SUFFIX}"


def _fsync_directory(directory: Path) -> None:
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        # Directory handles cannot be opened on every platform
        return
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def write_chunk(content_id: str, chunk_index: int, data: bytes, iv: bytes) -> Path:
    """
    Durably write one chunk as ``iv || ciphertext``.

    The bytes go to a temporary file in the content directory, are fsynced,
    and then atomically replace any previous copy of the same index.

    Args:
        content_id: Content the chunk belongs to
        chunk_index: Zero-based chunk index
        data: Ciphertext bytes
        iv: Per-chunk initialization vector (IV_SIZE_BYTES long)

    Returns:
        Path to written file

    Raises:
        InvalidContentIdError: If the content id is unsafe
        ChunkWriteError: If the IV has the wrong width or the write fails
    """
    if len(iv) != IV_SIZE_BYTES:
        raise ChunkWriteError(f"IV must be {IV_SIZE_BYTES} bytes, got {len(iv)}")

    filepath = get_chunk_path(content_id, chunk_index)
    directory = filepath.parent

    tmp_name = None
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{chunk_index}.", suffix=".tmp", dir=directory)
        with os.fdopen(fd, "wb") as f:
            f.write(iv)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, filepath)
        tmp_name = None
        _fsync_directory(directory)
    except OSError as e:
        raise ChunkWriteError(f"Failed to write chunk {chunk_index} of {content_id}: {e}") from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass

    return filepath


def read_chunk(content_id: str, chunk_index: int) -> StoredChunk:
    """
    Read a chunk back, split into IV and ciphertext.

    Raises:
        FileNotFoundError: If chunk does not exist
        OSError: If read operation fails
    """
    raw = get_chunk_path(content_id, chunk_index).read_bytes()
    if len(raw) < IV_SIZE_BYTES:
        raise OSError(f"Chunk {chunk_index} of {content_id} is truncated ({len(raw)} bytes)")
    return StoredChunk(data=raw[IV_SIZE_BYTES:], iv=raw[:IV_SIZE_BYTES])


def chunk_exists(content_id: str, chunk_index: int) -> bool:
    """
    Check if chunk file exists on disk.
    """
    return get_chunk_path(content_id, chunk_index).exists()


def get_chunk_size(content_id: str, chunk_index: int) -> int:
    """
    Size of the stored ciphertext, excluding the IV prefix.

    Raises:
        FileNotFoundError: If chunk does not exist
    """
    return get_chunk_path(content_id, chunk_index).stat().st_size - IV_SIZE_BYTES


def delete_content_chunks(content_id: str) -> bool:
    """
    Delete every chunk file of a content.

    Returns:
        True if a directory was removed, False if nothing was stored
    """
    directory = get_content_directory(content_id)
    if not directory.exists():
        return False
    shutil.rmtree(directory)
    return True


def list_content_ids() -> List[str]:
    """
    List the content ids that have a chunk directory on disk.
    """
    if not CHUNKS_DIR.exists():
        return []

    return sorted(
        entry.name for entry in CHUNKS_DIR.iterdir()
        if entry.is_dir() and is_valid_content_id(entry.name)
    )


def delete_chunk(content_id: str, chunk_index: int) -> bool:
    """
    Delete a single chunk file.

    Returns:
        True if file was deleted, False if it didn't exist
    """
    filepath = get_chunk_path(content_id, chunk_index)
    if filepath.exists():
        filepath.unlink()
        return True
    return False
