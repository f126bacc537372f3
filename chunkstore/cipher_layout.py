"""
Size model for chunked AES-CBC ciphertext.

Senders split plaintext at CHUNK_SIZE_BYTES boundaries and encrypt each
chunk independently with AES-CBC and PKCS#7 padding under its own 16-byte
IV. PKCS#7 always appends between 1 and 16 padding bytes, so a chunk of n
plaintext bytes becomes ``(n // 16 + 1) * 16`` ciphertext bytes. Ingestion
validation and the download Content-Length are both derived from this
module so they cannot drift apart.
"""

from typing import Iterable, List, Optional, Tuple

from common.constants import CHUNK_SIZE_BYTES, CIPHER_BLOCK_SIZE_BYTES, IV_SIZE_BYTES


def ciphertext_size(plaintext_size: int) -> int:
    """
    Ciphertext length of one independently padded chunk.

    Args:
        plaintext_size: Plaintext bytes in the chunk

    Returns:
        Padded ciphertext length in bytes
    """
    if plaintext_size < 0:
        raise ValueError(f"Plaintext size must be non-negative, got {plaintext_size}")
    return (plaintext_size // CIPHER_BLOCK_SIZE_BYTES + 1) * CIPHER_BLOCK_SIZE_BYTES


def expected_chunk_count(total_size: int, chunk_size: int = CHUNK_SIZE_BYTES) -> int:
    """Number of chunks a sender produces for total_size plaintext bytes (at least one)."""
    if total_size <= 0:
        return 1
    return -(-total_size // chunk_size)


def plaintext_chunk_sizes(total_size: int, chunk_size: int = CHUNK_SIZE_BYTES) -> List[int]:
    """
    Plaintext size of every chunk, in index order.

    Empty content is sent as a single empty chunk.
    """
    if total_size <= 0:
        return [0]

    full_chunks, last_chunk_size = divmod(total_size, chunk_size)
    sizes = [chunk_size] * full_chunks
    if last_chunk_size > 0:
        sizes.append(last_chunk_size)
    return sizes


def expected_chunk_ciphertext_size(
    total_size: int,
    chunk_index: int,
    chunk_size: int = CHUNK_SIZE_BYTES
) -> Optional[int]:
    """
    Ciphertext length the chunk at chunk_index must have.

    Returns:
        Expected length, or None if the index lies beyond the plaintext
    """
    sizes = plaintext_chunk_sizes(total_size, chunk_size)
    if chunk_index < 0 or chunk_index >= len(sizes):
        return None
    return ciphertext_size(sizes[chunk_index])


def layout_violations(
    total_size: int,
    chunk_sizes: Iterable[Tuple[int, int]],
    chunk_size: int = CHUNK_SIZE_BYTES
) -> List[Tuple[int, Optional[int], int]]:
    """
    Stored chunks whose ciphertext length disagrees with total_size.

    Args:
        total_size: Declared plaintext byte count
        chunk_sizes: (chunk_index, ciphertext_size) pairs

    Returns:
        (chunk_index, expected_size, actual_size) for every offending chunk;
        expected_size is None for an index beyond the plaintext
    """
    violations = []
    for chunk_index, actual in chunk_sizes:
        expected = expected_chunk_ciphertext_size(total_size, chunk_index, chunk_size)
        if expected != actual:
            violations.append((chunk_index, expected, actual))
    return violations


def total_ciphertext_size(total_size: int, chunk_size: int = CHUNK_SIZE_BYTES) -> int:
    """Sum of the padded ciphertext of every chunk."""
    full_chunks, last_chunk_size = divmod(max(total_size, 0), chunk_size)
    full_chunk_cipher = full_chunks * ciphertext_size(chunk_size)

    if last_chunk_size > 0:
        last_chunk_cipher = ciphertext_size(last_chunk_size)
    elif full_chunks == 0:
        last_chunk_cipher = ciphertext_size(0)
    else:
        last_chunk_cipher = 0

    return full_chunk_cipher + last_chunk_cipher


def declared_length(total_size: int, total_chunks: int, chunk_size: int = CHUNK_SIZE_BYTES) -> int:
    """
    Exact byte count of a download body: ``iv || ciphertext`` for every chunk.

    Args:
        total_size: Plaintext byte count of the whole content
        total_chunks: Number of chunks (one IV each)
        chunk_size: Plaintext chunk boundary

    Returns:
        Value to announce as Content-Length
    """
    return total_ciphertext_size(total_size, chunk_size) + total_chunks * IV_SIZE_BYTES
