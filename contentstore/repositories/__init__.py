"""Repository layer for data access."""

from contentstore.repositories.content_repository import ContentRepository
from contentstore.repositories.chunk_repository import ChunkRepository

__all__ = [
    "ContentRepository",
    "ChunkRepository",
]
