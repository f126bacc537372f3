"""Service layer for content store logic."""

from contentstore.services.completion_tracker import CompletionTracker
from contentstore.services.content_store import ChunkedContentStore
from contentstore.services.download_streamer import DownloadStreamer
from contentstore.services.ingestion_service import IngestionService
from contentstore.services.rename_service import RenameService
from contentstore.services.retention_service import RetentionService

__all__ = [
    "ChunkedContentStore",
    "CompletionTracker",
    "DownloadStreamer",
    "IngestionService",
    "RenameService",
    "RetentionService",
]
