"""Pydantic schemas for content endpoints."""

from typing import List, Optional

from pydantic import BaseModel

from common.types import ContentRecord
from contentstore.metadata_document import resolve_file_name


class ContentMetadataResponse(BaseModel):
    """Response model for content metadata."""
    content_id: str
    session_id: str
    file_name: str
    content_type: str
    total_chunks: int
    total_size: Optional[int]
    created_at: int
    is_complete: bool
    is_pinned: bool
    is_large_file: bool

    @classmethod
    def from_record(cls, record: ContentRecord) -> "ContentMetadataResponse":
        return cls(
            content_id=record.content_id,
            session_id=record.session_id,
            file_name=resolve_file_name(record.content_id, record.additional_metadata),
            content_type=record.content_type,
            total_chunks=record.total_chunks,
            total_size=record.total_size,
            created_at=record.created_at,
            is_complete=record.is_complete,
            is_pinned=record.is_pinned,
            is_large_file=record.is_large_file,
        )


class ListContentResponse(BaseModel):
    """Response model for a page of session content."""
    items: List[ContentMetadataResponse]
    total_count: int
    has_more: bool


class RenameContentRequest(BaseModel):
    """Request model for renaming content."""
    file_name: str


class OperationResponse(BaseModel):
    """Response model for mutations that only report success."""
    success: bool
    content_id: str
    error: Optional[str] = None


class PinResponse(BaseModel):
    """Response model for pin and unpin."""
    content_id: str
    is_pinned: bool


class SessionEndedResponse(BaseModel):
    """Response model for session-end eviction."""
    session_id: str
    removed_count: int
    content_ids: List[str]
