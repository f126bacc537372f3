"""Pydantic schemas for API requests and responses."""

from contentstore.schemas.common import ErrorResponse
from contentstore.schemas.files import (
    ContentMetadataResponse,
    ListContentResponse,
    OperationResponse,
    PinResponse,
    RenameContentRequest,
    SessionEndedResponse,
)

__all__ = [
    "ContentMetadataResponse",
    "ListContentResponse",
    "OperationResponse",
    "PinResponse",
    "RenameContentRequest",
    "SessionEndedResponse",
    "ErrorResponse",
]
