"""Streaming download route for large encrypted content."""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from common.constants import DEFAULT_CONTENT_TYPE
from common.exceptions import ContentIncompleteError, ContentNotFoundError, NotALargeFileError
from common.logging_config import get_logger
from contentstore.auth import enforce_access, get_session_token, require_token
from contentstore.service_locator import get_access_policy, require_content_store
from contentstore.services.content_store import ChunkedContentStore
from contentstore.utils import content_disposition

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Download"])


@router.get("/download/{content_id}")
async def download_content(
    content_id: str,
    token: Optional[str] = Depends(get_session_token),
    store: ChunkedContentStore = Depends(require_content_store)
):
    """
    Stream a large content as stored: ``iv || ciphertext`` for every chunk.

    Parameters:
        - content_id: Content to download
        - Authorization header: Bearer <session_token>, or ?token=<session_token>

    Returns:
        - StreamingResponse with the encrypted body and an exact Content-Length

    Raises:
        - 400: Content is not a large file
        - 401: Missing session token
        - 403: Token has no access to this content
        - 404: Content not found
        - 409: Content is still being uploaded
        - 500: Server not properly configured
    """
    require_token(token)

    prepared = await store.streamer.prepare_download(content_id)
    if prepared is None:
        raise ContentNotFoundError(f"Content not found: {content_id}")

    record = prepared.record
    if not record.is_large_file:
        raise NotALargeFileError("This endpoint is only for large files")

    enforce_access(get_access_policy(), token, record)

    if not record.is_complete:
        raise ContentIncompleteError(f"Content {content_id} is not complete yet")

    logger.info(f"Streaming large file {content_id} ({prepared.declared_length} bytes on the wire)")

    return StreamingResponse(
        store.streamer.iter_download(content_id, record=record),
        media_type=record.content_type or DEFAULT_CONTENT_TYPE,
        headers={
            "Content-Disposition": content_disposition(prepared.file_name),
            "Content-Length": str(prepared.declared_length),
        }
    )
