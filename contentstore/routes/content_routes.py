"""Content metadata, rename, pinning and deletion routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from common.exceptions import ContentNotFoundError
from common.types import ContentRecord
from contentstore.auth import AccessDecision, enforce_access, get_session_token, require_token
from contentstore.schemas.files import (
    ContentMetadataResponse,
    ListContentResponse,
    OperationResponse,
    PinResponse,
    RenameContentRequest,
)
from contentstore.service_locator import get_access_policy, require_content_store
from contentstore.services.content_store import ChunkedContentStore

router = APIRouter(prefix="/api", tags=["Content"])


async def _load_authorized(store: ChunkedContentStore, content_id: str, token: Optional[str]) -> ContentRecord:
    require_token(token)

    record = await store.get_content_metadata(content_id)
    if record is None:
        raise ContentNotFoundError(f"Content not found: {content_id}")

    enforce_access(get_access_policy(), token, record)
    return record


@router.get("/content/{content_id}", response_model=ContentMetadataResponse)
async def get_content(
    content_id: str,
    token: Optional[str] = Depends(get_session_token),
    store: ChunkedContentStore = Depends(require_content_store)
):
    """
    Get metadata of a single content.

    Raises:
        - 401: Missing session token
        - 403: Token has no access to this content
        - 404: Content not found
    """
    record = await _load_authorized(store, content_id, token)
    return ContentMetadataResponse.from_record(record)


@router.patch("/content/{content_id}/name", response_model=OperationResponse)
async def rename_content(
    content_id: str,
    request: RenameContentRequest,
    token: Optional[str] = Depends(get_session_token),
    store: ChunkedContentStore = Depends(require_content_store)
):
    """
    Rename a content. Corrupt stored metadata is replaced in the process.

    Parameters:
        - file_name: New file name (may be empty)
    """
    await _load_authorized(store, content_id, token)

    result = await store.rename_content(content_id, request.file_name)
    if not result.success:
        raise ContentNotFoundError(result.error)

    return OperationResponse(success=True, content_id=content_id)


@router.post("/content/{content_id}/pin", response_model=PinResponse)
async def pin_content(
    content_id: str,
    token: Optional[str] = Depends(get_session_token),
    store: ChunkedContentStore = Depends(require_content_store)
):
    """
    Pin a content so it survives the end of its session.
    """
    await _load_authorized(store, content_id, token)

    if not await store.pin_content(content_id):
        raise ContentNotFoundError(f"Content not found: {content_id}")

    return PinResponse(content_id=content_id, is_pinned=True)


@router.delete("/content/{content_id}/pin", response_model=PinResponse)
async def unpin_content(
    content_id: str,
    token: Optional[str] = Depends(get_session_token),
    store: ChunkedContentStore = Depends(require_content_store)
):
    await _load_authorized(store, content_id, token)

    if not await store.unpin_content(content_id):
        raise ContentNotFoundError(f"Content not found: {content_id}")

    return PinResponse(content_id=content_id, is_pinned=False)


@router.delete("/content/{content_id}", response_model=OperationResponse)
async def delete_content(
    content_id: str,
    token: Optional[str] = Depends(get_session_token),
    store: ChunkedContentStore = Depends(require_content_store)
):
    """
    Delete a content and its chunks, pinned or not.
    """
    await _load_authorized(store, content_id, token)

    result = await store.remove_content(content_id)
    if not result.success:
        raise ContentNotFoundError(result.error)

    return OperationResponse(success=True, content_id=content_id)


@router.get("/sessions/{session_id}/content", response_model=ListContentResponse)
async def list_session_content(
    session_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    token: Optional[str] = Depends(get_session_token),
    store: ChunkedContentStore = Depends(require_content_store)
):
    """
    List a session's content, pinned items first, then newest first.

    Items the access policy does not allow are left out of the page.
    """
    require_token(token)

    page = await store.list_content(session_id, limit=limit, offset=offset)
    policy = get_access_policy()

    return ListContentResponse(
        items=[
            ContentMetadataResponse.from_record(record)
            for record in page.items
            if policy.check(token, record) == AccessDecision.ALLOW
        ],
        total_count=page.total_count,
        has_more=page.has_more,
    )
