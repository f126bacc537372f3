"""Internal routes driven by the real-time session layer."""

from fastapi import APIRouter, Depends

from common.logging_config import get_logger
from contentstore.schemas.files import SessionEndedResponse
from contentstore.service_locator import require_content_store
from contentstore.services.content_store import ChunkedContentStore

logger = get_logger(__name__)

router = APIRouter(prefix="/internal", tags=["Internal"])


@router.post("/sessions/{session_id}/ended", response_model=SessionEndedResponse)
async def session_ended(
    session_id: str,
    store: ChunkedContentStore = Depends(require_content_store)
):
    """
    Signal that a session has ended; its unpinned content is evicted.
    """
    logger.info(f"Received session end for {session_id}")

    result = await store.on_session_ended(session_id)

    return SessionEndedResponse(
        session_id=session_id,
        removed_count=len(result.removed),
        content_ids=result.removed,
    )
