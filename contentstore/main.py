"""Entry point for the content store service."""

import sqlite3
import time
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from chunkstore.chunk_storage import ensure_chunks_directory
from common.exceptions import (
    ContentIncompleteError,
    ContentNotFoundError,
    ContentStoreException,
    InvalidContentIdError,
    NotALargeFileError,
    StorageUnavailableError,
)
from common.logging_config import setup_logging
from contentstore.cleanup_task import ExpiredContentCleaner
from contentstore.config import CONTENT_STORE_HOST, CONTENT_STORE_PORT, validate_config
from contentstore.database import init_database
from contentstore.routes.content_routes import router as content_router
from contentstore.routes.download_routes import router as download_router
from contentstore.routes.internal_routes import router as internal_router
from contentstore.service_locator import get_content_store, set_content_store
from contentstore.services.content_store import ChunkedContentStore

logger = setup_logging('contentstore')
setup_logging('chunkstore')

app = FastAPI(
    title="Chunked Content Store",
    description="Chunked end-to-end-encrypted content storage with streamed download",
    version="1.0.0"
)

cleanup_task: Optional[ExpiredContentCleaner] = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize storage and start background tasks on application startup.
    """
    global cleanup_task

    logger.info("Content store starting up...")

    validate_config()

    init_database()
    ensure_chunks_directory()
    logger.info("Database and chunk directory initialized")

    store = get_content_store()
    if store is None:
        store = ChunkedContentStore()
        set_content_store(store)

    cleanup_task = ExpiredContentCleaner(store)
    await cleanup_task.start()
    logger.info("Background cleanup task started")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup resources on application shutdown.
    """
    logger.info("Content store shutting down...")

    if cleanup_task:
        await cleanup_task.stop()
        logger.info("Cleanup task stopped")


def _error(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


@app.exception_handler(ContentNotFoundError)
async def content_not_found_handler(request: Request, exc: ContentNotFoundError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Content not found error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_404_NOT_FOUND, "Content not found", "CONTENT_NOT_FOUND")


@app.exception_handler(InvalidContentIdError)
async def invalid_content_id_handler(request: Request, exc: InvalidContentIdError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Invalid content id error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_404_NOT_FOUND, "Content not found", "CONTENT_NOT_FOUND")


@app.exception_handler(NotALargeFileError)
async def not_a_large_file_handler(request: Request, exc: NotALargeFileError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Not a large file error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_400_BAD_REQUEST, str(exc), "NOT_A_LARGE_FILE")


@app.exception_handler(ContentIncompleteError)
async def content_incomplete_handler(request: Request, exc: ContentIncompleteError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Content incomplete error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_409_CONFLICT, str(exc), "CONTENT_INCOMPLETE")


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Storage unavailable error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server not properly configured", "STORAGE_UNAVAILABLE")


@app.exception_handler(sqlite3.Error)
async def database_error_handler(request: Request, exc: sqlite3.Error):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Database error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "DATABASE_ERROR")


@app.exception_handler(OSError)
async def storage_error_handler(request: Request, exc: OSError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Storage error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "STORAGE_ERROR")


@app.exception_handler(ContentStoreException)
async def content_store_exception_handler(request: Request, exc: ContentStoreException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Content store exception: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "INTERNAL_ERROR")


app.include_router(download_router)
app.include_router(content_router)
app.include_router(internal_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for container healthchecks.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "contentstore"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "contentstore.main:app",
        host=CONTENT_STORE_HOST,
        port=CONTENT_STORE_PORT,
    )


if __name__ == "__main__":
    main()
