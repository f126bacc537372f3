"""API routes package."""

from contentstore.routes.content_routes import router as content_router
from contentstore.routes.download_routes import router as download_router
from contentstore.routes.internal_routes import router as internal_router

__all__ = ["content_router", "download_router", "internal_router"]
