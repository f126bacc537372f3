"""Service locator for the content store and its access policy."""

from typing import Optional

from common.exceptions import StorageUnavailableError
from contentstore.auth import AccessPolicy, TokenRequiredPolicy
from contentstore.services.content_store import ChunkedContentStore

_content_store: Optional[ChunkedContentStore] = None
_access_policy: AccessPolicy = TokenRequiredPolicy()


def set_content_store(store: Optional[ChunkedContentStore]):
    """Set global content store instance"""
    global _content_store
    _content_store = store


def get_content_store() -> Optional[ChunkedContentStore]:
    """Get global content store instance"""
    return _content_store


def set_access_policy(policy: AccessPolicy):
    """Set the policy deciding who may read which content"""
    global _access_policy
    _access_policy = policy


def get_access_policy() -> AccessPolicy:
    """Get the active access policy"""
    return _access_policy


def require_content_store() -> ChunkedContentStore:
    """
    Dependency returning the configured content store.

    Raises:
        StorageUnavailableError: If the application never configured one
    """
    if _content_store is None:
        raise StorageUnavailableError("Server not properly configured")
    return _content_store
