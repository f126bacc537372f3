"""Access-scope checks for content served over HTTP."""

from enum import Enum
from typing import Optional

from fastapi import Header, HTTPException, Query, status

from common.types import ContentRecord
from contentstore.utils import parse_bearer_token


class AccessDecision(str, Enum):
    ALLOW = "allow"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


class AccessPolicy:
    """
    Decides whether the holder of a session token may read a content.

    The store never interprets tokens itself; the deployment injects a
    policy that knows how sessions map to content.
    """

    def check(self, token: Optional[str], record: ContentRecord) -> AccessDecision:
        raise NotImplementedError


class TokenRequiredPolicy(AccessPolicy):
    """
    Default policy: any caller presenting a token is allowed.
    """

    def check(self, token: Optional[str], record: ContentRecord) -> AccessDecision:
        if not token:
            return AccessDecision.UNAUTHENTICATED
        return AccessDecision.ALLOW


async def get_session_token(
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Query(None),
) -> Optional[str]:
    """
    FastAPI dependency extracting the session token.

    Args:
        authorization: Authorization header value (format: "Bearer <token>")
        token: ``?token=`` query parameter, used by plain download links

    Returns:
        The token, or None if neither source carries one
    """
    return parse_bearer_token(authorization) or token or None


def require_token(token: Optional[str]) -> str:
    """
    Raises:
        HTTPException: 401 if no token was presented
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return token


def enforce_access(policy: AccessPolicy, token: Optional[str], record: ContentRecord) -> None:
    """
    Apply an access policy to a content record.

    Raises:
        HTTPException: 401 if unauthenticated, 403 if the token lacks access
    """
    decision = policy.check(token, record)

    if decision == AccessDecision.UNAUTHENTICATED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )

    if decision == AccessDecision.FORBIDDEN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access to this content is not allowed"
        )
