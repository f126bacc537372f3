"""Utility helper functions for the content store."""

import time
from typing import Optional
from urllib.parse import quote


def current_time_ms() -> int:
    """
    Get current wall-clock time in epoch milliseconds.
    """
    return time.time_ns() // 1_000_000


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Returns:
        The token, or None if the header is missing or malformed
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def content_not_found(content_id: str) -> str:
    return f"Content not found: {content_id}"


def content_disposition(file_name: str) -> str:
    """
    Build an attachment Content-Disposition header for a stored file name.

    Quotes and line breaks are dropped; names outside latin-1 get an
    RFC 5987 ``filename*`` with an ASCII fallback.
    """
    safe_name = file_name.replace('"', "").replace("\r", "").replace("\n", "")
    try:
        safe_name.encode("latin-1")
    except UnicodeEncodeError:
        fallback = safe_name.encode("ascii", "ignore").decode("ascii")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(safe_name)}"
    return f'attachment; filename="{safe_name}"'
