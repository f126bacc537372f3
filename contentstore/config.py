"""Configuration settings for the content store server."""

import os

from common.constants import DEFAULT_DATABASE_PATH


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_PATH = os.environ.get("CONTENT_DATABASE_PATH", DEFAULT_DATABASE_PATH)

CONTENT_STORE_HOST = os.environ.get("CONTENT_STORE_HOST", "0.0.0.0")

CONTENT_STORE_PORT = int(os.environ.get("CONTENT_STORE_PORT", "3001"))

MAX_ITEMS_PER_SESSION = int(os.environ.get("MAX_ITEMS_PER_SESSION", "20"))

CLEANUP_INTERVAL_SECONDS = int(os.environ.get("CLEANUP_INTERVAL_SECONDS", "3600"))

CONTENT_MAX_AGE_DAYS = int(os.environ.get("CONTENT_MAX_AGE_DAYS", "7"))

LARGE_FILE_THRESHOLD_BYTES = int(os.environ.get("LARGE_FILE_THRESHOLD_BYTES", str(10 * 1024 * 1024)))

STRICT_CIPHER_LAYOUT = _env_bool("STRICT_CIPHER_LAYOUT", True)


def validate_config() -> None:
    """
    Reject limits that would make retention or cleanup misbehave.

    Raises:
        ValueError: If a limit is not positive
    """
    if MAX_ITEMS_PER_SESSION <= 0:
        raise ValueError("MAX_ITEMS_PER_SESSION must be greater than 0")

    if CLEANUP_INTERVAL_SECONDS <= 0:
        raise ValueError("CLEANUP_INTERVAL_SECONDS must be greater than 0")

    if CONTENT_MAX_AGE_DAYS <= 0:
        raise ValueError("CONTENT_MAX_AGE_DAYS must be greater than 0")

    if LARGE_FILE_THRESHOLD_BYTES <= 0:
        raise ValueError("LARGE_FILE_THRESHOLD_BYTES must be greater than 0")
