"""Typed non-fatal diagnostic events raised by the content store."""

import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional

from common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LengthMismatch:
    """
    A download finished with a byte count different from its Content-Length.

    The response is already committed when this is raised, so it is reported
    instead of failing the request.
    """
    content_id: str
    declared_length: int
    bytes_sent: int
    chunks_sent: int

    @property
    def difference(self) -> int:
        return self.bytes_sent - self.declared_length


@dataclass(frozen=True)
class CipherLayoutViolation:
    """
    A chunk whose ciphertext size does not match the padding model.

    expected_size is None when the index lies beyond the declared plaintext.
    """
    content_id: str
    chunk_index: int
    expected_size: Optional[int]
    actual_size: int


class DiagnosticsObserver:
    """
    Receives diagnostic events. Subclass and override ``record`` to forward
    them to a metrics backend.
    """

    def record(self, event) -> None:
        raise NotImplementedError


class LoggingDiagnostics(DiagnosticsObserver):
    """
    Logs every event at WARNING and keeps per-type counters.
    """

    def __init__(self, keep_last: int = 100):
        self._lock = threading.Lock()
        self._counts: Counter = Counter()
        self._recent: List[object] = []
        self._keep_last = keep_last

    def record(self, event) -> None:
        with self._lock:
            self._counts[type(event).__name__] += 1
            self._recent.append(event)
            if len(self._recent) > self._keep_last:
                del self._recent[0]

        if isinstance(event, LengthMismatch):
            logger.warning(
                f"Length mismatch streaming content {event.content_id}: "
                f"declared {event.declared_length} bytes, sent {event.bytes_sent} "
                f"({event.difference:+d}) over {event.chunks_sent} chunks"
            )
        elif isinstance(event, CipherLayoutViolation):
            logger.warning(
                f"Cipher layout violation in chunk {event.chunk_index} of content {event.content_id}: "
                f"expected {event.expected_size} ciphertext bytes, got {event.actual_size}"
            )
        else:
            logger.warning(f"Diagnostic event: {event!r}")

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def recent(self) -> List[object]:
        with self._lock:
            return list(self._recent)
