"""
Process-local circuit breaker for the direct (synchronous) send path.

Suppresses duplicate-content sends within a short window. Not a correctness guarantee: each
process keeps its own map, and the queue path never consults it. Match and message
notifications created by the domain handlers are deduplicated by the idempotency lock.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from hooked.core.constants import (
    BREAKER_MAX_ENTRIES,
    BREAKER_WINDOW_SECONDS,
    JOB_TYPE_MATCH,
    JOB_TYPE_MESSAGE,
)

logger = logging.getLogger(__name__)


@dataclass
class BreakerEntry:
    timestamp: float
    content: str | None = None


class NotificationCircuitBreaker:
    """
    Keyed by (subject, type[, source id for messages]).

    Within the window: match is always suppressed; message only when the content is identical.
    Every attempt is recorded, so the window slides on the most recent attempt.
    """

    def __init__(
        self,
        window_seconds: float = BREAKER_WINDOW_SECONDS,
        max_entries: int = BREAKER_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[tuple[str, str, str | None], BreakerEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def _key(subject: str, type_: str, source_id: str | None) -> tuple[str, str, str | None]:
        if type_ == JOB_TYPE_MESSAGE and source_id:
            return (subject, type_, source_id)
        return (subject, type_, None)

    def should_skip(
        self,
        subject: str,
        type_: str,
        source_id: str | None = None,
        content: str | None = None,
    ) -> bool:
        key = self._key(subject, type_, source_id)
        with self._lock:
            now = self._clock()
            last = self._entries.get(key)
            skip = False
            if last is not None and now - last.timestamp < self._window:
                if type_ == JOB_TYPE_MESSAGE and content and last.content:
                    skip = content == last.content
                elif type_ == JOB_TYPE_MATCH:
                    skip = True
            self._entries[key] = BreakerEntry(
                timestamp=now,
                content=content if type_ == JOB_TYPE_MESSAGE else None,
            )
            if len(self._entries) > self._max_entries:
                self._evict(now)
        if skip:
            logger.info("Circuit breaker: skipping %s notification for %s from %s", type_, subject[:8], source_id or "unknown")
        return skip

    def _evict(self, now: float) -> None:
        cutoff = now - self._window * 2
        stale = [k for k, entry in self._entries.items() if entry.timestamp < cutoff]
        for k in stale:
            del self._entries[k]
