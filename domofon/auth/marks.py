"""
Thread-safe keyed marks with a time-to-live.

Used for the "phone verified for password reset" window. State lives in
process memory only and is lost on restart.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExpiringMarks:
    """
    Lock-protected map of key -> expiry instant.

    Expired entries are swept on every ``mark`` and evicted on read, so the
    map stays bounded by the number of live marks.
    Each service instance owns its own ExpiringMarks.
    """

    def __init__(self, ttl: timedelta, clock: Optional[Callable[[], datetime]] = None):
        self.ttl = ttl
        self._clock = clock or utc_now
        self._marks: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def mark(self, key: str) -> datetime:
        """Set (or refresh) the mark for ``key`` and return its expiry."""
        now = self._clock()
        expires_at = now + self.ttl
        with self._lock:
            swept = self._sweep(now)
            self._marks[key] = expires_at
        if swept:
            logger.debug(f"Swept {swept} expired marks")
        return expires_at

    def is_marked(self, key: str) -> bool:
        """Return True if ``key`` has a live mark."""
        now = self._clock()
        with self._lock:
            expires_at = self._marks.get(key)
            if expires_at is None:
                return False
            if now >= expires_at:
                del self._marks[key]
                return False
            return True

    def take(self, key: str) -> Optional[datetime]:
        """
        Consume the mark for ``key``.

        Returns the expiry of the removed mark if it was still live, None
        otherwise. Only one of several concurrent callers gets a value.
        """
        now = self._clock()
        with self._lock:
            expires_at = self._marks.pop(key, None)
        if expires_at is None or now >= expires_at:
            return None
        return expires_at

    def restore(self, key: str, expires_at: datetime) -> None:
        """Put back a mark taken by ``take`` (e.g. when the follow-up write failed)."""
        with self._lock:
            self._marks.setdefault(key, expires_at)

    def clear(self, key: str) -> None:
        with self._lock:
            self._marks.pop(key, None)

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        with self._lock:
            purged = self._sweep(self._clock())
        if purged:
            logger.debug(f"Purged {purged} expired marks")
        return purged

    def _sweep(self, now: datetime) -> int:
        # Caller holds the lock
        expired = [k for k, exp in self._marks.items() if now >= exp]
        for key in expired:
            del self._marks[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._marks)
