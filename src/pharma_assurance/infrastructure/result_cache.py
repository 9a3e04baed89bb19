"""In-memory TTL cache for completed research runs."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from pharma_assurance.infrastructure.serialization import canonical_json

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MAX_ENTRIES = 1024


def cache_key(*parts: Any) -> str:
    """SHA-256 hex digest of the canonical JSON encoding of *parts*."""
    return hashlib.sha256(canonical_json(list(parts)).encode("utf-8")).hexdigest()


class ResultCache:
    """Thread-safe key/value store whose entries expire after *ttl* seconds.

    Expired entries are dropped on read and purged on every write, so the
    cache never holds more than *max_entries* values.

    Parameters
    ----------
    ttl:
        Entry lifetime in seconds.
    max_entries:
        Once the cache is full, the oldest entry is evicted.  Zero or a
        negative value removes the cap.
    clock:
        Time source; injectable for tests.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be > 0, got {ttl}")
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        """Return the live value for *key*, or ``None``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                logger.debug("ResultCache: entry %s expired", key[:12])
                return None
            return value

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            if self._max_entries > 0 and key not in self._entries:
                while len(self._entries) >= self._max_entries:
                    oldest = next(iter(self._entries))
                    del self._entries[oldest]
            self._entries[key] = (now + self._ttl, value)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("ResultCache: purged %d expired entries", len(expired))

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
