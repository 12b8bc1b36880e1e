"""
Memory Store Implementation

Thread-safe in-memory storage for transformed images.

Features:
- Thread-safe operations with Lock
- LRU eviction when max entries or max total size exceeded
- Expired entry cleanup on demand
"""

import itertools
import logging
import time
from threading import Lock
from typing import Any, Dict, Optional

from .store import CacheEntry

logger = logging.getLogger(__name__)


class MemoryStore:
    """
    In-memory key -> CacheEntry store.

    Features:
    - Maximum entry limit with LRU eviction
    - Maximum total payload size with LRU eviction
    - Thread-safe with Lock
    """

    def __init__(self, max_entries: int = 1000, max_size_bytes: int = 500 * 1024 * 1024):
        """
        Initialize memory store

        Args:
            max_entries: Maximum number of entries to keep
            max_size_bytes: Maximum total payload size
        """
        self._store: Dict[str, CacheEntry] = {}
        self._last_accessed: Dict[str, int] = {}
        self._access_counter = itertools.count()  # access order
        self._lock = Lock()
        self._max_entries = max_entries
        self._max_size_bytes = max_size_bytes

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._store.get(key)
            if entry is not None:
                self._last_accessed[key] = next(self._access_counter)
            return entry

    def put(self, entry: CacheEntry) -> None:
        """
        Store an entry, replacing any previous entry under the same key.

        Entries larger than the size limit are not stored.
        """
        if entry.size_bytes > self._max_size_bytes:
            logger.warning(f"[MemoryStore] Entry too large ({entry.size_bytes} bytes), not cached")
            return

        with self._lock:
            self._store.pop(entry.key, None)
            self._evict_for(entry.size_bytes)
            self._store[entry.key] = entry
            self._last_accessed[entry.key] = next(self._access_counter)

    def delete(self, key: str) -> bool:
        with self._lock:
            self._last_accessed.pop(key, None)
            return self._store.pop(key, None) is not None

    def cleanup_expired(self, now: Optional[float] = None) -> int:
        """
        Remove expired entries

        Returns:
            Number of entries removed
        """
        if now is None:
            now = time.time()
        with self._lock:
            expired = [k for k, v in self._store.items() if not v.is_fresh(now)]
            for k in expired:
                del self._store[k]
                self._last_accessed.pop(k, None)
            if expired:
                logger.info(f"[MemoryStore] Cleaned up {len(expired)} expired entries")
            return len(expired)

    def clear(self) -> int:
        with self._lock:
            count = len(self._store)
            self._store.clear()
            self._last_accessed.clear()
            return count

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total_size = self._total_size()
            return {
                "backend": "memory",
                "total_entries": len(self._store),
                "max_entries": self._max_entries,
                "total_size_bytes": total_size,
                "total_size_mb": round(total_size / (1024 * 1024), 2),
                "max_size_mb": round(self._max_size_bytes / (1024 * 1024), 2),
            }

    def __len__(self) -> int:
        return len(self._store)

    def _total_size(self) -> int:
        return sum(e.size_bytes for e in self._store.values())

    def _evict_for(self, needed_bytes: int) -> None:
        """Evict least recently used entries (assumes lock held)."""
        current_size = self._total_size()
        while self._store and (
            len(self._store) >= self._max_entries
            or current_size + needed_bytes > self._max_size_bytes
        ):
            oldest = min(self._store, key=lambda k: self._last_accessed.get(k, 0))
            current_size -= self._store[oldest].size_bytes
            del self._store[oldest]
            self._last_accessed.pop(oldest, None)
            logger.info(f"[MemoryStore] LRU evicted: {oldest[:16]}")
