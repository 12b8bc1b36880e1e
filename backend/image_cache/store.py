"""
Cache Store Interface

A store maps cache keys to CacheEntry objects. Freshness is decided by the
TransformCache; stores only keep entries, evict by size/count and drop
entries whose expiry has passed when asked to clean up.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Protocol


@dataclass(frozen=True)
class CacheEntry:
    """
    A transformed image payload with its lifetime window.
    """
    key: str
    payload: bytes = field(repr=False)
    created_at: float
    expires_at: float

    def __post_init__(self) -> None:
        if self.expires_at <= self.created_at:
            raise ValueError(
                f"expires_at ({self.expires_at}) must be after created_at ({self.created_at})"
            )

    @classmethod
    def create(cls, key: str, payload: bytes, now: float, lifetime_seconds: float) -> "CacheEntry":
        return cls(key=key, payload=payload, created_at=now, expires_at=now + lifetime_seconds)

    @property
    def size_bytes(self) -> int:
        return len(self.payload)

    def is_fresh(self, now: Optional[float] = None) -> bool:
        if now is None:
            now = time.time()
        return now < self.expires_at

    def to_summary(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "size_bytes": self.size_bytes,
            "created_at": datetime.fromtimestamp(self.created_at).isoformat(),
            "expires_at": datetime.fromtimestamp(self.expires_at).isoformat(),
        }


class CacheStore(Protocol):
    """Protocol implemented by MemoryStore and DiskStore."""

    def get(self, key: str) -> Optional[CacheEntry]: ...

    def put(self, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> bool: ...

    def cleanup_expired(self, now: Optional[float] = None) -> int: ...

    def clear(self) -> int: ...

    def stats(self) -> Dict[str, Any]: ...
