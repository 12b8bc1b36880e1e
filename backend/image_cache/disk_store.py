"""
Disk Store Implementation

File-based storage for transformed images with:
- LRU (Least Recently Used) eviction on total size
- Atomic payload writes (temp file + rename)
- Metadata persisted across restarts
"""

import json
import logging
import os
import tempfile
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from .store import CacheEntry

logger = logging.getLogger(__name__)


@dataclass
class EntryMetadata:
    """Metadata for a cached payload file."""
    key: str
    size_bytes: int
    created_at: float
    expires_at: float
    last_accessed: float


class DiskStore:
    """
    Manages a file-based key -> CacheEntry store with LRU eviction.

    Cache structure:
    cache_dir/
    ├── entries/
    │   ├── 3f0a9c...e1.bin
    │   └── ...
    └── metadata.json
    """

    def __init__(self, cache_dir: str = "./image_cache", max_size_bytes: int = 500 * 1024 * 1024):
        self.cache_dir = Path(cache_dir)
        self.entries_dir = self.cache_dir / "entries"
        self.metadata_file = self.cache_dir / "metadata.json"
        self.max_size_bytes = max_size_bytes

        self._metadata: Dict[str, EntryMetadata] = {}
        self._lock = Lock()

        self.entries_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"[DiskStore] Cache directory: {self.cache_dir}")
        self._load_metadata()

    # -------- metadata --------

    def _load_metadata(self) -> None:
        if not self.metadata_file.exists():
            self._metadata = {}
            return
        try:
            with open(self.metadata_file, "r") as f:
                data = json.load(f)
            self._metadata = {k: EntryMetadata(**v) for k, v in data.items()}
            logger.info(f"[DiskStore] Loaded {len(self._metadata)} cached entries")
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"[DiskStore] Failed to load metadata, starting empty: {e}")
            self._metadata = {}

    def _save_metadata(self) -> None:
        data = {k: asdict(v) for k, v in self._metadata.items()}
        try:
            self._atomic_write(self.metadata_file, json.dumps(data, indent=2).encode())
        except OSError as e:
            logger.error(f"[DiskStore] Failed to save metadata: {e}")

    def _entry_path(self, key: str) -> Path:
        return self.entries_dir / f"{key}.bin"

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        """Write to a temp file in the same directory, then rename over the target."""
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # -------- public API --------

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            meta = self._metadata.get(key)
            if meta is None:
                return None

            try:
                payload = self._entry_path(key).read_bytes()
            except FileNotFoundError:
                logger.warning(f"[DiskStore] Cache file missing: {key[:16]}")
                self._remove_entry(key)
                self._save_metadata()
                return None

            meta.last_accessed = time.time()
            return CacheEntry(
                key=key,
                payload=payload,
                created_at=meta.created_at,
                expires_at=meta.expires_at,
            )

    def put(self, entry: CacheEntry) -> None:
        if entry.size_bytes > self.max_size_bytes:
            logger.warning(f"[DiskStore] Entry too large ({entry.size_bytes} bytes), not cached")
            return

        with self._lock:
            self._metadata.pop(entry.key, None)
            self._ensure_space(entry.size_bytes)

            try:
                self._atomic_write(self._entry_path(entry.key), entry.payload)
            except OSError as e:
                logger.error(f"[DiskStore] Failed to write {entry.key[:16]}, not cached: {e}")
                self._save_metadata()
                return

            self._metadata[entry.key] = EntryMetadata(
                key=entry.key,
                size_bytes=entry.size_bytes,
                created_at=entry.created_at,
                expires_at=entry.expires_at,
                last_accessed=time.time(),
            )
            self._save_metadata()
            logger.debug(f"[DiskStore] Cached: {entry.key[:16]} ({entry.size_bytes} bytes)")

    def delete(self, key: str) -> bool:
        with self._lock:
            removed = self._remove_entry(key)
            if removed:
                self._save_metadata()
            return removed

    def cleanup_expired(self, now: Optional[float] = None) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        if now is None:
            now = time.time()
        with self._lock:
            expired = [k for k, meta in self._metadata.items() if now >= meta.expires_at]
            for key in expired:
                self._remove_entry(key)
            if expired:
                self._save_metadata()
                logger.info(f"[DiskStore] Cleaned up {len(expired)} expired entries")
            return len(expired)

    def clear(self) -> int:
        with self._lock:
            count = len(self._metadata)
            for key in list(self._metadata):
                self._remove_entry(key)
            self._save_metadata()
            logger.info(f"[DiskStore] Cleared all {count} entries")
            return count

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total_size = self._total_size()
            return {
                "backend": "disk",
                "cache_dir": str(self.cache_dir),
                "total_entries": len(self._metadata),
                "total_size_bytes": total_size,
                "total_size_mb": round(total_size / (1024 * 1024), 2),
                "max_size_mb": round(self.max_size_bytes / (1024 * 1024), 2),
            }

    def __len__(self) -> int:
        return len(self._metadata)

    # -------- internals (lock held) --------

    def _total_size(self) -> int:
        return sum(meta.size_bytes for meta in self._metadata.values())

    def _remove_entry(self, key: str) -> bool:
        meta = self._metadata.pop(key, None)
        if meta is None:
            return False
        try:
            self._entry_path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"[DiskStore] Failed to remove file for {key[:16]}: {e}")
        return True

    def _ensure_space(self, needed_bytes: int) -> None:
        """Evict least recently used entries until needed_bytes fits."""
        current_size = self._total_size()
        target_size = self.max_size_bytes - needed_bytes
        if current_size <= target_size:
            return

        for key, meta in sorted(self._metadata.items(), key=lambda x: x[1].last_accessed):
            if current_size <= target_size:
                break
            current_size -= meta.size_bytes
            self._remove_entry(key)
            logger.info(f"[DiskStore] LRU evicted: {key[:16]}")
