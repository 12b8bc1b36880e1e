"""
Transform Cache

Returns transformed image bytes for a (template, source path) pair,
recomputing only when no fresh entry exists.

Features:
- Deterministic cache keys from template id, resolved path, the
  transformation's defining bytes and the encoder options
- Time-based expiry (lifetime in minutes)
- Single-flight: concurrent misses on one key compute once
- Pluggable store (MemoryStore / DiskStore)
"""

import hashlib
import logging
import time
from contextlib import contextmanager
from threading import Lock
from typing import Any, Callable, Dict, Iterator, List, Optional

from .engine import ImageEngine
from .exceptions import SourceUnreadableError, TransformationFailedError
from .store import CacheEntry, CacheStore
from .templates import TemplateRegistry, Transformation

logger = logging.getLogger(__name__)


def derive_key(
    template_id: str,
    resolved_path: str,
    transformation: Transformation,
    engine_fingerprint: str = "",
) -> str:
    """sha256 over every input that determines the output bytes."""
    digest = hashlib.sha256()
    for part in (
        template_id.lower().encode(),
        resolved_path.encode(),
        transformation.fingerprint(),
        engine_fingerprint.encode(),
    ):
        # length-prefix each part so boundaries can't shift between parts
        digest.update(len(part).to_bytes(8, "big"))
        digest.update(part)
    return digest.hexdigest()


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = Lock()
        self.users = 0


class TransformCache:
    """
    Template-keyed cache of transformed images.

    Usage:
        cache = TransformCache(MemoryStore(), registry, ImageEngine(), lifetime=60)
        data = cache.get_or_compute("small", "/srv/images/cat.png")
    """

    def __init__(
        self,
        store: CacheStore,
        registry: TemplateRegistry,
        engine: Optional[ImageEngine] = None,
        lifetime: int = 43200,
        clock: Callable[[], float] = time.time,
    ):
        if lifetime <= 0:
            raise ValueError(f"lifetime must be positive, got {lifetime}")
        self.store = store
        self.registry = registry
        self.engine = engine or ImageEngine()
        self.lifetime = lifetime  # minutes
        self._clock = clock

        self._key_locks: Dict[str, _KeyLock] = {}
        self._key_locks_guard = Lock()

        self._stats_lock = Lock()
        self._hits = 0
        self._misses = 0
        self._computations = 0

    @property
    def lifetime_seconds(self) -> int:
        return self.lifetime * 60

    def key_for(self, template_id: str, resolved_path: str, transformation: Optional[Transformation] = None) -> str:
        if transformation is None:
            transformation = self.registry.resolve(template_id)
        return derive_key(template_id, resolved_path, transformation, self.engine.fingerprint())

    # ============================================
    # Lookup
    # ============================================

    def get_or_compute(
        self,
        template_id: str,
        resolved_path: str,
        transformation: Optional[Transformation] = None,
    ) -> bytes:
        """
        Return cached bytes for (template, path), computing them on a miss.

        Raises:
            TemplateNotFoundError: template_id is not registered.
            SourceUnreadableError: source missing or not decodable.
            TransformationFailedError: transformation or encoding raised.
        """
        if transformation is None:
            transformation = self.registry.resolve(template_id)
        key = derive_key(template_id, resolved_path, transformation, self.engine.fingerprint())

        payload = self._get_fresh(key)
        if payload is not None:
            self._count_hit()
            logger.debug(f"[TransformCache] Cache hit: {template_id} {resolved_path}")
            return payload

        with self._single_flight(key):
            # another caller may have filled the entry while we waited
            payload = self._get_fresh(key, drop_stale=True)
            if payload is not None:
                self._count_hit()
                return payload

            self._count_miss()
            payload = self._compute(template_id, resolved_path, transformation)
            entry = CacheEntry.create(key, payload, self._clock(), self.lifetime_seconds)
            self.store.put(entry)
            logger.info(
                f"[TransformCache] Computed {template_id} for {resolved_path} ({len(payload)} bytes)"
            )
            return payload

    def _get_fresh(self, key: str, drop_stale: bool = False) -> Optional[bytes]:
        """
        Payload of a fresh entry, or None. Stale entries are only dropped
        while the key lock is held, so a concurrent put is never deleted.
        """
        entry = self.store.get(key)
        if entry is None:
            return None
        if entry.is_fresh(self._clock()):
            return entry.payload
        logger.debug(f"[TransformCache] Cache expired: {key[:16]}")
        if drop_stale:
            self.store.delete(key)
        return None

    def _compute(self, template_id: str, resolved_path: str, transformation: Transformation) -> bytes:
        try:
            with open(resolved_path, "rb") as f:
                source = f.read()
        except OSError as e:
            raise SourceUnreadableError(resolved_path, str(e)) from e

        try:
            image = self.engine.decode(source)
        except Exception as e:
            raise SourceUnreadableError(resolved_path, f"cannot decode: {e}") from e

        source_format = image.format
        with self._stats_lock:
            self._computations += 1

        try:
            result = transformation.apply(image)
            return self.engine.encode(result, source_format=source_format)
        except Exception as e:
            logger.error(f"[TransformCache] Transformation {template_id} failed for {resolved_path}: {e}")
            raise TransformationFailedError(template_id, resolved_path, str(e)) from e

    @contextmanager
    def _single_flight(self, key: str) -> Iterator[None]:
        """Serialize work per key; the lock is dropped once nobody holds it."""
        with self._key_locks_guard:
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = self._key_locks[key] = _KeyLock()
            key_lock.users += 1
        try:
            with key_lock.lock:
                yield
        finally:
            with self._key_locks_guard:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self._key_locks[key]

    # ============================================
    # Maintenance
    # ============================================

    def invalidate(self, template_id: str, resolved_path: str) -> bool:
        """Drop the entry for (template, path), if any."""
        return self.store.delete(self.key_for(template_id, resolved_path))

    def invalidate_path(self, resolved_path: str, template_ids: Optional[List[str]] = None) -> int:
        """Drop entries for one source path across templates."""
        removed = 0
        for template_id in template_ids or self.registry.names():
            if self.invalidate(template_id, resolved_path):
                removed += 1
        return removed

    def cleanup_expired(self) -> int:
        return self.store.cleanup_expired(self._clock())

    def clear(self) -> int:
        return self.store.clear()

    def stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            counters = {
                "hits": self._hits,
                "misses": self._misses,
                "computations": self._computations,
            }
        return {
            **counters,
            "lifetime_minutes": self.lifetime,
            "in_flight": len(self._key_locks),
            "store": self.store.stats(),
        }

    def _count_hit(self) -> None:
        with self._stats_lock:
            self._hits += 1

    def _count_miss(self) -> None:
        with self._stats_lock:
            self._misses += 1
