"""
Path Resolver

Maps a requested filename to an absolute file path by probing an ordered
list of directories:

1. Static configured paths, in order
2. Dynamic paths registered at runtime, in the order added
3. The default image (callback, configured path or hardcoded fallback)
"""

import logging
import os
from threading import Lock
from typing import Callable, Iterable, Optional, Tuple

from .config import DEFAULT_IMAGE_FALLBACK
from .exceptions import ImageNotFoundError

logger = logging.getLogger(__name__)


class DynamicPaths:
    """
    Runtime-mutable path list.

    Writers swap in a new tuple under a lock; readers take the current
    tuple, which is never mutated in place.
    """

    def __init__(self, paths: Iterable[str] = ()):
        self._paths: Tuple[str, ...] = tuple(paths)
        self._lock = Lock()

    def set(self, paths: Iterable[str]) -> None:
        with self._lock:
            self._paths = tuple(paths)

    def add(self, paths: Iterable[str]) -> None:
        with self._lock:
            self._paths = self._paths + tuple(paths)

    def snapshot(self) -> Tuple[str, ...]:
        return self._paths


def sanitize_filename(filename: str) -> str:
    """Drop `..` sequences and leading separators so joins stay inside a directory."""
    cleaned = filename.replace("..", "")
    return cleaned.lstrip("/\\")


class PathResolver:
    """Resolves filenames against static and dynamic source directories."""

    def __init__(
        self,
        paths: Iterable[str] = (),
        dynamic_paths: Optional[DynamicPaths] = None,
        default_image_path: Optional[str] = None,
    ):
        self._paths: Tuple[str, ...] = tuple(paths)
        self.dynamic_paths = dynamic_paths if dynamic_paths is not None else DynamicPaths()
        self._default_image_path = default_image_path
        self._default_image_factory: Optional[Callable[[], Optional[str]]] = None

    # -------- dynamic paths --------

    def set_dynamic_paths(self, paths: Iterable[str]) -> None:
        self.dynamic_paths.set(paths)

    def add_dynamic_paths(self, paths: Iterable[str]) -> None:
        self.dynamic_paths.add(paths)

    def get_dynamic_paths(self) -> Tuple[str, ...]:
        return self.dynamic_paths.snapshot()

    # -------- default image --------

    def set_default_image_path(self, factory: Callable[[], Optional[str]]) -> None:
        """Install a zero-argument function returning the default image path."""
        if not callable(factory):
            raise TypeError("default image factory must be callable")
        self._default_image_factory = factory

    def get_default_image_path(self) -> Optional[str]:
        if self._default_image_factory is not None:
            return self._default_image_factory()
        return self._default_image_path or DEFAULT_IMAGE_FALLBACK

    # -------- lookup --------

    def candidates(self) -> Tuple[str, ...]:
        return self._paths + self.dynamic_paths.snapshot()

    def resolve(self, filename: str) -> str:
        """
        Return the absolute path of the first matching file.

        Raises:
            ImageNotFoundError: no directory holds the file and there is
                no usable default image.
        """
        cleaned = sanitize_filename(filename)

        if cleaned:
            for directory in self.candidates():
                image_path = os.path.join(directory, cleaned)
                if os.path.isfile(image_path):
                    return os.path.abspath(image_path)

        default_path = self.get_default_image_path()
        if default_path and os.path.isfile(default_path):
            logger.debug(f"[PathResolver] Falling back to default image for: {filename}")
            return os.path.abspath(default_path)

        logger.info(f"[PathResolver] Not found: {filename}")
        raise ImageNotFoundError(filename)
