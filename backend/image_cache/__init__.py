"""
Image Cache Module

Serves images from configured directories, optionally transformed by a
named template, with transformed results cached and served with
ETag / Cache-Control headers.

Features:
- Directory search with runtime-registered paths and a default image
- Filter-class and callback templates
- Memory or file-based cache with expiry, LRU eviction and single-flight
- 304 Not Modified handling
"""

from .config import ImageCacheConfig
from .controller import ImageCacheController
from .engine import ImageEngine
from .exceptions import (
    ImageCacheError,
    ImageNotFoundError,
    NotFoundError,
    SourceUnreadableError,
    TemplateNotFoundError,
    TransformationFailedError,
)
from .filters import ImageFilter
from .path_resolver import PathResolver
from .response_builder import ResponseBuilder
from .routes_fastapi import router
from .templates import CallbackTransform, NamedFilter, TemplateRegistry
from .transform_cache import TransformCache

__all__ = [
    "router",
    "ImageCacheConfig",
    "ImageCacheController",
    "ImageEngine",
    "ImageFilter",
    "PathResolver",
    "ResponseBuilder",
    "TemplateRegistry",
    "NamedFilter",
    "CallbackTransform",
    "TransformCache",
    "ImageCacheError",
    "NotFoundError",
    "TemplateNotFoundError",
    "ImageNotFoundError",
    "SourceUnreadableError",
    "TransformationFailedError",
]
