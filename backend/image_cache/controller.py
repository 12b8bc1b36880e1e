"""
Image Cache Controller

Dispatches a (template, filename) request to one of three paths:

- original: source bytes unmodified
- download: source bytes with a Content-Disposition attachment header
- any other template: transformed bytes from the TransformCache
"""

import logging
from typing import Callable, Iterable, Optional, Tuple
from urllib.parse import quote

from fastapi import Response

from .config import BACKEND_DISK, ImageCacheConfig
from .disk_store import DiskStore
from .engine import ImageEngine
from .exceptions import SourceUnreadableError
from .memory_store import MemoryStore
from .path_resolver import PathResolver
from .response_builder import ResponseBuilder
from .store import CacheStore
from .templates import TEMPLATE_DOWNLOAD, TEMPLATE_ORIGINAL, TemplateRegistry
from .transform_cache import TransformCache

logger = logging.getLogger(__name__)


def content_disposition(filename: str) -> str:
    """
    Attachment header value. Names outside Latin-1 get an ASCII fallback
    plus an RFC 6266 filename* parameter.
    """
    try:
        filename.encode("latin-1")
        return f"attachment; filename={filename}"
    except UnicodeEncodeError:
        fallback = filename.encode("ascii", "replace").decode("ascii").replace("\"", "_")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def create_store(config: ImageCacheConfig) -> CacheStore:
    max_size_bytes = config.max_cache_size_mb * 1024 * 1024
    if config.backend == BACKEND_DISK:
        return DiskStore(cache_dir=config.cache_dir, max_size_bytes=max_size_bytes)
    return MemoryStore(max_entries=config.max_entries, max_size_bytes=max_size_bytes)


class ImageCacheController:
    """Resolve -> transform -> cache -> serve."""

    def __init__(
        self,
        resolver: PathResolver,
        registry: TemplateRegistry,
        cache: TransformCache,
        builder: ResponseBuilder,
    ):
        self.resolver = resolver
        self.registry = registry
        self.cache = cache
        self.builder = builder

    @classmethod
    def from_config(cls, config: ImageCacheConfig, clock: Optional[Callable[[], float]] = None) -> "ImageCacheController":
        engine = ImageEngine(
            output_format=config.output_format,
            quality=config.quality,
            save_options=config.save_options,
        )
        registry = TemplateRegistry(config.templates)
        cache_kwargs = {"clock": clock} if clock is not None else {}
        return cls(
            resolver=PathResolver(config.paths, default_image_path=config.default_image_path),
            registry=registry,
            cache=TransformCache(create_store(config), registry, engine, config.lifetime, **cache_kwargs),
            builder=ResponseBuilder(config.lifetime, engine),
        )

    # ============================================
    # Request handling
    # ============================================

    def get_response(self, template: str, filename: str, if_none_match: Optional[str] = None) -> Response:
        """
        Get HTTP response of either the original image file or the
        template applied file.
        """
        template_key = template.lower()
        if template_key == TEMPLATE_ORIGINAL:
            return self.get_original(filename, if_none_match)
        if template_key == TEMPLATE_DOWNLOAD:
            return self.get_download(filename, if_none_match)
        return self.get_image(template, filename, if_none_match)

    def get_image(self, template: str, filename: str, if_none_match: Optional[str] = None) -> Response:
        transformation = self.registry.resolve(template)
        path = self.resolver.resolve(filename)
        content = self.cache.get_or_compute(template, path, transformation)
        return self.builder.build(content, if_none_match)

    def get_original(self, filename: str, if_none_match: Optional[str] = None) -> Response:
        path = self.resolver.resolve(filename)
        try:
            with open(path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise SourceUnreadableError(path, str(e)) from e
        return self.builder.build(content, if_none_match)

    def get_download(self, filename: str, if_none_match: Optional[str] = None) -> Response:
        response = self.get_original(filename, if_none_match)
        response.headers["Content-Disposition"] = content_disposition(filename)
        return response

    # ============================================
    # Path configuration
    # ============================================

    def set_default_image_path(self, factory: Callable[[], Optional[str]]) -> None:
        self.resolver.set_default_image_path(factory)

    def set_dynamic_paths(self, paths: Iterable[str]) -> None:
        self.resolver.set_dynamic_paths(paths)

    def add_dynamic_paths(self, paths: Iterable[str]) -> None:
        self.resolver.add_dynamic_paths(paths)

    def get_dynamic_paths(self) -> Tuple[str, ...]:
        return self.resolver.get_dynamic_paths()
