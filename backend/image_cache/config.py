"""
Image Cache Configuration

All settings are read from environment variables with string defaults,
then held in an ImageCacheConfig dataclass that is passed explicitly to
the components that need it.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# ============================================
# Defaults
# ============================================

DEFAULT_ROUTE = "imagecache"
DEFAULT_PATHS = ["public/upload", "public/images"]
DEFAULT_LIFETIME_MINUTES = 43200  # 30 days
DEFAULT_IMAGE_FALLBACK = os.path.join("public", "default_image.png")

BACKEND_MEMORY = "memory"
BACKEND_DISK = "disk"


def _split_paths(value: str) -> List[str]:
    return [p for p in value.split(os.pathsep) if p.strip()]


def _parse_templates(value: str) -> Dict[str, str]:
    """Parse `name=module.Class,other=module:Class` into a mapping."""
    templates: Dict[str, str] = {}
    for item in value.split(","):
        item = item.strip()
        if not item or "=" not in item:
            continue
        name, target = item.split("=", 1)
        templates[name.strip()] = target.strip()
    return templates


@dataclass
class ImageCacheConfig:
    """Settings consumed by the image cache service."""
    # Routing
    route: str = DEFAULT_ROUTE

    # Source lookup
    paths: List[str] = field(default_factory=lambda: list(DEFAULT_PATHS))
    default_image_path: Optional[str] = None

    # Templates: name -> callable | ImageFilter subclass | dotted class path
    templates: Dict[str, Any] = field(default_factory=dict)

    # Cache
    lifetime: int = DEFAULT_LIFETIME_MINUTES  # minutes
    backend: str = BACKEND_MEMORY
    cache_dir: str = "./image_cache"
    max_cache_size_mb: int = 500
    max_entries: int = 1000

    # Encoder options, handed to Pillow unchanged
    output_format: Optional[str] = None
    quality: int = 90
    save_options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.lifetime <= 0:
            raise ValueError(f"lifetime must be positive, got {self.lifetime}")
        if self.backend not in (BACKEND_MEMORY, BACKEND_DISK):
            raise ValueError(f"Unknown cache backend: {self.backend}")

    @property
    def route_prefix(self) -> str:
        return "/" + self.route.strip("/")

    @property
    def max_age_seconds(self) -> int:
        return self.lifetime * 60

    @classmethod
    def from_env(cls) -> "ImageCacheConfig":
        """Build configuration from IMAGE_* environment variables."""
        from .filters import DEFAULT_TEMPLATES

        templates: Dict[str, Any] = dict(DEFAULT_TEMPLATES)
        templates.update(_parse_templates(os.getenv("IMAGE_CACHE_TEMPLATES", "")))

        return cls(
            route=os.getenv("IMAGE_CACHE_ROUTE", DEFAULT_ROUTE),
            paths=_split_paths(os.getenv("IMAGE_CACHE_PATHS", os.pathsep.join(DEFAULT_PATHS))),
            default_image_path=os.getenv("IMAGE_DEFAULT_PATH") or None,
            templates=templates,
            lifetime=int(os.getenv("IMAGE_CACHE_LIFETIME", str(DEFAULT_LIFETIME_MINUTES))),
            backend=os.getenv("IMAGE_CACHE_BACKEND", BACKEND_MEMORY).lower(),
            cache_dir=os.getenv("IMAGE_CACHE_DIR", "./image_cache"),
            max_cache_size_mb=int(os.getenv("IMAGE_CACHE_MAX_SIZE_MB", "500")),
            max_entries=int(os.getenv("IMAGE_CACHE_MAX_ENTRIES", "1000")),
            output_format=os.getenv("IMAGE_OUTPUT_FORMAT") or None,
            quality=int(os.getenv("IMAGE_QUALITY", "90")),
        )
