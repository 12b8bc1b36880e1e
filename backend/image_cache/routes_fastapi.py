"""
Image Cache API Routes

Provides endpoints for:
- Serving original, downloadable or template-transformed images
- Cache statistics
- Cache management (cleanup, clear)
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import ImageCacheConfig
from .controller import ImageCacheController
from .exceptions import NotFoundError, SourceUnreadableError, TransformationFailedError

logger = logging.getLogger(__name__)

# ============================================
# Controller
# ============================================

_controller: Optional[ImageCacheController] = None


def get_controller() -> ImageCacheController:
    """Process-wide controller built from environment configuration."""
    global _controller
    if _controller is None:
        _controller = ImageCacheController.from_config(ImageCacheConfig.from_env())
    return _controller


# ============================================
# Response Models
# ============================================


class CacheStatsResponse(BaseModel):
    """Response model for stats endpoint."""
    success: bool
    hits: int
    misses: int
    computations: int
    lifetime_minutes: int
    in_flight: int
    store: Dict[str, Any]


class CleanupResponse(BaseModel):
    """Response model for cleanup/clear endpoints."""
    success: bool
    removed_entries: int


# ============================================
# Router
# ============================================

router = APIRouter(tags=["Image Cache"])


# Management endpoints are single-segment paths, so they never collide
# with /{template}/{filename}.

@router.get("/stats", response_model=CacheStatsResponse)
async def get_cache_stats(controller: ImageCacheController = Depends(get_controller)):
    """Get cache hit/miss counters and store usage."""
    stats = await run_in_threadpool(controller.cache.stats)
    return CacheStatsResponse(success=True, **stats)


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_cache(controller: ImageCacheController = Depends(get_controller)):
    """Remove expired cache entries."""
    removed = await run_in_threadpool(controller.cache.cleanup_expired)
    return CleanupResponse(success=True, removed_entries=removed)


@router.delete("/clear", response_model=CleanupResponse)
async def clear_cache(controller: ImageCacheController = Depends(get_controller)):
    """
    Clear all cached images.

    Use with caution - every template result is recomputed afterwards.
    """
    removed = await run_in_threadpool(controller.cache.clear)
    logger.info(f"[ImageCache] Cleared {removed} entries")
    return CleanupResponse(success=True, removed_entries=removed)


@router.get("/health")
async def health_check(controller: ImageCacheController = Depends(get_controller)):
    """Health check endpoint."""
    return JSONResponse(content={
        "status": "healthy",
        "service": "image-cache",
        "templates": controller.registry.names(),
    })


@router.get("/{template}/{filename:path}")
async def get_image(
    template: str,
    filename: str,
    if_none_match: Optional[str] = Header(None),
    controller: ImageCacheController = Depends(get_controller),
) -> Response:
    """
    Serve an image.

    template:
        original  - source bytes unmodified
        download  - source bytes as an attachment
        <name>    - source transformed by the named template, cached

    Example:
        GET /imagecache/small/cats/cat.png
    """
    try:
        return await run_in_threadpool(controller.get_response, template, filename, if_none_match)
    except NotFoundError as e:
        logger.warning(f"[ImageCache] {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except (SourceUnreadableError, TransformationFailedError) as e:
        logger.error(f"[ImageCache] {e}")
        raise HTTPException(status_code=500, detail=str(e))
