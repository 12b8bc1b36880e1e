"""
Image Cache Application

FastAPI app factory and logging setup.
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI

from .config import ImageCacheConfig
from .controller import ImageCacheController
from .routes_fastapi import get_controller, router


def setup_logging(level: Optional[str] = None) -> None:
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    config: Optional[ImageCacheConfig] = None,
    controller: Optional[ImageCacheController] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    A controller passed in (or built from `config`) replaces the
    environment-configured one for this app only.
    """
    config = config or ImageCacheConfig.from_env()
    if controller is None:
        controller = ImageCacheController.from_config(config)

    app = FastAPI(title="Image Cache", version="1.0.0")
    app.include_router(router, prefix=config.route_prefix)
    app.dependency_overrides[get_controller] = lambda: controller
    app.state.controller = controller
    return app
