"""Run the image cache service: python -m image_cache"""

import os

import uvicorn

from .app import create_app, setup_logging

if __name__ == "__main__":
    setup_logging()
    uvicorn.run(
        create_app(),
        host=os.getenv("IMAGE_CACHE_HOST", "0.0.0.0"),
        port=int(os.getenv("IMAGE_CACHE_PORT", "8000")),
    )
