"""
Image cache test configuration

Fixtures build real image files with Pillow under tmp_path, plus a
controllable clock so expiry can be tested without sleeping.
"""

import sys
import threading
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Make the backend packages importable
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from image_cache.app import create_app
from image_cache.config import ImageCacheConfig
from image_cache.controller import ImageCacheController
from image_cache.filters import DEFAULT_TEMPLATES


# ============================================
# Helpers
# ============================================

class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingTransform:
    """Callback template that records how often it runs."""

    def __init__(self, delay: float = 0.0):
        self.calls = 0
        self.delay = delay
        self._lock = threading.Lock()

    def __call__(self, image):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return image.convert("L")


def make_image(path: Path, size=(200, 150), color=(255, 0, 0), fmt="PNG") -> Path:
    """Write a solid-color image and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = "RGBA" if fmt == "PNG" else "RGB"
    fill = color + (255,) if mode == "RGBA" else color
    Image.new(mode, size, fill).save(path, format=fmt)
    return path


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def image_dirs(tmp_path):
    """
    Two source directories plus an extra one that is not configured.

    images/cat.png, images/photos/dog.jpg, uploads/bird.png, extra/fish.png
    """
    images = tmp_path / "images"
    uploads = tmp_path / "uploads"
    extra = tmp_path / "extra"
    make_image(images / "cat.png")
    make_image(images / "photos" / "dog.jpg", color=(0, 128, 255), fmt="JPEG")
    make_image(uploads / "bird.png", color=(0, 255, 0))
    make_image(extra / "fish.png", color=(0, 0, 255))
    return {"images": images, "uploads": uploads, "extra": extra, "root": tmp_path}


@pytest.fixture
def config(image_dirs):
    return ImageCacheConfig(
        paths=[str(image_dirs["images"]), str(image_dirs["uploads"])],
        default_image_path=str(image_dirs["root"] / "no_default.png"),
        templates=dict(DEFAULT_TEMPLATES),
        lifetime=10,
    )


@pytest.fixture
def controller(config, clock):
    return ImageCacheController.from_config(config, clock=clock)


@pytest.fixture
def app(config, controller):
    return create_app(config=config, controller=controller)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
