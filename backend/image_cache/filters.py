"""
Image Filters

Named filter templates. A filter is a class with a no-argument constructor
and an `apply_filter(image)` method returning the filtered image.
"""

from PIL import Image, ImageOps


class ImageFilter:
    """Base class for named filter templates."""

    def apply_filter(self, image: Image.Image) -> Image.Image:
        raise NotImplementedError


class FitFilter(ImageFilter):
    """Crop and resize to exactly width x height, keeping the center."""
    width = 0
    height = 0

    def apply_filter(self, image: Image.Image) -> Image.Image:
        return ImageOps.fit(image, (self.width, self.height), Image.Resampling.LANCZOS)


class Small(FitFilter):
    width = 120
    height = 90


class Medium(FitFilter):
    width = 240
    height = 180


class Large(FitFilter):
    width = 480
    height = 360


DEFAULT_TEMPLATES = {
    "small": Small,
    "medium": Medium,
    "large": Large,
}
