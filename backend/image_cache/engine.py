"""
Image Engine

Thin wrapper around Pillow that the cache uses for:
- Decoding source bytes into an Image
- Encoding transformed images back to bytes
- Sniffing the MIME type of a byte buffer
"""

import logging
from io import BytesIO
from typing import Any, Dict, Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

FALLBACK_MIME = "application/octet-stream"
SVG_MIME = "image/svg+xml"

# Formats that accept a "quality" save option
_QUALITY_FORMATS = ("JPEG", "WEBP")

_PNG_MODES = ("1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA")


class ImageEngine:
    """
    Decodes, encodes and identifies images with Pillow.

    Usage:
        engine = ImageEngine(output_format="webp", quality=80)
        image = engine.decode(data)
        data = engine.encode(image, source_format=image.format)
    """

    def __init__(
        self,
        output_format: Optional[str] = None,
        quality: int = 90,
        save_options: Optional[Dict[str, Any]] = None,
    ):
        self.output_format = output_format.upper() if output_format else None
        if self.output_format == "JPG":
            self.output_format = "JPEG"
        self.quality = quality
        self.save_options = dict(save_options or {})

    def decode(self, data: bytes) -> Image.Image:
        """Decode bytes into a fully loaded Pillow image."""
        image = Image.open(BytesIO(data))
        image.load()
        return image

    def encode(self, image: Image.Image, source_format: Optional[str] = None) -> bytes:
        """
        Encode an image.

        The configured output format wins; otherwise the source format is
        kept, falling back to PNG when the source format is unknown
        or one Pillow can read but not write.
        """
        save_format = self.output_format or source_format or image.format or "PNG"
        Image.init()
        if save_format not in Image.SAVE:
            logger.debug(f"[ImageEngine] No encoder for {save_format}, saving as PNG")
            save_format = "PNG"
            if image.mode not in _PNG_MODES:
                image = image.convert("RGBA" if image.mode.endswith("A") else "RGB")

        # JPEG has no alpha channel
        if save_format == "JPEG" and image.mode in ("RGBA", "LA", "P"):
            if image.mode == "P":
                image = image.convert("RGBA")
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[-1])
            image = background
        elif save_format == "JPEG" and image.mode not in ("RGB", "L", "CMYK"):
            image = image.convert("RGB")

        save_kwargs: Dict[str, Any] = {"format": save_format}
        if save_format in _QUALITY_FORMATS:
            save_kwargs["quality"] = self.quality
        save_kwargs.update(self.save_options)

        output = BytesIO()
        image.save(output, **save_kwargs)
        return output.getvalue()

    def fingerprint(self) -> str:
        """Stable description of encoder options, part of every cache key."""
        options = ",".join(f"{k}={self.save_options[k]!r}" for k in sorted(self.save_options))
        return f"{self.output_format or '-'}|q={self.quality}|{options}"

    @staticmethod
    def is_svg(data: bytes) -> bool:
        header = data[:500].strip()
        if header.startswith(b"<svg"):
            return True
        return header.startswith(b"<?xml") and b"<svg" in header

    def mime_type(self, data: bytes) -> str:
        """Sniff MIME type from the buffer's magic bytes, not a filename."""
        if not data:
            return FALLBACK_MIME
        if self.is_svg(data):
            return SVG_MIME
        try:
            with Image.open(BytesIO(data)) as image:
                return Image.MIME.get(image.format, FALLBACK_MIME)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.debug(f"[ImageEngine] Could not identify buffer: {e}")
            return FALLBACK_MIME
