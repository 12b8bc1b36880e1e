"""
ImageEngine tests
"""

from io import BytesIO

from PIL import Image

from image_cache.engine import ImageEngine


def encode(image, fmt):
    output = BytesIO()
    image.save(output, format=fmt)
    return output.getvalue()


class TestEngine:

    def test_decode_keeps_format(self):
        image = ImageEngine().decode(encode(Image.new("RGB", (3, 3)), "PNG"))
        assert image.format == "PNG"
        assert image.size == (3, 3)

    def test_encode_keeps_source_format(self):
        data = ImageEngine().encode(Image.new("RGB", (3, 3)), source_format="JPEG")
        assert Image.open(BytesIO(data)).format == "JPEG"

    def test_encode_defaults_to_png(self):
        data = ImageEngine().encode(Image.new("RGB", (3, 3)))
        assert Image.open(BytesIO(data)).format == "PNG"

    def test_jpeg_output_drops_alpha(self):
        engine = ImageEngine(output_format="jpeg")
        data = engine.encode(Image.new("RGBA", (3, 3), (0, 0, 0, 0)), source_format="PNG")
        image = Image.open(BytesIO(data))
        assert image.format == "JPEG"
        assert image.mode == "RGB"

    def test_fingerprint_reflects_options(self):
        assert ImageEngine().fingerprint() == ImageEngine().fingerprint()
        assert ImageEngine(quality=50).fingerprint() != ImageEngine(quality=60).fingerprint()
        assert ImageEngine(output_format="jpg").fingerprint() == ImageEngine(output_format="JPEG").fingerprint()
        assert ImageEngine(save_options={"optimize": True}).fingerprint() != ImageEngine().fingerprint()

    def test_mime_type(self):
        engine = ImageEngine()
        assert engine.mime_type(encode(Image.new("RGB", (2, 2)), "GIF")) == "image/gif"
        assert engine.mime_type(b"") == "application/octet-stream"

    def test_read_only_source_format_falls_back_to_png(self):
        # Pillow decodes PSD but has no PSD encoder
        data = ImageEngine().encode(Image.new("CMYK", (3, 3)), source_format="PSD")
        image = Image.open(BytesIO(data))
        assert image.format == "PNG"
        assert image.mode == "RGB"
