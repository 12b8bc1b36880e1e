"""
ResponseBuilder tests
"""

import hashlib
from io import BytesIO

import pytest
from PIL import Image

from image_cache.response_builder import ResponseBuilder, compute_etag, etag_matches


def png_bytes(color=(255, 0, 0)):
    output = BytesIO()
    Image.new("RGB", (4, 4), color).save(output, format="PNG")
    return output.getvalue()


@pytest.fixture
def builder():
    return ResponseBuilder(lifetime=10)


class TestBuild:

    def test_ok_response_headers(self, builder):
        content = png_bytes()
        response = builder.build(content)

        assert response.status_code == 200
        assert response.body == content
        assert response.headers["content-type"] == "image/png"
        assert response.headers["content-length"] == str(len(content))
        assert response.headers["cache-control"] == "max-age=600, public"
        assert response.headers["etag"] == hashlib.md5(content).hexdigest()

    def test_mime_is_sniffed_from_content(self, builder):
        output = BytesIO()
        Image.new("RGB", (4, 4)).save(output, format="JPEG")
        response = builder.build(output.getvalue())
        assert response.headers["content-type"] == "image/jpeg"

    def test_svg_mime(self, builder):
        svg = b'<?xml version="1.0"?><svg xmlns="http://www.w3.org/2000/svg"></svg>'
        assert builder.build(svg).headers["content-type"] == "image/svg+xml"

    def test_unknown_bytes_are_octet_stream(self, builder):
        assert builder.build(b"plain bytes").headers["content-type"] == "application/octet-stream"

    def test_etag_depends_only_on_content(self, builder):
        assert builder.build(png_bytes()).headers["etag"] == builder.build(png_bytes()).headers["etag"]
        assert builder.build(png_bytes()).headers["etag"] != builder.build(png_bytes((0, 0, 0))).headers["etag"]

    def test_matching_if_none_match_returns_304(self, builder):
        content = png_bytes()
        response = builder.build(content, if_none_match=compute_etag(content))

        assert response.status_code == 304
        assert response.body == b""
        assert "content-length" not in response.headers
        assert response.headers["etag"] == compute_etag(content)

    def test_stale_if_none_match_returns_200(self, builder):
        response = builder.build(png_bytes(), if_none_match="0123456789abcdef")
        assert response.status_code == 200


class TestEtagMatches:

    @pytest.mark.parametrize("header", [
        "abc",
        '"abc"',
        'W/"abc"',
        '"zzz", "abc"',
        "*",
    ])
    def test_matches(self, header):
        assert etag_matches(header, "abc")

    @pytest.mark.parametrize("header", [None, "", "abcd", '"ab"'])
    def test_does_not_match(self, header):
        assert not etag_matches(header, "abc")
