"""
Response Builder

Turns image bytes into an HTTP response:
- Content-Type sniffed from the bytes
- Etag = md5 of the bytes
- 304 Not Modified when If-None-Match matches
- Cache-Control max-age derived from the cache lifetime
"""

import hashlib
from typing import Optional

from fastapi import Response, status

from .engine import ImageEngine


def compute_etag(content: bytes) -> str:
    return hashlib.md5(content).hexdigest()


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    """Match a bare, quoted, weak or comma-separated If-None-Match value."""
    if not if_none_match:
        return False
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate.strip('"') == etag or candidate == "*":
            return True
    return False


class ResponseBuilder:
    """Builds cache-aware image responses."""

    def __init__(self, lifetime: int, engine: Optional[ImageEngine] = None):
        self.lifetime = lifetime  # minutes
        self.engine = engine or ImageEngine()

    @property
    def cache_control(self) -> str:
        return f"max-age={self.lifetime * 60}, public"

    def build(self, content: bytes, if_none_match: Optional[str] = None) -> Response:
        mime = self.engine.mime_type(content)
        etag = compute_etag(content)
        headers = {
            "Cache-Control": self.cache_control,
            "Etag": etag,
        }

        if etag_matches(if_none_match, etag):
            response = Response(
                content=b"",
                status_code=status.HTTP_304_NOT_MODIFIED,
                media_type=mime,
                headers=headers,
            )
            # 304 carries no body and no Content-Length
            if "content-length" in response.headers:
                del response.headers["content-length"]
            return response

        headers["Content-Length"] = str(len(content))
        return Response(
            content=content,
            status_code=status.HTTP_200_OK,
            media_type=mime,
            headers=headers,
        )
