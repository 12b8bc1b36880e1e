"""
Image Cache Exceptions

Error taxonomy for the resolve -> transform -> cache -> serve pipeline.

- NotFoundError: template or image could not be resolved (HTTP 404)
- SourceUnreadableError: source file vanished or could not be decoded (HTTP 500)
- TransformationFailedError: filter/callback/encoder raised (HTTP 500)
"""


class ImageCacheError(Exception):
    """Base class for all image cache errors."""


class NotFoundError(ImageCacheError):
    """Requested resource could not be resolved."""


class TemplateNotFoundError(NotFoundError):
    """Unknown template identifier or invalid template definition."""

    def __init__(self, template: str, reason: str = "unknown template"):
        self.template = template
        super().__init__(f"Template not found: {template} ({reason})")


class ImageNotFoundError(NotFoundError):
    """No candidate directory holds the file and no default image exists."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Image not found: {filename}")


class SourceUnreadableError(ImageCacheError):
    """Source image could not be read or decoded."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Source image unreadable: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class TransformationFailedError(ImageCacheError):
    """Template transformation or encoding raised."""

    def __init__(self, template: str, path: str, reason: str = ""):
        self.template = template
        self.path = path
        message = f"Transformation '{template}' failed for {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
