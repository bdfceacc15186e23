"""Exception types raised by image_transform.

Every error derives from :class:`TransformError` so callers can catch the
whole family in one place.
"""

from __future__ import annotations


class TransformError(Exception):
    """Base class for all image_transform errors."""


class UnreadableImage(TransformError):
    """The source is missing, corrupt or in a format the backend cannot decode."""


class InvalidDimensionSpec(TransformError, ValueError):
    """A size specification is malformed or under-determined."""


class OutOfBoundsCrop(TransformError, ValueError):
    """A crop rectangle does not lie within the current image bounds."""


class InvalidQuality(TransformError, ValueError):
    """A quality value outside 0-100 was supplied."""


class NoFontConfigured(TransformError):
    """A text operation was requested before font properties were set."""

    def __init__(self, message: str = "No font properties have been set. Call set_font_properties() first."):
        super().__init__(message)


class EncodeFailure(TransformError):
    """The backend failed to encode the image.

    Attributes:
        quality: The quality value of the attempt that failed, if known.
    """

    def __init__(self, message: str, quality: int | None = None):
        super().__init__(message)
        self.quality = quality

    def __str__(self) -> str:
        base = super().__str__()
        if self.quality is None:
            return base
        return f"{base} (quality={self.quality})"
