"""image_transform - plan and apply image transforms, with size-matched encoding.

Usage:
    from image_transform import TransformSession

    session = TransformSession().load("photo.jpg")
    session.scale_to_fit(800, 600).save("photo-800.jpg", auto_quality=True)
"""

from image_transform.config import TransformConfig, load_config
from image_transform.errors import (
    EncodeFailure,
    InvalidDimensionSpec,
    InvalidQuality,
    NoFontConfigured,
    OutOfBoundsCrop,
    TransformError,
    UnreadableImage,
)
from image_transform.geometry import CropAnchor, CropRect, Dimensions
from image_transform.frames import FrameSet
from image_transform.backend.vips_backend import VipsBackend
from image_transform.quality import QualitySearch, SearchResult
from image_transform.session import TransformSession

__version__ = "0.1.0"

__all__ = [
    "CropAnchor",
    "CropRect",
    "Dimensions",
    "EncodeFailure",
    "FrameSet",
    "InvalidDimensionSpec",
    "InvalidQuality",
    "NoFontConfigured",
    "OutOfBoundsCrop",
    "QualitySearch",
    "SearchResult",
    "TransformConfig",
    "TransformError",
    "TransformSession",
    "UnreadableImage",
    "VipsBackend",
    "load_config",
]
