"""Raster backend contract.

The transform core never touches pixels directly. It goes through a
:class:`RasterBackend`, which owns decoding, pixel operations and encoding.
Frames are opaque backend objects and must behave as values: every
operation returns a new frame and leaves its input untouched.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import numpy as np

    from image_transform.frames import FrameSet
    from image_transform.geometry import CropRect, Dimensions


class ResizeFilter(enum.Enum):
    UNDEFINED = "undefined"
    LANCZOS = "lanczos"


@dataclass(frozen=True)
class FontSpec:
    """Font used for text drawing.

    ``color`` is an ``(r, g, b)`` tuple; use :func:`parse_hex_color` for
    ``"#rrggbb"`` strings. ``family`` must name a family in ``font_file``,
    otherwise the text renderer falls back to a default face.
    """

    font_file: str
    size: int
    color: tuple[int, int, int] = (0, 0, 0)
    family: str = "sans"


def parse_hex_color(value: str) -> tuple[int, int, int]:
    text = value.strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Invalid hex color: {value!r}")
    try:
        return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)
    except ValueError:
        raise ValueError(f"Invalid hex color: {value!r}") from None


class RasterBackend(ABC):
    """Decode/encode and pixel primitives used by the transform core."""

    #: True if the backend can resample with a Lanczos kernel.
    supports_lanczos: bool = False

    #: Factor applied to source frame delays when writing animated output.
    DELAY_SCALE: int = 1

    @abstractmethod
    def open(self, path: str) -> FrameSet:
        """Decode every frame of ``path``. Raises UnreadableImage."""

    @abstractmethod
    def frame_count(self, image: Any) -> int: ...

    @abstractmethod
    def size(self, frame: Any) -> Dimensions: ...

    @abstractmethod
    def bands(self, frame: Any) -> int: ...

    @abstractmethod
    def has_alpha(self, frame: Any) -> bool: ...

    @abstractmethod
    def resize(self, frame: Any, size: Dimensions, resize_filter: ResizeFilter) -> Any: ...

    @abstractmethod
    def crop(self, frame: Any, rect: CropRect) -> Any: ...

    @abstractmethod
    def rotate(self, frame: Any, degrees: float) -> Any: ...

    @abstractmethod
    def encode(self, frame_set: FrameSet, extension: str, options: dict[str, Any]) -> bytes:
        """Encode ``frame_set`` for ``extension`` using ``options``. Raises EncodeFailure."""

    @abstractmethod
    def read_exif(self, path: str) -> dict[str, Any]: ...

    @abstractmethod
    def text_box(self, text: str, font: FontSpec, angle: float = 0) -> Dimensions: ...

    @abstractmethod
    def draw_text(self, frame: Any, text: str, font: FontSpec, x: int, y: int, angle: float = 0) -> Any: ...

    @abstractmethod
    def to_array(self, frame: Any) -> np.ndarray: ...

    def release(self, frame_set: FrameSet) -> None:
        """Drop any backend resources held by ``frame_set``. Default: nothing to do."""


def select_resize_filter(backend: RasterBackend) -> ResizeFilter:
    return ResizeFilter.LANCZOS if backend.supports_lanczos else ResizeFilter.UNDEFINED
