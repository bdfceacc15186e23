"""Geometry planning for image transforms.

Pure functions, no backend access. Every function takes the current image
size explicitly and returns concrete pixel sizes or crop rectangles.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

from image_transform.errors import InvalidDimensionSpec, OutOfBoundsCrop
from image_transform.logger import get_logger

_logger = get_logger("geometry")

AUTO = "AUTO"

_PACKED_RE = re.compile(r"^(?P<width>[0-9]+|AUTO)x(?P<height>[0-9]+|AUTO)")

VERTICAL_POSITIONS = ("top", "center", "bottom")
HORIZONTAL_POSITIONS = ("left", "center", "right")


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidDimensionSpec(f"Dimensions must be positive, got {self.width}x{self.height}")

    def fits_within(self, other: Dimensions) -> bool:
        return self.width <= other.width and self.height <= other.height

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class CropRect:
    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def size(self) -> Dimensions:
        return Dimensions(self.width, self.height)

    def as_box(self) -> tuple[int, int, int, int]:
        """Return (left, top, width, height)."""
        return self.x1, self.y1, self.width, self.height

    def covers(self, bounds: Dimensions) -> bool:
        return self.x1 == 0 and self.y1 == 0 and self.x2 == bounds.width and self.y2 == bounds.height


@dataclass(frozen=True)
class CropAnchor:
    vertical: str = "center"
    horizontal: str = "center"

    def __post_init__(self) -> None:
        if self.vertical not in VERTICAL_POSITIONS:
            raise InvalidDimensionSpec(f"Unknown vertical crop position: {self.vertical!r}")
        if self.horizontal not in HORIZONTAL_POSITIONS:
            raise InvalidDimensionSpec(f"Unknown horizontal crop position: {self.horizontal!r}")

    @classmethod
    def parse(cls, value: str | CropAnchor) -> CropAnchor:
        """Parse a ``"<vertical>-<horizontal>"`` string such as ``"top-left"``."""
        if isinstance(value, CropAnchor):
            return value
        vertical, sep, horizontal = str(value).strip().lower().partition("-")
        if not sep:
            raise InvalidDimensionSpec(f"Crop position must look like 'top-left', got {value!r}")
        return cls(vertical, horizontal)


def round_half_up(value: float) -> int:
    """Round half away from zero (Python's round() rounds half to even)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _parse_side(value: int | str | None, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidDimensionSpec(f"Invalid {name}: {value!r}")
    if isinstance(value, int):
        if value <= 0:
            raise InvalidDimensionSpec(f"{name} must be positive, got {value}")
        return value
    text = str(value).strip()
    if text.upper() == AUTO or not text:
        return None
    if not text.isdigit():
        raise InvalidDimensionSpec(f"Invalid {name}: {value!r}")
    parsed = int(text)
    if parsed <= 0:
        raise InvalidDimensionSpec(f"{name} must be positive, got {value!r}")
    return parsed


def normalize_dimensions(
    width: int | str | None, height: int | str | None, current: Dimensions
) -> Dimensions:
    """Resolve a width/height spec into concrete dimensions.

    ``width`` may also be a packed ``"WxH"`` string in which either side may
    be ``AUTO``. A missing side is computed from the other one using the
    aspect ratio of ``current``.

    Raises:
        InvalidDimensionSpec: if neither side can be resolved or the spec is malformed.
    """
    if isinstance(width, str):
        match = _PACKED_RE.match(width.strip())
        if match:
            width, height = match.group("width"), match.group("height")
        elif "x" in width.lower():
            raise InvalidDimensionSpec(f"Malformed size spec: {width!r}")

    w = _parse_side(width, "width")
    h = _parse_side(height, "height")

    if w is None and h is None:
        raise InvalidDimensionSpec("At least one of width or height must be given")
    if h is None:
        h = max(1, round_half_up(w * current.height / current.width))
    elif w is None:
        w = max(1, round_half_up(h * current.width / current.height))
    return Dimensions(w, h)


def plan_scale_to_fit(target: Dimensions, scale_if_smaller: bool, current: Dimensions) -> Dimensions:
    """Largest size with the current aspect ratio that fits inside ``target``."""
    if not scale_if_smaller and current.fits_within(target):
        return current

    factor = max(current.width / target.width, current.height / target.height)
    planned = Dimensions(
        max(1, round_half_up(current.width / factor)),
        max(1, round_half_up(current.height / factor)),
    )
    _logger.debug("scale_to_fit %s -> %s (target %s, factor %.4f)", current, planned, target, factor)
    return planned


def _anchored_offset(position: str, scaled: int, target: int, start: str, end: str) -> int:
    if position == start:
        return 0
    if position == end:
        return scaled - target
    return round_half_up((scaled - target) / 2)


def plan_scale_and_crop(
    target: Dimensions, scale_if_smaller: bool, anchor: CropAnchor, current: Dimensions
) -> tuple[Dimensions, CropRect]:
    """Scale to cover ``target`` completely, then crop the overflow.

    Returns the scaled size and the crop rectangle in scaled coordinates. When
    ``scale_if_smaller`` is false and the source already fits, the plan is the
    identity: the current size and a rectangle covering the whole image.
    """
    if not scale_if_smaller and current.fits_within(target):
        return current, CropRect(0, 0, current.width, current.height)

    factor = min(current.width / target.width, current.height / target.height)
    scaled = Dimensions(
        max(target.width, round_half_up(current.width / factor)),
        max(target.height, round_half_up(current.height / factor)),
    )

    if scaled.width > target.width:
        x1 = _anchored_offset(anchor.horizontal, scaled.width, target.width, "left", "right")
        y1 = 0
    elif scaled.height > target.height:
        x1 = 0
        y1 = _anchored_offset(anchor.vertical, scaled.height, target.height, "top", "bottom")
    else:
        x1 = round_half_up((scaled.width - target.width) / 2)
        y1 = round_half_up((scaled.height - target.height) / 2)

    rect = CropRect(x1, y1, x1 + target.width, y1 + target.height)
    _logger.debug("scale_and_crop %s -> %s then crop %s (anchor %s)", current, scaled, rect, anchor)
    return scaled, rect


def _whole_coordinate(value: Any) -> int:
    # 0.9 must not silently become 0
    if isinstance(value, bool):
        raise InvalidDimensionSpec(f"Crop coordinate must be a whole number, got {value!r}")
    try:
        as_int = int(value)
        whole = as_int == value
    except (TypeError, ValueError, OverflowError):
        whole = False
    if not whole:
        raise InvalidDimensionSpec(f"Crop coordinate must be a whole number, got {value!r}")
    return as_int


def plan_crop(x1: int, y1: int, x2: int, y2: int, bounds: Dimensions) -> CropRect:
    """Validate a crop rectangle against the current image bounds.

    Raises:
        InvalidDimensionSpec: if a coordinate is not a whole number, or the
            rectangle is empty or inverted.
        OutOfBoundsCrop: if the rectangle leaves the image.
    """
    x1, y1, x2, y2 = (_whole_coordinate(v) for v in (x1, y1, x2, y2))
    if x2 <= x1 or y2 <= y1:
        raise InvalidDimensionSpec(f"Crop rectangle ({x1}, {y1}, {x2}, {y2}) is empty or inverted")
    if x1 < 0 or y1 < 0 or x2 > bounds.width or y2 > bounds.height:
        _logger.error("Crop (%d, %d, %d, %d) outside image of size %s", x1, y1, x2, y2, bounds)
        raise OutOfBoundsCrop(f"Crop rectangle ({x1}, {y1}, {x2}, {y2}) is outside image bounds {bounds}")
    return CropRect(x1, y1, x2, y2)
