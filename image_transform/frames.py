"""Frame sets and per-frame operation fan-out.

A still image is a :class:`FrameSet` of length one; animated images hold
one frame per page. Operations never mutate a frame set: applying one
builds a new set, so the old and new pixel buffers never alias.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from image_transform.backend.base import FontSpec, ResizeFilter
from image_transform.geometry import CropRect, Dimensions
from image_transform.logger import get_logger

if TYPE_CHECKING:
    from image_transform.backend.base import RasterBackend

_logger = get_logger("frames")


@dataclass(frozen=True)
class FrameSet:
    frames: tuple[Any, ...]
    size: Dimensions
    animated: bool = False
    delays: tuple[int, ...] | None = None
    loop: int = 0
    bands: int = 3

    def __post_init__(self) -> None:
        if not self.frames:
            raise ValueError("FrameSet needs at least one frame")

    def __len__(self) -> int:
        return len(self.frames)

    @property
    def first(self) -> Any:
        return self.frames[0]


@dataclass(frozen=True)
class ResizeOp:
    size: Dimensions
    resize_filter: ResizeFilter = ResizeFilter.UNDEFINED

    def apply(self, backend: RasterBackend, frame: Any) -> Any:
        return backend.resize(frame, self.size, self.resize_filter)


@dataclass(frozen=True)
class CropOp:
    rect: CropRect

    def apply(self, backend: RasterBackend, frame: Any) -> Any:
        return backend.crop(frame, self.rect)


@dataclass(frozen=True)
class RotateOp:
    degrees: float

    def apply(self, backend: RasterBackend, frame: Any) -> Any:
        return backend.rotate(frame, self.degrees)


@dataclass(frozen=True)
class DrawTextOp:
    text: str
    font: FontSpec
    x: int
    y: int
    angle: float = 0

    def apply(self, backend: RasterBackend, frame: Any) -> Any:
        return backend.draw_text(frame, self.text, self.font, self.x, self.y, self.angle)


FrameOp = ResizeOp | CropOp | RotateOp | DrawTextOp


def apply_frame_op(op: FrameOp, frame_set: FrameSet, backend: RasterBackend) -> FrameSet:
    """Apply ``op`` to every frame of ``frame_set`` and return the new set.

    Still images have their single frame replaced. Animated images get a
    fresh frame tuple built in source order; all frames must come out the
    same size.
    """
    if not frame_set.animated:
        frame = op.apply(backend, frame_set.first)
        return dataclasses.replace(frame_set, frames=(frame,), size=backend.size(frame))

    frames: list[Any] = []
    for frame in frame_set.frames:
        frames.append(op.apply(backend, frame))

    size = backend.size(frames[0])
    for index, frame in enumerate(frames[1:], start=1):
        frame_size = backend.size(frame)
        if frame_size != size:
            raise RuntimeError(f"Frame {index} came out {frame_size}, expected {size}")

    _logger.debug("applied %s to %d frames -> %s", type(op).__name__, len(frames), size)
    return dataclasses.replace(frame_set, frames=tuple(frames), size=size)
