"""Pytest configuration.

Provides an in-memory raster backend so geometry, frame fan-out, quality
search and session tests run without libvips. Frames are plain value
objects that remember the operations applied to them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pytest

from image_transform.backend.base import FontSpec, RasterBackend, ResizeFilter
from image_transform.errors import EncodeFailure, UnreadableImage
from image_transform.frames import FrameSet
from image_transform.geometry import CropRect, Dimensions


@dataclass(frozen=True)
class FakeFrame:
    width: int
    height: int
    label: str = ""
    bands: int = 3
    history: tuple[str, ...] = ()

    def evolve(self, width: int, height: int, step: str) -> FakeFrame:
        return FakeFrame(width, height, self.label, self.bands, self.history + (step,))


@dataclass
class FakeBackend(RasterBackend):
    supports_lanczos: bool = False
    size_for_quality: Callable[[int], int] = lambda q: 1000 + 100 * q
    fail_at: set[int] = field(default_factory=set)
    images: dict[str, FrameSet] = field(default_factory=dict)
    exif: dict[str, Any] = field(default_factory=dict)
    calls: list[tuple] = field(default_factory=list)
    released: list[FrameSet] = field(default_factory=list)

    def add_image(self, path: str, count: int = 1, width: int = 200, height: int = 100, bands: int = 3,
                  delays: tuple[int, ...] | None = None) -> FrameSet:
        frames = tuple(FakeFrame(width, height, f"f{i}", bands) for i in range(count))
        frame_set = FrameSet(frames, Dimensions(width, height), animated=count > 1, delays=delays, bands=bands)
        self.images[path] = frame_set
        return frame_set

    def open(self, path: str) -> FrameSet:
        self.calls.append(("open", path))
        if path not in self.images:
            raise UnreadableImage(f"No file exists at the path {path!r}")
        return self.images[path]

    def frame_count(self, image: Any) -> int:
        return len(image)

    def size(self, frame: FakeFrame) -> Dimensions:
        return Dimensions(frame.width, frame.height)

    def bands(self, frame: FakeFrame) -> int:
        return frame.bands

    def has_alpha(self, frame: FakeFrame) -> bool:
        return frame.bands in (2, 4)

    def resize(self, frame: FakeFrame, size: Dimensions, resize_filter: ResizeFilter) -> FakeFrame:
        self.calls.append(("resize", frame.label, size, resize_filter))
        return frame.evolve(size.width, size.height, f"resize {size}")

    def crop(self, frame: FakeFrame, rect: CropRect) -> FakeFrame:
        self.calls.append(("crop", frame.label, rect))
        return frame.evolve(rect.width, rect.height, f"crop {rect.as_box()}")

    def rotate(self, frame: FakeFrame, degrees: float) -> FakeFrame:
        self.calls.append(("rotate", frame.label, degrees))
        if degrees % 180 == 90:
            return frame.evolve(frame.height, frame.width, f"rotate {degrees}")
        return frame.evolve(frame.width, frame.height, f"rotate {degrees}")

    def encode(self, frame_set: FrameSet, extension: str, options: dict[str, Any]) -> bytes:
        self.calls.append(("encode", extension, dict(options)))
        if "jpeg_quality" in options:
            quality = options["jpeg_quality"]
        elif "png_compression_level" in options:
            quality = (9 - options["png_compression_level"]) * 11
        else:
            quality = 50
        if quality in self.fail_at:
            raise EncodeFailure("fake encoder failure")
        return b"x" * self.size_for_quality(quality)

    def read_exif(self, path: str) -> dict[str, Any]:
        return dict(self.exif)

    def text_box(self, text: str, font: FontSpec, angle: float = 0) -> Dimensions:
        return Dimensions(max(1, len(text) * font.size // 2), font.size)

    def draw_text(self, frame: FakeFrame, text: str, font: FontSpec, x: int, y: int, angle: float = 0) -> FakeFrame:
        self.calls.append(("draw_text", frame.label, text))
        return frame.evolve(frame.width, frame.height, f"text {text!r} at {x},{y}")

    def to_array(self, frame: FakeFrame) -> np.ndarray:
        return np.zeros((frame.height, frame.width, frame.bands), dtype=np.uint8)

    def release(self, frame_set: FrameSet) -> None:
        self.released.append(frame_set)

    def ops(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
