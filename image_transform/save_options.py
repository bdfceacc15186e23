from __future__ import annotations

from typing import Any

from image_transform.frames import FrameSet
from image_transform.geometry import round_half_up

JPEG_EXTENSIONS = ("jpg", "jpeg")
AUTO_QUALITY_EXTENSIONS = ("jpg", "jpeg", "png")


def png_compression_level(quality: int) -> int:
    """Map a 0-100 quality to a 0-9 PNG compression level (higher quality, less compression)."""
    level = 9 - round_half_up(quality * 9 / 100)
    return min(9, max(0, level))


def png_format(bands: int | None) -> str:
    # Grey+alpha PNGs are written as RGBA.
    if bands is None or bands == 2 or not 1 <= bands <= 4:
        return "png32"
    return f"png{8 * bands}"


def get_save_options(
    quality: int, extension: str, frame_set: FrameSet, delay_scale: int = 1
) -> dict[str, Any]:
    """Return the encoder options for ``extension`` at ``quality``."""
    extension = extension.lower().lstrip(".")

    if extension in JPEG_EXTENSIONS:
        return {"jpeg_quality": quality, "flatten": True}

    if extension == "png":
        return {
            "png_compression_level": png_compression_level(quality),
            "flatten": False,
            "png_format": png_format(frame_set.bands),
        }

    if extension == "gif":
        options: dict[str, Any] = {"animated": frame_set.animated}
        if frame_set.animated and frame_set.delays:
            options["animated_delay"] = [d * delay_scale for d in frame_set.delays]
        return options

    return {}
