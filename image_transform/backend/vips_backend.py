"""Raster backend using pyvips.

Animated images are loaded as a single tall strip (every page stacked
vertically, ``page-height`` tall each) and split into one frame per page.
On save the frames are joined back into a strip.
"""

from __future__ import annotations

import contextlib
import os
from typing import Any

import numpy as np

from image_transform.backend.base import FontSpec, RasterBackend, ResizeFilter
from image_transform.errors import EncodeFailure, TransformError, UnreadableImage
from image_transform.frames import FrameSet
from image_transform.geometry import CropRect, Dimensions
from image_transform.logger import get_logger
from image_transform.save_options import JPEG_EXTENSIONS

_logger = get_logger("vips_backend")

try:
    import pyvips  # type: ignore
except (ImportError, OSError):
    pyvips = None  # type: ignore
    _logger.warning("pyvips is not available; VipsBackend will raise ImportError when used")

# Per-page metadata that must not follow a single frame around.
_PAGE_FIELDS = ("page-height", "n-pages", "delay", "loop", "gif-delay", "gif-loop")


def _get_pyvips_module() -> Any:
    """Return the pyvips module or raise ImportError if unavailable."""
    if pyvips is None:
        _logger.error("pyvips requested but not available")
        raise ImportError("pyvips is not available")
    return pyvips


def _get_field(image: Any, name: str, default: Any = None) -> Any:
    if image.get_typeof(name) == 0:
        return default
    return image.get(name)


def _strip_page_fields(frame: Any) -> Any:
    frame = frame.copy()
    for name in _PAGE_FIELDS:
        if frame.get_typeof(name) != 0:
            frame.remove(name)
    return frame


class VipsBackend(RasterBackend):
    supports_lanczos = True
    # libvips already reports frame delays in milliseconds.
    DELAY_SCALE = 1

    def __init__(self) -> None:
        vips = _get_pyvips_module()
        # Configure pyvips caches to avoid memory growth
        with contextlib.suppress(Exception):
            vips.cache_set_max(0)
            vips.cache_set_max_mem(0)
            vips.cache_set_max_files(0)

    # -- loading -----------------------------------------------------------------

    def open(self, path: str) -> FrameSet:
        if not os.path.isfile(path):
            _logger.error("No file exists at the path %s", path)
            raise UnreadableImage(f"No file exists at the path {path!r}")

        try:
            first_page = pyvips.Image.new_from_file(path)
            image = None
            if self.frame_count(first_page) > 1:
                try:
                    image = pyvips.Image.new_from_file(path, n=-1).copy_memory()
                except pyvips.Error as e:
                    # Pages of different sizes (multi-page TIFF, PDF) cannot be stacked; keep page one.
                    _logger.warning("Loading %s as a still image: %s", path, e)
            if image is None:
                image = first_page.copy_memory()
        except pyvips.Error as e:
            _logger.error("Failed to open source image %s: %s", path, e)
            raise UnreadableImage(f"The file {path!r} does not appear to be an image") from e

        page_height = _get_field(image, "page-height", image.height)
        if page_height <= 0 or image.height % page_height != 0:
            page_height = image.height
        pages = image.height // page_height

        frames = tuple(
            _strip_page_fields(image.crop(0, index * page_height, image.width, page_height))
            for index in range(pages)
        )

        delays = _get_field(image, "delay")
        if delays is not None:
            delays = tuple(int(d) for d in delays)
            if len(delays) != pages:
                delays = None

        _logger.debug("opened %s: %dx%d, %d frame(s), %d band(s)", path, image.width, page_height, pages, image.bands)
        return FrameSet(
            frames=frames,
            size=Dimensions(image.width, page_height),
            animated=pages > 1,
            delays=delays,
            loop=int(_get_field(image, "loop", 0)),
            bands=image.bands,
        )

    def frame_count(self, image: Any) -> int:
        return max(1, int(_get_field(image, "n-pages", 1)))

    # -- introspection -----------------------------------------------------------

    def size(self, frame: Any) -> Dimensions:
        return Dimensions(frame.width, frame.height)

    def bands(self, frame: Any) -> int:
        return frame.bands

    def has_alpha(self, frame: Any) -> bool:
        return bool(frame.hasalpha())

    # -- pixel operations --------------------------------------------------------

    def resize(self, frame: Any, size: Dimensions, resize_filter: ResizeFilter) -> Any:
        if (frame.width, frame.height) == (size.width, size.height):
            return frame
        if resize_filter is ResizeFilter.LANCZOS:
            # Geometry is planned on stored pixels, so ignore any EXIF orientation here.
            return frame.thumbnail_image(size.width, height=size.height, size=pyvips.Size.FORCE, no_rotate=True)

        resized = frame.resize(size.width / frame.width, vscale=size.height / frame.height, kernel="nearest")
        if (resized.width, resized.height) != (size.width, size.height):
            # resize() rounds the output size; pad or trim the last row/column.
            resized = resized.crop(0, 0, min(resized.width, size.width), min(resized.height, size.height))
            resized = resized.embed(0, 0, size.width, size.height, extend="copy")
        return resized

    def crop(self, frame: Any, rect: CropRect) -> Any:
        return frame.crop(*rect.as_box())

    def rotate(self, frame: Any, degrees: float) -> Any:
        angle = degrees % 360
        if angle == 0:
            return frame
        if angle == 90:
            return frame.rot90()
        if angle == 180:
            return frame.rot180()
        if angle == 270:
            return frame.rot270()
        return frame.rotate(angle)

    # -- encoding ----------------------------------------------------------------

    def encode(self, frame_set: FrameSet, extension: str, options: dict[str, Any]) -> bytes:
        ext = extension.lower().lstrip(".")
        suffix = ".jpg" if ext in JPEG_EXTENSIONS else f".{ext}"
        image = frame_set.first
        kwargs: dict[str, Any] = {}

        try:
            if ext in JPEG_EXTENSIONS:
                if options.get("flatten") and image.hasalpha():
                    image = image.flatten(background=[255] * (image.bands - 1))
                # jpegsave rejects Q=0
                kwargs["Q"] = max(1, int(options.get("jpeg_quality", 75)))
            elif ext == "png":
                image = self._convert_png_format(image, options.get("png_format"))
                kwargs["compression"] = int(options.get("png_compression_level", 6))
            elif ext == "gif" and options.get("animated"):
                image = self._join_frames(frame_set, options.get("animated_delay"))

            if image.format != "uchar":
                image = image.cast("uchar")
            data = image.write_to_buffer(suffix, **kwargs)
        except pyvips.Error as e:
            _logger.error("Encoding to %s failed: %s", suffix, e)
            raise EncodeFailure(f"Could not encode image as {ext}: {e}") from e

        # Normalize to bytes in case pyvips returns a memoryview-like object
        return data if isinstance(data, bytes) else bytes(data)

    def _convert_png_format(self, image: Any, png_format: str | None) -> Any:
        if png_format == "png8":
            if image.hasalpha():
                image = image.flatten(background=[255] * (image.bands - 1))
            if image.bands >= 3:
                image = image.colourspace("b-w")
            return image
        if png_format == "png24":
            if image.hasalpha():
                image = image.flatten(background=[255] * (image.bands - 1))
            if image.bands < 3:
                image = pyvips.Image.bandjoin([image] * 3)
            return image
        # png32
        if image.bands == 1:
            image = pyvips.Image.bandjoin([image] * 3)
        elif image.bands == 2:
            grey, alpha = image.extract_band(0), image.extract_band(1)
            image = grey.bandjoin([grey, grey, alpha])
        if image.bands == 3:
            image = image.bandjoin_const([255])
        return image

    def _join_frames(self, frame_set: FrameSet, delays: list[int] | None) -> Any:
        joined = pyvips.Image.arrayjoin(list(frame_set.frames), across=1).copy()
        joined.set_type(pyvips.GValue.gint_type, "page-height", frame_set.size.height)
        joined.set_type(pyvips.GValue.gint_type, "loop", frame_set.loop)
        if delays and len(delays) == len(frame_set):
            joined.set_type(pyvips.GValue.array_int_type, "delay", [int(d) for d in delays])
        return joined

    # -- metadata ----------------------------------------------------------------

    def read_exif(self, path: str) -> dict[str, Any]:
        try:
            image = pyvips.Image.new_from_file(path)
            return {name: image.get(name) for name in image.get_fields() if name.startswith("exif-ifd")}
        except pyvips.Error as e:
            _logger.error("EXIF read failed for %s: %s", path, e)
            return {}

    # -- text ----------------------------------------------------------------------

    def _render_text(self, text: str, font: FontSpec, angle: float) -> Any:
        try:
            mask = pyvips.Image.text(text, font=f"{font.family} {font.size}", fontfile=font.font_file, dpi=72)
            if angle % 360:
                mask = mask.rotate(angle % 360)
        except pyvips.Error as e:
            _logger.error("Text rendering failed with font %s: %s", font.font_file, e)
            raise TransformError(f"Could not render text with font {font.font_file!r}: {e}") from e
        return mask

    def text_box(self, text: str, font: FontSpec, angle: float = 0) -> Dimensions:
        mask = self._render_text(text, font, angle)
        return Dimensions(mask.width, mask.height)

    def draw_text(self, frame: Any, text: str, font: FontSpec, x: int, y: int, angle: float = 0) -> Any:
        mask = self._render_text(text, font, angle)
        if frame.bands >= 3:
            ink = mask.new_from_image(list(font.color)).copy(interpretation="srgb")
        else:
            ink = mask.new_from_image([round(sum(font.color) / 3)]).copy(interpretation="b-w")
        overlay = ink.bandjoin(mask)
        out = frame.composite2(overlay, "over", x=x, y=y)
        if not frame.hasalpha():
            out = out.extract_band(0, n=frame.bands)
        return out.cast(frame.format)

    # -- conversion ----------------------------------------------------------------

    def to_array(self, frame: Any) -> np.ndarray:
        image = frame if frame.format == "uchar" else frame.cast("uchar")
        mem = image.write_to_memory()
        return np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands).copy()
