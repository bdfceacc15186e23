"""TransformSession: load an image, transform it, save it.

Usage:
    from image_transform import TransformSession

    with TransformSession() as session:
        session.load("in.gif").scale_and_crop(200, 200, crop_position="top-center")
        session.save("out.gif")
"""

from __future__ import annotations

import contextlib
import os
import stat
import tempfile
from typing import TYPE_CHECKING, Any

from image_transform.backend.base import FontSpec, RasterBackend, parse_hex_color, select_resize_filter
from image_transform.backend.vips_backend import VipsBackend
from image_transform.config import TransformConfig
from image_transform.errors import EncodeFailure, InvalidQuality, NoFontConfigured, TransformError
from image_transform.frames import CropOp, DrawTextOp, FrameOp, FrameSet, ResizeOp, RotateOp, apply_frame_op
from image_transform.geometry import (
    CropAnchor,
    Dimensions,
    normalize_dimensions,
    plan_crop,
    plan_scale_and_crop,
    plan_scale_to_fit,
)
from image_transform.logger import get_logger
from image_transform.quality import QualitySearch, SearchResult
from image_transform.save_options import AUTO_QUALITY_EXTENSIONS, get_save_options

if TYPE_CHECKING:
    import numpy as np

_logger = get_logger("session")


def _extension_of(path: str) -> str:
    return os.path.splitext(path)[1].lower().lstrip(".")


def _target_mode(path: str) -> int:
    """Mode for a written file: the existing target's, else 0o666 less the umask."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def _write_atomic(path: str, data: bytes) -> None:
    """Write ``data`` to ``path`` via a temp file so a failure never leaves a partial file."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # mkstemp creates 0600 files
        os.chmod(tmp_path, _target_mode(path))
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


class TransformSession:
    """Holds one decoded image and applies transforms to all of its frames.

    A session owns its frames exclusively; use one session per image.
    Transform methods return the session so calls can be chained.
    """

    def __init__(self, backend: RasterBackend | None = None, config: TransformConfig | None = None):
        if backend is None:
            backend = VipsBackend()
        self._backend = backend
        self._config = config or TransformConfig()
        self._resize_filter = select_resize_filter(backend)
        self._frames: FrameSet | None = None
        self._source_path: str | None = None
        self._extension: str | None = None
        self._quality = self._config.default_quality
        self._font: FontSpec | None = None

    def __enter__(self) -> TransformSession:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # -- state -------------------------------------------------------------------------

    @property
    def frames(self) -> FrameSet:
        if self._frames is None:
            raise TransformError("No image has been loaded. Call load() first.")
        return self._frames

    @property
    def size(self) -> Dimensions:
        return self.frames.size

    @property
    def width(self) -> int:
        return self.size.width

    @property
    def height(self) -> int:
        return self.size.height

    @property
    def extension(self) -> str | None:
        return self._extension

    @property
    def source_path(self) -> str | None:
        return self._source_path

    @property
    def is_animated(self) -> bool:
        return self.frames.animated

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def quality(self) -> int:
        return self._quality

    def _replace_frames(self, frame_set: FrameSet | None) -> None:
        old, self._frames = self._frames, frame_set
        if old is not None and old is not frame_set:
            self._backend.release(old)

    def _apply(self, op: FrameOp) -> None:
        self._replace_frames(apply_frame_op(op, self.frames, self._backend))

    # -- loading -----------------------------------------------------------------------

    def load(self, path: str) -> TransformSession:
        """Load an image from ``path``. Raises UnreadableImage."""
        frame_set = self._backend.open(path)
        self._replace_frames(frame_set)
        self._source_path = path
        self._extension = _extension_of(path)
        _logger.info("loaded %s (%s, %d frame(s))", path, frame_set.size, len(frame_set))
        return self

    def close(self) -> None:
        self._replace_frames(None)

    # -- geometry ----------------------------------------------------------------------

    def crop(self, x1: int, y1: int, x2: int, y2: int) -> TransformSession:
        """Crop to the rectangle spanning (x1, y1) to (x2, y2)."""
        rect = plan_crop(x1, y1, x2, y2, self.size)
        if not rect.covers(self.size):
            self._apply(CropOp(rect))
        return self

    def resize(self, width: int | str | None, height: int | str | None = None) -> TransformSession:
        """Resize to exactly ``width`` x ``height``; a missing side keeps the aspect ratio."""
        target = normalize_dimensions(width, height, self.size)
        if target != self.size:
            self._apply(ResizeOp(target, self._resize_filter))
        return self

    def scale_to_fit(
        self, width: int | str | None, height: int | str | None = None, scale_if_smaller: bool = True
    ) -> TransformSession:
        """Scale the image to fit within the specified size."""
        target = normalize_dimensions(width, height, self.size)
        planned = plan_scale_to_fit(target, scale_if_smaller, self.size)
        if planned != self.size:
            self._apply(ResizeOp(planned, self._resize_filter))
        return self

    def scale_and_crop(
        self,
        width: int | str | None,
        height: int | str | None = None,
        scale_if_smaller: bool = True,
        crop_position: str | CropAnchor = "center-center",
    ) -> TransformSession:
        """Scale and crop the image to exactly fit the specified size.

        ``crop_position`` is ``"<vertical>-<horizontal>"``, e.g. ``"top-left"``.
        """
        anchor = CropAnchor.parse(crop_position)
        target = normalize_dimensions(width, height, self.size)
        scaled, rect = plan_scale_and_crop(target, scale_if_smaller, anchor, self.size)
        if scaled != self.size:
            self._apply(ResizeOp(scaled, self._resize_filter))
        if not rect.covers(scaled):
            self._apply(CropOp(rect))
        return self

    def rotate(self, degrees: float) -> TransformSession:
        if degrees % 360:
            self._apply(RotateOp(degrees))
        return self

    # -- encoding ------------------------------------------------------------------------

    def set_quality(self, quality: int) -> TransformSession:
        if isinstance(quality, bool) or not isinstance(quality, int) or not 0 <= quality <= 100:
            raise InvalidQuality(f"Quality must be an integer between 0 and 100, got {quality!r}")
        self._quality = quality
        return self

    def _encode(self, quality: int, extension: str) -> bytes:
        options = get_save_options(quality, extension, self.frames, self._backend.DELAY_SCALE)
        try:
            return self._backend.encode(self.frames, extension, options)
        except EncodeFailure as e:
            if e.quality is None:
                e.quality = quality
            raise

    def save(self, path: str, auto_quality: bool = False) -> str:
        """Save the image to ``path``, encoding for its extension.

        With ``auto_quality`` set, jpeg and png targets get the quality whose
        output size best matches the source file size.

        Returns:
            The path written.
        """
        extension = _extension_of(path) or self._extension or ""
        if auto_quality and extension in AUTO_QUALITY_EXTENSIONS:
            self.save_with_size_match(path)
            return path

        data = self._encode(self._quality, extension)
        _write_atomic(path, data)
        _logger.info("saved %s (%d bytes, quality %d)", path, len(data), self._quality)
        return path

    def save_with_size_match(self, path: str, target_size: int | None = None) -> SearchResult:
        """Save ``path`` at the quality whose encoded size is nearest ``target_size``.

        ``target_size`` defaults to the size of the source file on disk.
        Formats other than jpeg/png are written once at the session quality.
        """
        extension = _extension_of(path) or self._extension or ""
        if target_size is None:
            if self._source_path is None:
                raise TransformError("No source file to take the target size from")
            target_size = os.path.getsize(self._source_path)

        if extension in AUTO_QUALITY_EXTENSIONS:
            search = QualitySearch(
                target_size,
                min_quality=self._config.min_quality,
                max_quality=self._config.max_quality,
                acceptable_range=self._config.acceptable_range,
                max_steps=self._config.max_search_steps,
            )
            result = search.run(lambda quality: self._encode(quality, extension))
        else:
            data = self._encode(self._quality, extension)
            result = SearchResult(quality=self._quality, size=len(data), steps=0, data=data)

        _write_atomic(path, result.data)
        _logger.info("saved %s (%d bytes, quality %d, target %d)", path, result.size, result.quality, target_size)
        return result

    # -- inspection ----------------------------------------------------------------------

    def is_transparent(self) -> bool:
        return self._backend.has_alpha(self.frames.first)

    def get_exif_metadata(self, path: str | None = None) -> dict[str, Any]:
        """Best-effort EXIF fields for ``path`` (default: the loaded source)."""
        path = path or self._source_path
        if path is None:
            return {}
        return self._backend.read_exif(path)

    def to_array(self, index: int = 0) -> np.ndarray:
        """Return frame ``index`` as an (h, w, bands) uint8 array."""
        return self._backend.to_array(self.frames.frames[index])

    # -- text ----------------------------------------------------------------------------

    def set_font_properties(self, font_file: str, size: int, color: str | tuple[int, int, int]) -> TransformSession:
        """Set the font used by get_text_box() and write_text().

        ``color`` is a hex string such as ``"#ff0000"`` or an (r, g, b) tuple.
        """
        rgb = parse_hex_color(color) if isinstance(color, str) else tuple(color)
        self._font = FontSpec(font_file=font_file, size=int(size), color=rgb)
        return self

    def _require_font(self) -> FontSpec:
        if self._font is None:
            _logger.error("text operation requested before set_font_properties()")
            raise NoFontConfigured()
        return self._font

    def get_text_box(self, text: str, angle: float = 0) -> Dimensions:
        """Size of the box ``text`` occupies when drawn at ``angle`` degrees."""
        return self._backend.text_box(text, self._require_font(), angle)

    def write_text(self, text: str, x: int, y: int, angle: float = 0) -> TransformSession:
        """Draw ``text`` with its top-left corner at (x, y) on every frame."""
        font = self._require_font()
        self._apply(DrawTextOp(text, font, int(x), int(y), angle))
        return self
