"""Raster backends.

The core talks to pixels only through :class:`RasterBackend`. The pyvips
implementation lives in :mod:`image_transform.backend.vips_backend`.
"""

from image_transform.backend.base import FontSpec, RasterBackend, ResizeFilter, parse_hex_color, select_resize_filter

__all__ = [
    "FontSpec",
    "RasterBackend",
    "ResizeFilter",
    "parse_hex_color",
    "select_resize_filter",
]
