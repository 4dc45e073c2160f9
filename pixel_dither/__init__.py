"""
Pixel Dither
============

Reduce full-colour RGBA images to a fixed palette, pixel-art style.
Colour matching happens in Oklab; colour *and* transparency are
approximated with ordered (Bayer-matrix) dithering driven by a
per-pixel error-feedback loop, so every output pixel is an exact
palette entry with alpha 0 or 255.
"""

__version__ = "1.0.0"

from pixel_dither.color_utils import oklab_to_rgb, rgb_to_oklab
from pixel_dither.config import DitherConfig
from pixel_dither.dithering import dither_pixel, dither_pixels
from pixel_dither.errors import (
    DecodeError,
    EmptyPalette,
    InvalidPaletteEntry,
    PixelDitherError,
    ThresholdMapMismatch,
)
from pixel_dither.image_io import load_frames, make_comparison_grid, save_frames
from pixel_dither.matcher import NearestColorMatcher, closest, closest_index
from pixel_dither.palette import (
    PRESET_PALETTES,
    Palette,
    load_palette,
    read_palette_file,
    read_palette_image,
    resolve_palette,
)
from pixel_dither.pipeline import process_frames, process_image
from pixel_dither.threshold import bayer_matrix, validate_threshold_map

__all__ = [
    "PRESET_PALETTES",
    "DecodeError",
    "DitherConfig",
    "EmptyPalette",
    "InvalidPaletteEntry",
    "NearestColorMatcher",
    "Palette",
    "PixelDitherError",
    "ThresholdMapMismatch",
    "bayer_matrix",
    "closest",
    "closest_index",
    "dither_pixel",
    "dither_pixels",
    "load_frames",
    "load_palette",
    "make_comparison_grid",
    "oklab_to_rgb",
    "process_frames",
    "process_image",
    "read_palette_file",
    "read_palette_image",
    "resolve_palette",
    "rgb_to_oklab",
    "save_frames",
    "validate_threshold_map",
]
