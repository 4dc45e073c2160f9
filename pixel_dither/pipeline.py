"""Whole-image driver: validate, dither row chunks, assemble the output."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from pixel_dither.color_utils import oklab_to_rgb, rgb_to_oklab, to_uint8
from pixel_dither.dithering import dither_pixels
from pixel_dither.errors import DecodeError
from pixel_dither.matcher import NearestColorMatcher
from pixel_dither.palette import Palette
from pixel_dither.threshold import validate_threshold_map

logger = logging.getLogger(__name__)

# Pixels dithered per chunk; each holds a few (pixels, n*n) arrays
DEFAULT_CHUNK_PIXELS = 16_384


def _validate_source(source: object) -> np.ndarray:
    """Return *source* as (H, W, 4) uint8 or raise :class:`DecodeError`."""
    arr = np.asarray(source)
    if arr.ndim != 3 or arr.shape[2] != 4:
        msg = f"Expected (H, W, 4) RGBA pixel data, got shape {arr.shape}"
        raise DecodeError(msg)
    if not np.issubdtype(arr.dtype, np.integer):
        msg = f"Expected 8-bit integer channels, got dtype {arr.dtype}"
        raise DecodeError(msg)
    if arr.size and (arr.min() < 0 or arr.max() > 255):
        msg = "Channel values must lie in 0..255"
        raise DecodeError(msg)
    return arr.astype(np.uint8, copy=False)


def _dither_rows(
    source: np.ndarray,
    out: np.ndarray,
    y0: int,
    y1: int,
    palette: Palette,
    threshold_map: np.ndarray,
    color_strength: float,
    alpha_strength: float,
    matcher: NearestColorMatcher,
) -> None:
    """Dither rows ``y0:y1`` of *source* into the same rows of *out*."""
    block = source[y0:y1].reshape(-1, 4).astype(np.float64) / 255.0
    w = source.shape[1]
    ys, xs = np.divmod(np.arange(len(block)), w)
    ys += y0

    idx, alpha = dither_pixels(
        rgb_to_oklab(block[:, :3]),
        block[:, 3],
        xs,
        ys,
        palette,
        threshold_map,
        color_strength,
        alpha_strength,
        matcher,
    )
    rgba = np.empty((len(block), 4), dtype=np.uint8)
    rgba[:, :3] = to_uint8(oklab_to_rgb(palette.oklab[idx]))
    rgba[:, 3] = to_uint8(alpha)
    out[y0:y1] = rgba.reshape(y1 - y0, w, 4)


def process_image(
    source: np.ndarray,
    palette: Palette,
    threshold_map: np.ndarray,
    color_strength: float,
    alpha_strength: float,
    workers: int = 1,
    backend: str = "auto",
    chunk_pixels: int = DEFAULT_CHUNK_PIXELS,
) -> np.ndarray:
    """Reduce an RGBA image to *palette* with ordered dithering.

    Pixels are independent, so the image is split into row chunks of at
    most *chunk_pixels* pixels (at least one row), which run on a thread
    pool when *workers* > 1.  Every chunk writes only its own rows of the
    preallocated output.

    Args:
        source:         (H, W, 4) uint8 RGBA.
        palette:        Target palette.
        threshold_map:  (n, n) ranking permutation, e.g. a Bayer matrix.
        color_strength: Colour error feedback factor (>= 0).
        alpha_strength: Alpha error feedback factor (>= 0).
        workers:        Thread count.
        backend:        Matcher backend (see :class:`NearestColorMatcher`).
        chunk_pixels:   Pixels per chunk (controls peak RAM).

    Returns:
        (H, W, 4) uint8, every colour a palette entry and every alpha 0 or 255.

    Raises:
        DecodeError: *source* is not 4-channel 8-bit data.
        ThresholdMapMismatch: *threshold_map* is not a valid ranking map.
    """
    src = _validate_source(source)
    tmap = validate_threshold_map(threshold_map)
    if color_strength < 0 or alpha_strength < 0:
        msg = "Dither strengths must be non-negative"
        raise ValueError(msg)
    if chunk_pixels < 1:
        msg = f"chunk_pixels must be >= 1, got {chunk_pixels}"
        raise ValueError(msg)

    h, w = src.shape[:2]
    out = np.zeros_like(src)
    if src.size == 0:
        return out

    matcher = NearestColorMatcher(palette, backend=backend)
    logger.info(
        "Dithering %dx%d with %d colours, %dx%d map (%d workers) …",
        w, h, len(palette), tmap.shape[0], tmap.shape[0], workers,
    )
    t0 = time.perf_counter()

    args = (palette, tmap, color_strength, alpha_strength, matcher)
    step = max(1, chunk_pixels // w)
    chunks = [(s, min(h, s + step)) for s in range(0, h, step)]
    if workers <= 1 or len(chunks) < 2:
        for y0, y1 in chunks:
            _dither_rows(src, out, y0, y1, *args)
    else:
        with ThreadPoolExecutor(max_workers=workers) as ex:
            futs = [
                ex.submit(_dither_rows, src, out, y0, y1, *args)
                for y0, y1 in chunks
            ]
            for fu in futs:
                fu.result()

    logger.info("Dithering done  (%.2f s)", time.perf_counter() - t0)
    return out


def process_frames(
    frames: Sequence[np.ndarray],
    palette: Palette,
    threshold_map: np.ndarray,
    color_strength: float,
    alpha_strength: float,
    workers: int = 1,
    backend: str = "auto",
) -> list[np.ndarray]:
    """Apply :func:`process_image` to every frame independently."""
    results = []
    for i, frame in enumerate(frames, 1):
        if len(frames) > 1:
            logger.debug("Frame %d/%d", i, len(frames))
        results.append(
            process_image(
                frame, palette, threshold_map, color_strength, alpha_strength,
                workers=workers, backend=backend,
            )
        )
    return results
