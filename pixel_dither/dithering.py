"""Ordered dithering with per-pixel error feedback.

For every pixel a list of ``n*n`` palette candidates is built by repeatedly
searching for the colour nearest to the target plus the error accumulated
so far.  The residual the palette could not represent is fed forward, so
the candidates are complementary colours whose average approaches the true
colour.  Alpha gets the same treatment with the two levels 0 and 1.

Candidates are sorted (colour by Oklab lightness, alpha by value) and the
threshold map picks one rank per pixel position.  Pixels that share the
same ``(x mod n, y mod n)`` phase therefore take the same rank, which
gives a stable repeating pattern instead of noise.

All functions work on *N* pixels at once.  Each pixel owns one row of the
accumulators, which live only for the duration of a call; nothing is
shared between pixels.
"""

from __future__ import annotations

import numpy as np

from pixel_dither.color_utils import oklab_to_rgb, rgb_to_oklab
from pixel_dither.matcher import NearestColorMatcher
from pixel_dither.palette import Palette
from pixel_dither.threshold import validate_threshold_map


def color_candidates(
    lab: np.ndarray,
    matcher: NearestColorMatcher,
    count: int,
    strength: float,
) -> np.ndarray:
    """Generate *count* palette candidates per pixel.

    Args:
        lab:      (N, 3) target colours in Oklab.
        matcher:  Nearest-colour lookup for the palette.
        count:    Candidates per pixel (threshold map side squared).
        strength: Colour error feedback factor; 0 disables dithering.

    Returns:
        (N, count) palette indices, in generation order.
    """
    lab = np.asarray(lab, dtype=np.float64).reshape(-1, 3)
    colors = matcher.palette.oklab
    error = np.zeros_like(lab)
    out = np.empty((len(lab), count), dtype=np.intp)

    for i in range(count):
        idx = matcher.query(lab + error * strength)
        out[:, i] = idx
        error += lab - colors[idx]
    return out


def alpha_candidates(
    alpha: np.ndarray,
    count: int,
    strength: float,
) -> np.ndarray:
    """Generate *count* binary alpha candidates per pixel.

    Samples are snapped to 0.0 or 1.0; exactly 0.5 rounds up.

    Args:
        alpha:    (N,) target alpha in [0, 1].
        count:    Candidates per pixel.
        strength: Alpha error feedback factor.

    Returns:
        (N, count) float64, every value exactly 0.0 or 1.0.
    """
    alpha = np.asarray(alpha, dtype=np.float64).reshape(-1)
    error = np.zeros_like(alpha)
    out = np.empty((len(alpha), count), dtype=np.float64)

    for i in range(count):
        sample = alpha + error * strength
        chosen = np.where(sample >= 0.5, 1.0, 0.0)
        out[:, i] = chosen
        error += alpha - chosen
    return out


def sort_color_candidates(candidates: np.ndarray, palette: Palette) -> np.ndarray:
    """Stable ascending sort of (N, count) indices by palette lightness."""
    keys = palette.lightness[candidates]
    order = np.argsort(keys, axis=1, kind="stable")
    return np.take_along_axis(candidates, order, axis=1)


def sort_alpha_candidates(candidates: np.ndarray) -> np.ndarray:
    """Stable ascending sort of (N, count) alpha candidates."""
    return np.sort(candidates, axis=1, kind="stable")


def threshold_ranks(
    xs: np.ndarray,
    ys: np.ndarray,
    threshold_map: np.ndarray,
) -> np.ndarray:
    """Rank per pixel: ``threshold_map[x mod n][y mod n]``."""
    n = threshold_map.shape[0]
    return threshold_map[np.asarray(xs) % n, np.asarray(ys) % n]


def dither_pixels(
    lab: np.ndarray,
    alpha: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    palette: Palette,
    threshold_map: np.ndarray,
    color_strength: float,
    alpha_strength: float,
    matcher: NearestColorMatcher | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Choose the output palette index and alpha for *N* pixels.

    *threshold_map* is expected to be validated already (see
    :func:`~pixel_dither.threshold.validate_threshold_map`).

    Args:
        lab:            (N, 3) Oklab colours.
        alpha:          (N,) alpha in [0, 1].
        xs, ys:         (N,) integer pixel coordinates.
        palette:        Target palette.
        threshold_map:  (n, n) ranking permutation.
        color_strength: Colour error feedback factor.
        alpha_strength: Alpha error feedback factor.
        matcher:        Reused lookup; built from *palette* when omitted.

    Returns:
        ``(indices, alpha)``: (N,) palette indices and (N,) alpha in {0, 1}.
    """
    if matcher is None:
        matcher = NearestColorMatcher(palette)
    count = threshold_map.size
    rows = np.arange(len(np.atleast_1d(xs)))
    ranks = threshold_ranks(xs, ys, threshold_map)

    colors = sort_color_candidates(
        color_candidates(lab, matcher, count, color_strength), palette,
    )
    alphas = sort_alpha_candidates(alpha_candidates(alpha, count, alpha_strength))
    return colors[rows, ranks], alphas[rows, ranks]


def dither_pixel(
    rgb: tuple[float, float, float],
    alpha: float,
    x: int,
    y: int,
    palette: Palette,
    threshold_map: np.ndarray,
    color_strength: float,
    alpha_strength: float,
) -> tuple[np.ndarray, float]:
    """Dither a single normalised RGBA pixel.

    Returns:
        ``(rgb, alpha)``: (3,) float sRGB of the chosen palette colour
        (converted back from Oklab, unclamped) and 0.0 or 1.0.
    """
    threshold_map = validate_threshold_map(threshold_map)
    lab = rgb_to_oklab(np.asarray(rgb, dtype=np.float64).reshape(1, 3))
    idx, a = dither_pixels(
        lab,
        np.array([alpha], dtype=np.float64),
        np.array([x]),
        np.array([y]),
        palette,
        threshold_map,
        color_strength,
        alpha_strength,
    )
    return oklab_to_rgb(palette.oklab[idx[0]]), float(a[0])
