"""Oklab colour-space conversion and image quality metric."""

from __future__ import annotations

import numpy as np
from skimage.color import deltaE_ciede2000, rgb2lab

# linear sRGB -> LMS
_M1 = np.array(
    [
        [0.4122214708, 0.5363325363, 0.0514459929],
        [0.2119034982, 0.6806995451, 0.1073969566],
        [0.0883024619, 0.2817188376, 0.6299787005],
    ]
)

# cube-rooted LMS -> Lab
_M2 = np.array(
    [
        [0.2104542553, 0.7936177850, -0.0040720468],
        [1.9779984951, -2.4285922050, 0.4505937099],
        [0.0259040371, 0.7827717662, -0.8086757660],
    ]
)

_M1_INV = np.linalg.inv(_M1)
_M2_INV = np.linalg.inv(_M2)


def srgb_to_linear(u: np.ndarray) -> np.ndarray:
    """sRGB gamma-encoded [0, 1] → linear light. Any shape."""
    u = np.asarray(u, dtype=np.float64)
    return np.where(u <= 0.04045, u / 12.92, ((u + 0.055) / 1.055) ** 2.4)


def linear_to_srgb(u: np.ndarray) -> np.ndarray:
    """Linear light → sRGB gamma-encoded. Any shape, not clamped.

    Negative values are mirrored through the curve so the transfer stays
    invertible for out-of-gamut colours.
    """
    u = np.asarray(u, dtype=np.float64)
    mag = np.abs(u)
    encoded = np.where(
        mag <= 0.0031308, 12.92 * mag, 1.055 * mag ** (1.0 / 2.4) - 0.055,
    )
    return np.copysign(encoded, u)


def rgb_to_oklab(rgb: np.ndarray) -> np.ndarray:
    """Convert (..., 3) float sRGB in [0, 1] → (..., 3) float64 Oklab."""
    lms = srgb_to_linear(rgb) @ _M1.T
    return np.cbrt(lms) @ _M2.T


def oklab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert (..., 3) Oklab → (..., 3) float64 sRGB.

    The result is *not* clamped; colours outside the sRGB gamut come back
    with channels outside [0, 1].  Use :func:`to_uint8` to quantise.
    """
    lab = np.asarray(lab, dtype=np.float64)
    lms = (lab @ _M2_INV.T) ** 3
    return linear_to_srgb(lms @ _M1_INV.T)


def to_uint8(values: np.ndarray) -> np.ndarray:
    """Clamp normalised values to [0, 1] and quantise to uint8.

    NaN becomes 0.  Rounding is half away from zero.
    """
    v = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0)
    v = np.clip(v, 0.0, 1.0)
    return np.floor(v * 255.0 + 0.5).astype(np.uint8)


def mean_delta_e(reference: np.ndarray, result: np.ndarray) -> float:
    """Mean CIEDE2000 difference between two (H, W, 3|4) uint8 images.

    Only the colour channels are compared.  For RGBA input, pixels that
    are fully transparent in *reference* are left out; if none remain
    the result is 0.0.
    """
    mask = np.ones(reference.shape[:2], dtype=bool)
    if reference.shape[-1] == 4:
        mask = reference[..., 3] > 0
    if not mask.any():
        return 0.0
    ref = rgb2lab(reference[mask][np.newaxis, :, :3].astype(np.float64) / 255.0)
    res = rgb2lab(result[mask][np.newaxis, :, :3].astype(np.float64) / 255.0)
    return float(np.mean(deltaE_ciede2000(ref, res)))
