"""Nearest palette colour search in Oklab."""

from __future__ import annotations

import logging

import numpy as np
from scipy.spatial import cKDTree

from pixel_dither.palette import Palette

logger = logging.getLogger(__name__)

BACKENDS = ("auto", "linear", "kdtree")

# Palettes larger than this use the k-d tree under backend="auto"
KDTREE_MIN_SIZE = 64


def _squared_distances(points: np.ndarray, colors: np.ndarray) -> np.ndarray:
    """(N, 3) x (K, 3) → (N, K) squared Euclidean distances."""
    diff = points[:, np.newaxis, :] - colors[np.newaxis, :, :]
    return np.sum(diff ** 2, axis=2)


def closest_index(palette: Palette, point: np.ndarray) -> int:
    """Index of the palette entry nearest to one Oklab *point*.

    Ties go to the first entry in palette order.  A NaN query resolves to
    index 0.
    """
    d = _squared_distances(np.asarray(point, dtype=np.float64).reshape(1, 3), palette.oklab)
    return int(np.argmin(np.nan_to_num(d[0], nan=np.inf)))


def closest(palette: Palette, point: np.ndarray) -> np.ndarray:
    """Oklab value of the palette entry nearest to *point*."""
    return palette.oklab[closest_index(palette, point)]


class NearestColorMatcher:
    """Vectorised nearest-colour lookup against a fixed palette.

    Both backends return identical indices: the k-d tree is only used to
    find the minimum distance, then every entry inside that radius is
    re-scored with the same formula as the linear scan and the lowest
    index wins.

    Args:
        palette:    The palette to match against (shared read-only).
        backend:    ``"linear"``, ``"kdtree"`` or ``"auto"``.
        chunk_size: Query rows scored per batch (controls peak RAM).
    """

    def __init__(
        self,
        palette: Palette,
        backend: str = "auto",
        chunk_size: int = 4096,
    ) -> None:
        if backend not in BACKENDS:
            msg = f"Unknown matcher backend '{backend}'. Available: {', '.join(BACKENDS)}"
            raise ValueError(msg)
        if backend == "auto":
            backend = "kdtree" if len(palette) > KDTREE_MIN_SIZE else "linear"

        self.palette = palette
        self.backend = backend
        self.chunk_size = chunk_size
        self._tree = cKDTree(palette.oklab) if backend == "kdtree" else None
        logger.debug("Matcher: %s backend, %d colours", backend, len(palette))

    def query(self, points: np.ndarray) -> np.ndarray:
        """(N, 3) Oklab points → (N,) int palette indices."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if self._tree is not None:
            return self._query_tree(points)
        return self._query_linear(points)

    def _query_linear(self, points: np.ndarray) -> np.ndarray:
        out = np.empty(len(points), dtype=np.intp)
        colors = self.palette.oklab
        for i in range(0, len(points), self.chunk_size):
            j = min(i + self.chunk_size, len(points))
            d = _squared_distances(points[i:j], colors)
            out[i:j] = np.argmin(np.nan_to_num(d, nan=np.inf), axis=1)
        return out

    def _query_tree(self, points: np.ndarray) -> np.ndarray:
        out = np.zeros(len(points), dtype=np.intp)
        finite = np.all(np.isfinite(points), axis=1)
        idx = np.flatnonzero(finite)
        if len(idx) == 0:
            return out

        if len(self.palette) == 1:
            return out

        dist, nearest = self._tree.query(points[idx], k=2)
        out[idx] = nearest[:, 0]

        # Near-ties are re-scored so they resolve like the linear scan
        radius = dist[:, 0] * (1.0 + 1e-9) + 1e-12
        tied = dist[:, 1] <= radius
        colors = self.palette.oklab
        for row, p, r in zip(idx[tied], points[idx[tied]], radius[tied], strict=True):
            near = np.sort(np.asarray(self._tree.query_ball_point(p, r), dtype=np.intp))
            d = np.sum((colors[near] - p) ** 2, axis=1)
            out[row] = near[np.argmin(d)]
        return out
