"""Threshold maps for ordered dithering."""

from __future__ import annotations

import numpy as np

from pixel_dither.errors import ThresholdMapMismatch


def bayer_matrix(n: int) -> np.ndarray:
    """Generate an n x n Bayer matrix (n must be a power of 2).

    Values are a permutation of 0..n*n-1; ``bayer_matrix(2)`` is
    ``[[0, 2], [3, 1]]``.  ``n = 1`` yields ``[[0]]``, i.e. no dithering.
    """
    if n <= 0 or n & (n - 1) != 0:
        msg = f"Bayer size must be a positive power of 2 (e.g. 1, 2, 4, 8), got {n}"
        raise ValueError(msg)

    def build(k: int) -> np.ndarray:
        if k == 1:
            return np.array([[0]], dtype=np.intp)
        prev = 4 * build(k // 2)
        return np.block([[prev + 0, prev + 2], [prev + 3, prev + 1]])

    return build(n)


def validate_threshold_map(
    matrix: object,
    candidate_count: int | None = None,
) -> np.ndarray:
    """Check that *matrix* is a usable ranking map and return it as an array.

    The map must be square and non-empty with integer entries forming a
    permutation of ``0..n*n-1``.  When *candidate_count* is given it must
    equal ``n*n``.

    Raises:
        ThresholdMapMismatch: Any of the above does not hold.
    """
    try:
        arr = np.asarray(matrix)
    except ValueError as exc:  # ragged nested lists
        msg = f"Threshold map is not a rectangular matrix: {exc}"
        raise ThresholdMapMismatch(msg) from exc

    if arr.ndim != 2 or arr.shape[0] != arr.shape[1] or arr.size == 0:
        msg = f"Threshold map must be a non-empty square matrix, got shape {arr.shape}"
        raise ThresholdMapMismatch(msg)
    if not np.issubdtype(arr.dtype, np.integer):
        if not np.issubdtype(arr.dtype, np.floating) or not np.all(arr == np.round(arr)):
            msg = "Threshold map entries must be integers"
            raise ThresholdMapMismatch(msg)

    n = arr.shape[0]
    size = n * n
    if candidate_count is not None and candidate_count != size:
        msg = (
            f"Threshold map side {n} gives {size} ranks but "
            f"{candidate_count} candidates were requested"
        )
        raise ThresholdMapMismatch(msg)

    values = arr.astype(np.intp)
    if not np.array_equal(np.sort(values, axis=None), np.arange(size)):
        msg = f"Threshold map entries must be a permutation of 0..{size - 1}"
        raise ThresholdMapMismatch(msg)

    values.setflags(write=False)
    return values


def parse_threshold_map(text: str) -> np.ndarray:
    """Parse ``'0,2;3,1'`` (rows separated by ``;``) into a validated map."""
    try:
        rows = [
            [int(v) for v in row.split(",")]
            for row in text.split(";")
            if row.strip()
        ]
    except ValueError as exc:
        msg = f"Cannot parse threshold map {text!r}: {exc}"
        raise ThresholdMapMismatch(msg) from exc
    if any(len(r) != len(rows) for r in rows):
        msg = f"Threshold map {text!r} is not square"
        raise ThresholdMapMismatch(msg)
    return validate_threshold_map(rows)
