"""Exception types raised while validating inputs for a dither run."""

from __future__ import annotations


class PixelDitherError(Exception):
    """Base class for all pixel_dither errors."""


class InvalidPaletteEntry(PixelDitherError, ValueError):
    """A palette entry is not exactly six hexadecimal digits."""

    def __init__(self, entry: object, position: int) -> None:
        self.entry = entry
        self.position = position
        super().__init__(
            f"Invalid palette entry {entry!r} at position {position}: "
            "expected exactly 6 hex digits (e.g. 'ff8800')"
        )


class EmptyPalette(PixelDitherError, ValueError):
    """No palette entries were supplied."""


class DecodeError(PixelDitherError, ValueError):
    """Source data cannot be interpreted as 4-channel 8-bit colour."""


class ThresholdMapMismatch(PixelDitherError, ValueError):
    """Threshold map is not a square ranking permutation of the right size."""
