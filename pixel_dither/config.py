"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pixel_dither.matcher import BACKENDS


@dataclass(frozen=True)
class DitherConfig:
    """All tuneable parameters for a dither run.

    Attributes:
        palette:         Preset name, palette file, swatch image, or hex list.
        bayer_size:      Side of the Bayer threshold map (power of 2).
        color_strength:  Colour error feedback; 0 = plain nearest colour.
        alpha_strength:  Alpha error feedback; 0 = hard alpha threshold.
        workers:         Threads used to process row chunks.
        backend:         Nearest-colour backend - "auto", "linear" or "kdtree".
        output_format:   Image format for saved still images.
        save_comparison: Generate a side-by-side comparison grid.
        input_dir:       Folder to scan for source images.
        output_dir:      Folder for results.
    """

    # Palette
    palette: str = "pico8"

    # Dithering
    bayer_size: int = 4
    color_strength: float = 1.0
    alpha_strength: float = 1.0

    # Execution
    workers: int = 1
    backend: str = "auto"

    # Output
    output_format: str = "png"
    save_comparison: bool = True

    # Paths
    input_dir: Path = field(default_factory=lambda: Path("images"))
    output_dir: Path = field(default_factory=lambda: Path("output"))

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".png", ".gif", ".webp", ".bmp", ".tiff", ".tif", ".jpg", ".jpeg"}
    )

    def __post_init__(self) -> None:
        if self.bayer_size <= 0 or self.bayer_size & (self.bayer_size - 1):
            msg = f"bayer_size must be a positive power of 2, got {self.bayer_size}"
            raise ValueError(msg)
        if self.color_strength < 0 or self.alpha_strength < 0:
            msg = "Dither strengths must be non-negative"
            raise ValueError(msg)
        if self.workers < 1:
            msg = f"workers must be >= 1, got {self.workers}"
            raise ValueError(msg)
        if self.backend not in BACKENDS:
            msg = f"Unknown backend '{self.backend}'. Available: {', '.join(BACKENDS)}"
            raise ValueError(msg)
