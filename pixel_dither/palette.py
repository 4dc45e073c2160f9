"""Palette loading: hex lists, palette files, swatch images, and presets."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from pixel_dither.color_utils import rgb_to_oklab
from pixel_dither.errors import DecodeError, EmptyPalette, InvalidPaletteEntry

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"[0-9a-fA-F]{6}")

PALETTE_FILE_SUFFIXES = frozenset({".hex", ".txt"})

# Named fixed palettes: name -> hex list (no '#')
PRESET_PALETTES: dict[str, list[str]] = {
    "bw": ["000000", "ffffff"],
    "gameboy": ["0f380f", "306230", "8bac0f", "9bbc0f"],
    "cga": [
        "000000", "0000aa", "00aa00", "00aaaa", "aa0000", "aa00aa", "aa5500", "aaaaaa",
        "555555", "5555ff", "55ff55", "55ffff", "ff5555", "ff55ff", "ffff55", "ffffff",
    ],
    "pico8": [
        "000000", "1d2b53", "7e2553", "008751", "ab5236", "5f574f", "c2c3c7", "fff1e8",
        "ff004d", "ffa300", "ffec27", "00e436", "29adff", "83769c", "ff77a8", "ffccaa",
    ],
    "sweetie16": [
        "1a1c2c", "5d275d", "b13e53", "ef7d57", "ffcd75", "a7f070", "38b764", "257179",
        "29366f", "3b5dc9", "41a6f6", "73eff7", "f4f4f4", "94b0c2", "566c86", "333c57",
    ],
}


@dataclass(frozen=True, eq=False)
class Palette:
    """An immutable, ordered set of palette colours.

    Attributes:
        hex_codes: Lower-case hex strings in load order.
        rgb:       (K, 3) uint8, read-only.
        oklab:     (K, 3) float64 Oklab, read-only.
    """

    hex_codes: tuple[str, ...]
    rgb: np.ndarray
    oklab: np.ndarray

    def __len__(self) -> int:
        return len(self.hex_codes)

    @property
    def lightness(self) -> np.ndarray:
        """(K,) Oklab L of every entry."""
        return self.oklab[:, 0]


def parse_hex_color(entry: str, position: int = 0) -> np.ndarray:
    """Parse ``'rrggbb'`` to a (3,) uint8 array.

    Raises:
        InvalidPaletteEntry: *entry* is not exactly six hex digits.
    """
    if not isinstance(entry, str) or not _HEX_RE.fullmatch(entry):
        raise InvalidPaletteEntry(entry, position)
    return np.array([int(entry[i : i + 2], 16) for i in (0, 2, 4)], dtype=np.uint8)


def load_palette(hex_strings: Iterable[str]) -> Palette:
    """Build a :class:`Palette` from ``'rrggbb'`` strings.

    Every entry is validated before anything is built, so a single bad
    entry fails the whole load.

    Raises:
        InvalidPaletteEntry: An entry is malformed.
        EmptyPalette: No entries were given.
    """
    entries = list(hex_strings)
    if not entries:
        msg = "Palette is empty: at least one colour is required"
        raise EmptyPalette(msg)

    rgb = np.stack([parse_hex_color(e, i) for i, e in enumerate(entries)])
    oklab = rgb_to_oklab(rgb.astype(np.float64) / 255.0)
    rgb.setflags(write=False)
    oklab.setflags(write=False)

    logger.debug("Loaded palette with %d colours", len(entries))
    return Palette(
        hex_codes=tuple(e.lower() for e in entries),
        rgb=rgb,
        oklab=oklab,
    )


def read_palette_file(path: str | Path) -> Palette:
    """Load a text palette: one colour per line.

    Blank lines and lines starting with ``;`` or ``//`` are skipped.  A
    leading ``#`` on an entry is tolerated, as written by most palette
    editors' ``.hex`` export.
    """
    entries = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith((";", "//")):
            continue
        entries.append(line.removeprefix("#"))
    return load_palette(entries)


def read_palette_image(path: str | Path) -> Palette:
    """Load a palette from a swatch image.

    Unique opaque colours are taken in row-major order of first appearance.
    Fully transparent pixels are ignored.

    Raises:
        DecodeError: The file is not a readable image.
        EmptyPalette: The image holds no opaque pixels.
    """
    try:
        with Image.open(path) as img:
            pixels = np.array(img.convert("RGBA")).reshape(-1, 4)
    except (UnidentifiedImageError, OSError) as exc:
        msg = f"Cannot read palette image {path}: {exc}"
        raise DecodeError(msg) from exc

    opaque = pixels[pixels[:, 3] > 0, :3]
    if len(opaque) == 0:
        msg = f"Palette image {path} has no opaque pixels"
        raise EmptyPalette(msg)
    _, first = np.unique(opaque, axis=0, return_index=True)
    ordered = opaque[np.sort(first)]
    return load_palette("".join(f"{int(v):02x}" for v in color) for color in ordered)


def resolve_palette(value: str) -> Palette:
    """Resolve a CLI palette argument.

    *value* may be a preset name (see :data:`PRESET_PALETTES`), a path to a
    ``.hex``/``.txt`` file, a path to a swatch image, or a comma-separated
    list of hex colours such as ``'ff0000,#00ff00'``.
    """
    key = value.strip().lower()
    if key in PRESET_PALETTES:
        logger.info("Palette: preset '%s'", key)
        return load_palette(PRESET_PALETTES[key])

    path = Path(value)
    if path.is_file():
        logger.info("Palette: %s", path)
        if path.suffix.lower() in PALETTE_FILE_SUFFIXES:
            return read_palette_file(path)
        return read_palette_image(path)

    entries = [e.strip().removeprefix("#") for e in value.split(",") if e.strip()]
    return load_palette(entries)
