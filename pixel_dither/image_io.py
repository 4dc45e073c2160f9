"""Image loading, saving, and comparison-grid generation."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont, ImageSequence, UnidentifiedImageError

from pixel_dither.errors import DecodeError
from pixel_dither.palette import Palette


def load_frames(path: str | Path) -> tuple[list[np.ndarray], list[int] | None]:
    """Load every frame of an image as RGBA.

    Still images yield a single frame.  Animated GIF/PNG/WebP yield one
    array per frame, each to be processed independently.

    Returns:
        ``(frames, durations)``: list of (H, W, 4) uint8 arrays and the
        per-frame durations in ms (``None`` for still images).

    Raises:
        DecodeError: The file cannot be read as an image.
    """
    try:
        with Image.open(path) as img:
            frames = [
                np.array(frame.convert("RGBA"), dtype=np.uint8)
                for frame in ImageSequence.Iterator(img)
            ]
            durations = None
            if getattr(img, "is_animated", False):
                durations = [
                    int(frame.info.get("duration", 100))
                    for frame in ImageSequence.Iterator(img)
                ]
    except (UnidentifiedImageError, OSError) as exc:
        msg = f"Cannot decode image {path}: {exc}"
        raise DecodeError(msg) from exc
    return frames, durations


def save_frames(
    frames: Sequence[np.ndarray],
    path: str | Path,
    durations: Sequence[int] | None = None,
) -> None:
    """Save one RGBA frame as a still image, several as an animation.

    WebP is written lossless, keeping colours under zero alpha, so saved
    pixels stay exact palette entries.
    """
    images = [Image.fromarray(f.astype(np.uint8)) for f in frames]
    options = {}
    if Path(path).suffix.lower() == ".webp":
        options = {"lossless": True, "exact": True}
    if len(images) == 1:
        images[0].save(path, **options)
        return
    images[0].save(
        path,
        **options,
        save_all=True,
        append_images=images[1:],
        duration=list(durations) if durations else 100,
        loop=0,
        disposal=2,
    )


def _checkerboard(w: int, h: int, cell: int = 8) -> Image.Image:
    ys, xs = np.mgrid[0:h, 0:w]
    light = ((xs // cell + ys // cell) % 2).astype(bool)
    board = np.where(light[..., np.newaxis], 200, 150).astype(np.uint8)
    return Image.fromarray(np.repeat(board, 3, axis=2))


def _palette_swatch(palette: Palette, w: int, h: int) -> Image.Image:
    """Palette entries as a grid of squares fitting a w x h panel."""
    n = len(palette)
    cols = max(1, int(np.ceil(np.sqrt(n * w / max(h, 1)))))
    rows = int(np.ceil(n / cols))
    cell_w = max(1, w // cols)
    cell_h = max(1, h // rows)

    swatch = Image.new("RGB", (w, h), (30, 30, 30))
    draw = ImageDraw.Draw(swatch)
    for i, color in enumerate(palette.rgb):
        r, c = divmod(i, cols)
        x0, y0 = c * cell_w, r * cell_h
        draw.rectangle(
            (x0, y0, x0 + cell_w - 1, y0 + cell_h - 1),
            fill=tuple(int(v) for v in color),
        )
    return swatch


def make_comparison_grid(
    source: np.ndarray,
    result: np.ndarray,
    palette: Palette,
    output_path: str | Path,
) -> None:
    """Create a 3-panel comparison: Source | Dithered | Palette.

    Panels keep the source pixel size; transparency is shown over a
    checkerboard.
    """
    panel_h, panel_w = source.shape[:2]
    label_height = 36

    panels = []
    for arr in (source, result):
        panel = _checkerboard(panel_w, panel_h)
        rgba = Image.fromarray(arr.astype(np.uint8))
        panel.paste(rgba, (0, 0), rgba)
        panels.append(panel)
    panels.append(_palette_swatch(palette, panel_w, panel_h))
    labels = ["Source", "Dithered", f"Palette ({len(palette)})"]

    gap = 8
    total_w = len(panels) * panel_w + (len(panels) - 1) * gap
    total_h = panel_h + label_height

    canvas = Image.new("RGB", (total_w, total_h), (30, 30, 30))
    draw = ImageDraw.Draw(canvas)

    try:
        font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", 18,
        )
    except OSError:
        font = ImageFont.load_default()

    for i, (panel, label) in enumerate(zip(panels, labels, strict=False)):
        x = i * (panel_w + gap)
        canvas.paste(panel, (x, label_height))

        bbox = draw.textbbox((0, 0), label, font=font)
        text_w = bbox[2] - bbox[0]
        tx = x + (panel_w - text_w) // 2
        draw.text((tx, 6), label, fill=(220, 220, 220), font=font)

    canvas.save(output_path)
