"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import numpy as np
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from pixel_dither.color_utils import mean_delta_e
from pixel_dither.config import DitherConfig
from pixel_dither.errors import PixelDitherError
from pixel_dither.image_io import load_frames, make_comparison_grid, save_frames
from pixel_dither.palette import PRESET_PALETTES, Palette, load_palette, resolve_palette
from pixel_dither.pipeline import process_frames
from pixel_dither.threshold import bayer_matrix, parse_threshold_map

app = typer.Typer(
    name="pixel-dither",
    help="Reduce images to a fixed palette with Oklab ordered dithering.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()

# Inputs in these formats may be animated and keep their format
_ANIMATED_SUFFIXES = frozenset({".gif", ".webp"})


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _collect_images(folder: Path, extensions: frozenset[str]) -> list[Path]:
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )


def _threshold_map(bayer_size: int, threshold_map: str | None) -> np.ndarray:
    if threshold_map:
        return parse_threshold_map(threshold_map)
    return bayer_matrix(bayer_size)


def _output_path(src: Path, output_dir: Path, fmt: str) -> Path:
    suffix = src.suffix.lower()
    if suffix not in _ANIMATED_SUFFIXES:
        suffix = f".{fmt}"
    return output_dir / f"{src.stem}_dithered{suffix}"


def _dither_file(
    src: Path,
    dst: Path,
    cfg: DitherConfig,
    palette: Palette,
    tmap: np.ndarray,
    comparison: Path | None,
) -> float:
    """Dither one file; returns the mean CIEDE2000 error of the first frame."""
    frames, durations = load_frames(src)
    results = process_frames(
        frames, palette, tmap, cfg.color_strength, cfg.alpha_strength,
        workers=cfg.workers, backend=cfg.backend,
    )
    save_frames(results, dst, durations)
    if comparison is not None:
        make_comparison_grid(frames[0], results[0], palette, comparison)
    return mean_delta_e(frames[0], results[0])


# Defaults come from DitherConfig - single source of truth
_DEFAULTS = DitherConfig()


# -- batch command -----------------------------------------------------

@app.command()
def batch(
    input_dir: Path = typer.Option(
        _DEFAULTS.input_dir, "--input", "-i", help="Folder with source images",
    ),
    output_dir: Path = typer.Option(
        _DEFAULTS.output_dir, "--output", "-o", help="Results folder",
    ),
    palette: str = typer.Option(
        _DEFAULTS.palette, "--palette", "-p",
        help="Preset name, .hex/.txt file, swatch image, or 'rrggbb,rrggbb,...'",
    ),
    bayer_size: int = typer.Option(
        _DEFAULTS.bayer_size, "--bayer-size", "-n", help="Bayer map side (power of 2)",
    ),
    threshold_map: str | None = typer.Option(
        None, "--threshold-map", help="Explicit map, rows split by ';', e.g. '0,2;3,1'",
    ),
    color_strength: float = typer.Option(
        _DEFAULTS.color_strength, "--color-strength", help="Colour error feedback",
    ),
    alpha_strength: float = typer.Option(
        _DEFAULTS.alpha_strength, "--alpha-strength", help="Alpha error feedback",
    ),
    workers: int = typer.Option(_DEFAULTS.workers, "--workers", "-w", help="Threads"),
    backend: str = typer.Option(
        _DEFAULTS.backend, "--backend", help="'auto', 'linear' or 'kdtree'",
    ),
    comparison: bool = typer.Option(
        _DEFAULTS.save_comparison, "--comparison/--no-comparison",
        help="Save a side-by-side comparison grid",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Dither all images in INPUT_DIR and write results to OUTPUT_DIR."""
    _setup_logging(verbose)

    try:
        cfg = DitherConfig(
            palette=palette,
            bayer_size=bayer_size,
            color_strength=color_strength,
            alpha_strength=alpha_strength,
            workers=workers,
            backend=backend,
            save_comparison=comparison,
            input_dir=input_dir,
            output_dir=output_dir,
        )
        pal = resolve_palette(cfg.palette)
        tmap = _threshold_map(cfg.bayer_size, threshold_map)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    input_dir.mkdir(exist_ok=True)
    output_dir.mkdir(exist_ok=True)

    images = _collect_images(input_dir, cfg.SUPPORTED_EXTENSIONS)
    if not images:
        console.print(f"\n[yellow]No images found in {input_dir}/[/yellow]")
        console.print("Place .png / .gif / ... files there and re-run.\n")
        raise typer.Exit(0)

    n = tmap.shape[0]
    console.print(Panel.fit(
        f"[bold]PIXEL DITHER[/bold]\n"
        f"Palette: {cfg.palette} ({len(pal)} colours)  |  Map: {n}x{n}\n"
        f"Strength: colour {cfg.color_strength}, alpha {cfg.alpha_strength}"
        f"  |  Images: {len(images)}",
        border_style="cyan",
    ))

    failures = 0
    for idx, img_path in enumerate(images, 1):
        console.rule(f"[bold cyan][{idx}/{len(images)}] {img_path.name}[/bold cyan]")
        t_total = time.perf_counter()

        try:
            dst = _output_path(img_path, output_dir, cfg.output_format)
            comp = (
                output_dir / f"{img_path.stem}_comparison.png"
                if cfg.save_comparison else None
            )
            err = _dither_file(img_path, dst, cfg, pal, tmap, comp)
        except PixelDitherError as exc:
            failures += 1
            console.print(f"  [red]✗[/red] {img_path.name}: {escape(str(exc))}")
            continue

        elapsed = time.perf_counter() - t_total
        console.print(
            f"  [green]✓[/green] {dst.name}  "
            f"[dim]ΔE2000={err:.2f}  time={elapsed:.1f}s[/dim]"
        )

    style = "yellow" if failures else "green"
    console.print(Panel.fit(
        f"[bold {style}]ALL DONE[/bold {style}] - results in [bold]{output_dir}/[/bold]"
        + (f"  ({failures} failed)" if failures else ""),
        border_style=style,
    ))
    if failures:
        raise typer.Exit(1)


# -- single-image command ----------------------------------------------

@app.command()
def single(
    source: Path = typer.Argument(..., help="Path to the source image"),
    output: Path = typer.Option(Path("output/dithered.png"), "--output", "-o"),
    palette: str = typer.Option(_DEFAULTS.palette, "--palette", "-p"),
    bayer_size: int = typer.Option(_DEFAULTS.bayer_size, "--bayer-size", "-n"),
    threshold_map: str | None = typer.Option(None, "--threshold-map"),
    color_strength: float = typer.Option(_DEFAULTS.color_strength, "--color-strength"),
    alpha_strength: float = typer.Option(_DEFAULTS.alpha_strength, "--alpha-strength"),
    workers: int = typer.Option(_DEFAULTS.workers, "--workers", "-w"),
    backend: str = typer.Option(_DEFAULTS.backend, "--backend"),
    comparison: Path | None = typer.Option(None, "--comparison", help="Also save a comparison grid"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Dither a single image."""
    _setup_logging(verbose)

    output.parent.mkdir(parents=True, exist_ok=True)
    t0 = time.perf_counter()
    try:
        cfg = DitherConfig(
            palette=palette,
            bayer_size=bayer_size,
            color_strength=color_strength,
            alpha_strength=alpha_strength,
            workers=workers,
            backend=backend,
        )
        pal = resolve_palette(cfg.palette)
        tmap = _threshold_map(cfg.bayer_size, threshold_map)
        err = _dither_file(source, output, cfg, pal, tmap, comparison)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    console.print(
        f"[green]✓[/green] Saved to {output}  "
        f"[dim]{len(pal)} colours  ΔE2000={err:.2f}"
        f"  time={time.perf_counter() - t0:.1f}s[/dim]"
    )


# -- palettes command --------------------------------------------------

@app.command()
def palettes() -> None:
    """List the built-in palette presets."""
    table = Table(title="Palette presets")
    table.add_column("Name", style="bold")
    table.add_column("Colours", justify="right")
    table.add_column("Swatch")
    for name, hexes in PRESET_PALETTES.items():
        pal = load_palette(hexes)
        swatch = "".join(f"[on #{h}]  [/]" for h in pal.hex_codes)
        table.add_row(name, str(len(pal)), swatch)
    console.print(table)


if __name__ == "__main__":
    app()
