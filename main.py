#!/usr/bin/env python3
"""
main.py — Quick-start entry point.

Drop images into ``images/`` and run:

    python main.py batch

Or use the full CLI:

    python -m pixel_dither.cli batch --help
    python -m pixel_dither.cli single sprite.png -p gameboy -n 2
"""

from pixel_dither.cli import app

if __name__ == "__main__":
    app()
