#!/usr/bin/env python3
"""Plot a mathematical expression into a PNG file.

Thin wrapper around src.plotpng.cli for running from a source checkout.

Usage:
    python scripts/plot_png.py parabola.png "x^2"
    python scripts/plot_png.py heatmap.png "sin(6*x)*cos(6*y)"
    python scripts/plot_png.py big.png "x*y" --config configs/plot_png.v1.yaml -v

Outputs:
    - <file_out>: 8-bit RGB PNG (300x300 unless configured otherwise)
"""

import sys

from src.plotpng.cli import main


if __name__ == '__main__':
    sys.exit(main())
