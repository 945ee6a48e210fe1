"""PNG encoder/decoder boundary.

Encoding:
    - Input: (H, W, 3) uint8 PixelBuffer, row 0 = top of image
    - Output: 8-bit RGB, non-interlaced PNG, written top row first
    - PNG format is forced; the path only needs to *contain* ".png"
    - Atomic: tmp sibling → rename; nothing partial is left on failure

Decoding:
    - read_png_info() reads the IHDR chunk (the authoritative source for bit
      depth and colour type) and checks the image decodes with Pillow

Usage:
    from src.plotpng.encoder import write_png, read_png_info

    write_png(buffer, "plot.png")
    info = read_png_info("plot.png")   # PNGInfo(width=300, height=300, bit_depth=8, ...)
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from src.utils import fs

from .errors import ImageIOError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'

# IHDR colour type → samples per pixel
_CHANNELS_BY_COLOR_TYPE = {0: 1, 2: 3, 3: 1, 4: 2, 6: 4}


@dataclass(frozen=True)
class PNGInfo:
    """Header fields of a decoded PNG file."""

    width: int
    height: int
    bit_depth: int
    color_type: int
    channels: int
    interlaced: bool


def write_png(buffer: np.ndarray, path: Union[str, Path]) -> Path:
    """Serialize a pixel buffer to an 8-bit RGB PNG.

    Parameters
    ----------
    buffer : np.ndarray
        (H, W, 3) uint8 pixel rows, top row first
    path : str or Path
        Output file path

    Returns
    -------
    Path
        Path of the written file

    Raises
    ------
    ValueError
        If the buffer is not (H, W, 3) uint8
    ImageIOError
        If the file cannot be opened or written
    """
    path = Path(path)

    if buffer.dtype != np.uint8 or buffer.ndim != 3 or buffer.shape[2] != 3:
        raise ValueError(
            f"pixel buffer must be (H, W, 3) uint8, got {buffer.shape} {buffer.dtype}"
        )

    try:
        fs.atomic_save_image(buffer, path, pil_kwargs={'format': 'PNG'})
    except RuntimeError as e:
        raise ImageIOError(f"[write_png_file] File {path} could not be written: {e.__cause__ or e}") from e

    logger.debug(f"Wrote {buffer.shape[1]}×{buffer.shape[0]} RGB PNG to {path}")
    return path


def read_png_info(path: Union[str, Path]) -> PNGInfo:
    """Decode the header of a PNG file.

    Parameters
    ----------
    path : str or Path
        PNG file path

    Returns
    -------
    PNGInfo
        Width, height, bit depth, colour type, channel count, interlacing

    Raises
    ------
    ImageIOError
        If the file is missing, truncated, or not a decodable PNG
    """
    path = Path(path)

    try:
        with open(path, 'rb') as f:
            header = f.read(33)
    except OSError as e:
        raise ImageIOError(f"[read_png_file] File {path} could not be opened for reading: {e}") from e

    # signature (8) + IHDR length (4) + type (4) + 13 data bytes
    if len(header) < 29 or header[:8] != PNG_SIGNATURE or header[12:16] != b'IHDR':
        raise ImageIOError(f"[read_png_file] File {path} is not recognized as a PNG file")

    width, height, bit_depth, color_type, _, _, interlace = struct.unpack('>IIBBBBB', header[16:29])

    try:
        with Image.open(path) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ImageIOError(f"[read_png_file] File {path} could not be decoded: {e}") from e

    return PNGInfo(
        width=width,
        height=height,
        bit_depth=bit_depth,
        color_type=color_type,
        channels=_CHANNELS_BY_COLOR_TYPE.get(color_type, 0),
        interlaced=interlace == 1,
    )
