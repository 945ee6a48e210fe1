"""Test PNG encoding and header decoding.

Tests for src.plotpng.encoder:
    - Written files are 8-bit RGB, non-interlaced, with the buffer's size
    - Pixel rows are written top row first
    - PNG format is forced regardless of the file suffix
    - Unwritable paths raise ImageIOError and leave no temporary file
    - Non-PNG input is rejected by read_png_info()

Run:
    pytest tests/test_encoder.py -v
"""

import numpy as np
import pytest
from PIL import Image

from src.plotpng.encoder import PNG_SIGNATURE, read_png_info, write_png
from src.plotpng.errors import ImageIOError
from src.plotpng.rasterizer import new_pixel_buffer


@pytest.fixture
def gradient_buffer():
    """300×300 buffer with a horizontal red ramp and a blue top row."""
    buffer = new_pixel_buffer(300, 300)
    buffer[..., 0] = np.linspace(0, 255, 300).astype(np.uint8)[None, :]
    buffer[0] = (0, 0, 255)
    return buffer


# ============================================================================
# WRITE
# ============================================================================

def test_write_png_header(tmp_path, gradient_buffer):
    """Output is a 300×300 8-bit RGB non-interlaced PNG."""
    out = write_png(gradient_buffer, tmp_path / "plot.png")
    info = read_png_info(out)

    assert info.width == 300
    assert info.height == 300
    assert info.bit_depth == 8
    assert info.color_type == 2
    assert info.channels == 3
    assert not info.interlaced


def test_write_png_pixels_roundtrip(tmp_path, gradient_buffer):
    """Decoded pixels match the buffer; row 0 is the top row."""
    out = write_png(gradient_buffer, tmp_path / "plot.png")
    with Image.open(out) as img:
        assert img.mode == "RGB"
        decoded = np.asarray(img)
    np.testing.assert_array_equal(decoded, gradient_buffer)
    assert tuple(decoded[0, 0]) == (0, 0, 255)


def test_write_png_forces_format(tmp_path, gradient_buffer):
    """A name that only contains ".png" is still written as PNG."""
    out = write_png(gradient_buffer, tmp_path / "plot.png.bak")
    assert out.read_bytes()[:8] == PNG_SIGNATURE
    assert read_png_info(out).width == 300


def test_write_png_overwrites(tmp_path, gradient_buffer):
    """Existing files are replaced."""
    path = tmp_path / "plot.png"
    write_png(new_pixel_buffer(10, 10), path)
    write_png(gradient_buffer, path)
    assert read_png_info(path).width == 300


def test_write_png_missing_directory(tmp_path, gradient_buffer):
    """Missing parent directory is an I/O error, not created implicitly."""
    target = tmp_path / "missing" / "plot.png"
    with pytest.raises(ImageIOError) as exc_info:
        write_png(gradient_buffer, target)
    assert "[write_png_file]" in str(exc_info.value)
    assert not target.parent.exists()


def test_write_png_leaves_no_temp_file(tmp_path, gradient_buffer):
    """A failed save removes its temporary sibling."""
    # A directory in the way of the final rename
    target = tmp_path / "plot.png"
    target.mkdir()
    (target / "occupied").write_text("x")
    with pytest.raises(ImageIOError):
        write_png(gradient_buffer, target)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["plot.png"]


@pytest.mark.parametrize("buffer", [
    np.zeros((10, 10), dtype=np.uint8),
    np.zeros((10, 10, 4), dtype=np.uint8),
    np.zeros((10, 10, 3), dtype=np.float64),
])
def test_write_png_rejects_bad_buffers(tmp_path, buffer):
    """Only (H, W, 3) uint8 buffers are accepted."""
    with pytest.raises(ValueError):
        write_png(buffer, tmp_path / "plot.png")
    assert not (tmp_path / "plot.png").exists()


# ============================================================================
# READ
# ============================================================================

def test_read_png_info_missing_file(tmp_path):
    """Missing file raises ImageIOError."""
    with pytest.raises(ImageIOError) as exc_info:
        read_png_info(tmp_path / "nope.png")
    assert "[read_png_file]" in str(exc_info.value)


def test_read_png_info_rejects_non_png(tmp_path):
    """Files without the PNG signature are rejected."""
    path = tmp_path / "fake.png"
    path.write_text("definitely not a png file, just some text padding")
    with pytest.raises(ImageIOError):
        read_png_info(path)


def test_read_png_info_rejects_truncated(tmp_path):
    """A bare signature is not a PNG."""
    path = tmp_path / "short.png"
    path.write_bytes(PNG_SIGNATURE)
    with pytest.raises(ImageIOError):
        read_png_info(path)
