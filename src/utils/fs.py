"""Atomic filesystem operations and YAML loading.

Provides:
    - Atomic writes: tmp sibling → fsync → rename (no partial output files)
    - Atomic image save: PIL encodes in memory, then an atomic write
    - YAML loading (safe_load)
    - Directory creation with exist_ok semantics (log file directories)

Writes do not create the target's directory; a missing directory is an
error for the caller to report. On failure the tmp sibling is removed and
any previous file at the target is left untouched.

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from src.utils import fs
    fs.atomic_save_image(buffer, "plot.png", pil_kwargs={"format": "PNG"})
    cfg = fs.load_yaml("configs/plot_png.v1.yaml")
"""

import io
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml
from PIL import Image


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path; its directory must exist
    data : bytes
        Data to write
    tmp_suffix : str
        Appended to the target name for the temporary sibling

    Raises
    ------
    RuntimeError
        If the tmp file cannot be written or renamed; the cause is chained
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        # Atomic rename (overwrites existing file on POSIX)
        tmp_path.replace(path)
    except OSError as e:
        safe_remove(tmp_path)
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_save_image(
    img: np.ndarray,
    path: Union[str, Path],
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Encode an image with PIL and write it atomically.

    Parameters
    ----------
    img : np.ndarray
        (H, W, 3) or (H, W) uint8
    path : Union[str, Path]
        Target file path; the suffix plays no part in choosing the format
    pil_kwargs : Optional[Dict[str, Any]]
        kwargs for PIL.Image.save; ``format`` defaults to "PNG"

    Raises
    ------
    RuntimeError
        If encoding or writing fails
    """
    path = Path(path)
    pil_kwargs = dict(pil_kwargs or {})
    pil_kwargs.setdefault('format', 'PNG')

    encoded = io.BytesIO()
    try:
        Image.fromarray(np.ascontiguousarray(img)).save(encoded, **pil_kwargs)
    except (OSError, ValueError, TypeError, KeyError) as e:
        raise RuntimeError(f"Failed to encode image for {path}: {e}") from e

    atomic_write_bytes(path, encoded.getvalue())


def load_yaml(path: Union[str, Path]) -> Any:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Any
        Parsed YAML content (None for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def safe_remove(path: Union[str, Path]) -> bool:
    """Remove file or symlink safely (no error if missing).

    Returns
    -------
    bool
        True if removed, False if it didn't exist or couldn't be removed
    """
    path = Path(path)
    try:
        if path.is_symlink() or path.exists():
            path.unlink()
            return True
        return False
    except OSError:
        return False
