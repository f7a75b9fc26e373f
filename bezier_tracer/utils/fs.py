"""Atomic filesystem operations for safe file writes and YAML handling.

Provides:
    - Atomic writes: tmp file → fsync → rename (prevents partial reads)
    - YAML load/save for configs and traced stroke files
    - Atomic PNG export of debug masks
    - Directory creation with exist_ok semantics

Editors that watch the strokes file never observe a half-written document:
the tracer writes to a sibling tmp file and renames it into place.

Usage:
    from bezier_tracer.utils import fs
    cfg_dict = fs.load_yaml("configs/tracer.v1.yaml")
    fs.atomic_yaml_dump(strokes_doc, "outputs/logo.strokes.yaml")
    fs.atomic_save_mask(mask, "outputs/debug/mask.png")
"""

import io
import os
from pathlib import Path
from typing import Any, Dict, Union

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
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Notes
    -----
    The tmp file lives in the target directory so the rename stays on one
    filesystem.
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_save_mask(mask: np.ndarray, path: Union[str, Path]) -> None:
    """Save a binary or uint8 mask as an 8-bit PNG atomically.

    Parameters
    ----------
    mask : np.ndarray
        (H, W) array; bool masks are written as 0/255
    path : Union[str, Path]
        Target file path (extension determines format)
    """
    arr = np.asarray(mask)
    if arr.ndim != 2:
        raise ValueError(f"Mask must be 2D (H, W), got shape {arr.shape}")
    if arr.dtype == bool:
        arr = arr.astype(np.uint8) * 255
    else:
        arr = np.clip(arr, 0, 255).astype(np.uint8)

    path = Path(path)
    buf = io.BytesIO()
    fmt = path.suffix.lstrip('.').upper() or 'PNG'
    if fmt == 'JPG':
        fmt = 'JPEG'
    try:
        Image.fromarray(arr).save(buf, format=fmt)
    except (KeyError, ValueError, OSError) as e:
        raise RuntimeError(f"Failed to encode mask for {path}: {e}") from e
    atomic_write_bytes(path, buf.getvalue())


def atomic_yaml_dump(obj: Any, path: Union[str, Path]) -> None:
    """Save object as YAML atomically.

    Parameters
    ----------
    obj : Any
        Python object (dict, list, primitives)
    path : Union[str, Path]
        Target YAML file path

    Notes
    -----
    Uses PyYAML safe_dump; key order is preserved.
    """
    yaml_str = yaml.safe_dump(
        obj,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True
    )
    atomic_write_bytes(path, yaml_str.encode('utf-8'))


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content ({} for an empty document)

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
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
    return data if data is not None else {}
