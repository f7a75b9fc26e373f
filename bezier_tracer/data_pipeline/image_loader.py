"""Image decoding into immutable RGBA rasters.

Sources:
    - Filesystem paths (str or Path)
    - http(s) URLs, fetched with requests
    - In-memory numpy arrays (tests, callers that already decoded)

Every raster is (H, W, 4) uint8, row-major, marked read-only. Converting with
``size`` stretches the image into a size × size square with bilinear
filtering; the orchestrator maps traced coordinates back with per-axis scale
factors, so the stretch never leaks into the output.

Decoding failures propagate to the caller as ImageLoadError; there is no
partial pipeline output for an image that cannot be read.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path]


class ImageLoadError(ValueError):
    """Raised when an image source cannot be fetched or decoded."""


@dataclass(frozen=True, eq=False)
class Raster:
    """Immutable RGBA pixel grid.

    Attributes
    ----------
    pixels : np.ndarray
        Shape (H, W, 4), dtype uint8, read-only
    """
    pixels: np.ndarray

    def __post_init__(self):
        arr = self.pixels
        if arr.ndim != 3 or arr.shape[2] != 4 or arr.dtype != np.uint8:
            raise ValueError(
                f"Raster pixels must be (H, W, 4) uint8, got {arr.shape} {arr.dtype}"
            )
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ValueError(f"Raster must be non-empty, got {arr.shape}")
        if arr.flags.writeable:
            arr = arr.copy()
            arr.flags.writeable = False
            object.__setattr__(self, 'pixels', arr)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        """(H, W, 3) uint8 view."""
        return self.pixels[..., :3]

    @property
    def alpha(self) -> np.ndarray:
        """(H, W) uint8 view."""
        return self.pixels[..., 3]


def raster_from_array(array: np.ndarray) -> Raster:
    """Wrap a decoded array as a Raster.

    Parameters
    ----------
    array : np.ndarray
        (H, W, 4) RGBA, (H, W, 3) RGB (opaque) or (H, W) grayscale (opaque);
        any numeric dtype, clipped to [0, 255]

    Returns
    -------
    Raster
    """
    arr = np.asarray(array)
    if arr.dtype != np.uint8:
        arr = np.clip(np.rint(arr), 0, 255).astype(np.uint8)

    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr, np.full_like(arr, 255)], axis=-1)
    elif arr.ndim == 3 and arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=-1)
    elif not (arr.ndim == 3 and arr.shape[2] == 4):
        raise ValueError(f"Expected (H, W), (H, W, 3) or (H, W, 4) array, got {arr.shape}")

    return Raster(np.ascontiguousarray(arr))


def _is_url(source: ImageSource) -> bool:
    return isinstance(source, str) and source.lower().startswith(("http://", "https://"))


def _read_source_bytes(source: ImageSource, timeout_s: float) -> bytes:
    if _is_url(source):
        try:
            response = requests.get(source, timeout=timeout_s)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ImageLoadError(f"Failed to fetch image {source}: {e}") from e
        return response.content

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    return path.read_bytes()


def _decode(data: bytes, source: ImageSource) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageLoadError(f"Failed to decode image {source}: {e}") from e

    if img.width == 0 or img.height == 0:
        raise ImageLoadError(f"Image {source} has no pixels ({img.width}x{img.height})")
    return img.convert("RGBA")


def load_image(source: ImageSource, timeout_s: float = 30.0) -> Image.Image:
    """Fetch and decode a source into an RGBA PIL image at native size.

    Raises
    ------
    FileNotFoundError
        If a path source doesn't exist
    ImageLoadError
        If fetching or decoding fails
    """
    img = _decode(_read_source_bytes(source, timeout_s), source)
    logger.debug("Loaded %s (%dx%d)", source, img.width, img.height)
    return img


def image_to_raster(img: Image.Image, size: Optional[int] = None) -> Raster:
    """Convert a decoded PIL image to a Raster, optionally squared to ``size``."""
    if size is not None:
        if size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        img = img.resize((size, size), resample=Image.BILINEAR)
    return Raster(np.asarray(img.convert("RGBA"), dtype=np.uint8).copy())
