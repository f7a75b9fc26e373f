"""Binary foreground mask extraction.

Two branches, chosen per image:
    1. ALPHA: more than 10% of pixels have alpha < 10 → the alpha channel
       defines the shape; foreground = alpha > 128
    2. LUMINANCE: rounded integer luminance thresholded at the Otsu optimum;
       foreground = luminance < threshold (dark shapes on light ground)

Both return an (H, W) bool array aligned with the raster.
"""

import logging
from typing import Optional

import numpy as np

from ..utils import validators
from .classifier import luminance, transparent_fraction
from .image_loader import Raster

logger = logging.getLogger(__name__)


def uses_alpha(
    raster: Raster,
    cfg: Optional[validators.TracerConfigV1] = None
) -> bool:
    """True when transparency is meaningfully used to define the shape."""
    c = (cfg or validators.TracerConfigV1()).classifier
    return transparent_fraction(raster, c.alpha_transparent_level) > c.alpha_fraction


def luminance_u8(raster: Raster) -> np.ndarray:
    """Rounded integer luminance (H, W) in [0, 255]."""
    return np.clip(np.rint(luminance(raster)), 0, 255).astype(np.int64)


def otsu_threshold(gray, default: int = 128) -> int:
    """Otsu threshold of integer gray levels.

    Scans thresholds 0..255 accumulating background weight and sum; the first
    threshold with the strictly greatest between-class variance
    ``wB·wF·(mB − mF)²`` wins.

    Parameters
    ----------
    gray : array-like
        Integer gray levels in [0, 255], any shape
    default : int
        Returned when no threshold splits the pixels into two classes

    Returns
    -------
    int
        Threshold in [0, 255]
    """
    values = np.asarray(gray, dtype=np.int64).ravel()
    if values.size == 0:
        return default

    hist = np.bincount(np.clip(values, 0, 255), minlength=256).astype(np.float64)
    total = float(values.size)
    sum_total = float(np.dot(np.arange(256), hist))

    sum_b = 0.0
    w_b = 0.0
    max_var = -1.0
    threshold = default

    for i in range(256):
        w_b += hist[i]
        if w_b == 0:
            continue
        w_f = total - w_b
        if w_f == 0:
            break
        sum_b += i * hist[i]
        m_b = sum_b / w_b
        m_f = (sum_total - sum_b) / w_f
        var_between = w_b * w_f * (m_b - m_f) ** 2
        if var_between > max_var:
            max_var = var_between
            threshold = i

    return threshold


def image_to_mask(
    raster: Raster,
    cfg: Optional[validators.TracerConfigV1] = None
) -> np.ndarray:
    """Convert a raster to a binary foreground mask.

    Parameters
    ----------
    raster : Raster
        Source raster
    cfg : TracerConfigV1, optional
        Alpha/Otsu settings; defaults when None

    Returns
    -------
    mask : np.ndarray
        (H, W) bool, True = foreground
    """
    cfg = cfg or validators.TracerConfigV1()

    if uses_alpha(raster, cfg):
        mask = raster.alpha > cfg.mask.alpha_foreground_level
        logger.debug("Mask from alpha channel: %d foreground pixels", int(mask.sum()))
        return mask

    gray = luminance_u8(raster)
    threshold = otsu_threshold(gray, default=cfg.mask.otsu_default)
    mask = gray < threshold
    logger.debug("Mask from Otsu threshold %d: %d foreground pixels", threshold, int(mask.sum()))
    return mask
