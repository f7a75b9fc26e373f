"""Image classification from a small preview raster.

Scores tonal and edge statistics, assigns one of four categories and
recommends Canny parameters for the edge-based strategy:

    alpha         transparency defines the shape (> 10% of pixels alpha < 10)
    logo          few colour buckets and low tonal entropy
    illustration  moderate entropy, or few colours with sparse edges
    photo         everything else

Statistics:
    - Luminance L = 0.299R + 0.587G + 0.114B (float)
    - Contrast ratio = population std(L) / mean(L)
    - Tonal entropy of a 64-bin luminance histogram, normalized by log2(64)
    - Unique colours in a 4×4×4 cube (each channel >> 6)
    - Edge density: share of sampled pixels (every 2nd row/column) whose
      central-difference gradient magnitude exceeds 20

Pure function of pixel data; always returns a result for a non-empty raster.
"""

import logging
import math
from dataclasses import dataclass
from typing import Literal, Optional, Tuple

import numpy as np

from ..utils import validators
from .image_loader import Raster

logger = logging.getLogger(__name__)

ImageKind = Literal["alpha", "logo", "illustration", "photo"]

LUMA_WEIGHTS = (0.299, 0.587, 0.114)
ENTROPY_BINS = 64


@dataclass(frozen=True)
class ImageAnalysis:
    """Derived statistics of one source image (computed once, never mutated)."""
    kind: ImageKind
    uses_alpha: bool
    unique_colors: int
    entropy: float
    edge_density: float
    contrast_ratio: float
    recommended_sigma: float
    recommended_low: float
    recommended_high: float


def luminance(raster: Raster) -> np.ndarray:
    """Float luminance (H, W) from the RGB channels."""
    rgb = raster.rgb.astype(np.float64)
    r, g, b = LUMA_WEIGHTS
    return r * rgb[..., 0] + g * rgb[..., 1] + b * rgb[..., 2]


def transparent_fraction(raster: Raster, level: int = 10) -> float:
    """Share of pixels with alpha strictly below ``level``."""
    return float(np.count_nonzero(raster.alpha < level)) / raster.alpha.size


def tonal_entropy(lum: np.ndarray) -> float:
    """Normalized Shannon entropy (0–1) of a 64-bin luminance histogram."""
    bins = np.clip((lum // 4).astype(np.int64), 0, ENTROPY_BINS - 1)
    hist = np.bincount(bins.ravel(), minlength=ENTROPY_BINS).astype(np.float64)
    p = hist[hist > 0] / lum.size
    return float(-(p * np.log2(p)).sum() / math.log2(ENTROPY_BINS))


def count_color_buckets(raster: Raster) -> int:
    """Occupied cells of the 4×4×4 colour cube (2 bits per channel)."""
    q = (raster.rgb >> 6).astype(np.int64)
    codes = (q[..., 0] << 4) | (q[..., 1] << 2) | q[..., 2]
    return int(np.unique(codes).size)


def edge_density(lum: np.ndarray, gradient_threshold: float = 20.0) -> float:
    """Share of subsampled interior pixels with a strong central difference.

    Samples (x, y) = (1, 1), (3, 1), ... every 2nd column and row.
    """
    h, w = lum.shape
    if h < 3 or w < 3:
        return 0.0
    ys = np.arange(1, h - 1, 2)
    xs = np.arange(1, w - 1, 2)
    yy, xx = np.meshgrid(ys, xs, indexing='ij')

    gx = lum[yy, xx + 1] - lum[yy, xx - 1]
    gy = lum[yy + 1, xx] - lum[yy - 1, xx]
    mag = np.sqrt(gx * gx + gy * gy)
    return float(np.count_nonzero(mag > gradient_threshold)) / mag.size


def recommend_canny_params(
    kind: str,
    density: float,
    cfg: Optional[validators.TracerConfigV1] = None
) -> Tuple[float, float, float]:
    """Canny (sigma, low_ratio, high_ratio) for an image kind.

    Fixed lookup, except noisy photos (edge density above 0.25) get an extra
    0.5 of blur.
    """
    cfg = cfg or validators.TracerConfigV1()
    params = cfg.canny.for_kind(kind)
    sigma = params.sigma
    if kind == "photo" and density > cfg.classifier.photo_noisy_edge_density:
        sigma += cfg.classifier.photo_noisy_sigma_boost
    return sigma, params.low_ratio, params.high_ratio


def classify(
    uses_alpha: bool,
    unique_colors: int,
    entropy: float,
    density: float,
    cfg: Optional[validators.TracerConfigV1] = None
) -> ImageKind:
    """Apply the category rules in order: alpha, logo, illustration, photo."""
    c = (cfg or validators.TracerConfigV1()).classifier
    if uses_alpha:
        return "alpha"
    if unique_colors <= c.logo_max_colors and entropy < c.logo_max_entropy:
        return "logo"
    if entropy < c.illustration_max_entropy or (
        unique_colors <= c.illustration_max_colors
        and density < c.illustration_max_edge_density
    ):
        return "illustration"
    return "photo"


def analyze_image(
    raster: Raster,
    cfg: Optional[validators.TracerConfigV1] = None
) -> ImageAnalysis:
    """Classify a (preview) raster and recommend Canny parameters.

    Parameters
    ----------
    raster : Raster
        Preview raster (typically 256 × 256)
    cfg : TracerConfigV1, optional
        Classifier thresholds and Canny table; defaults when None

    Returns
    -------
    ImageAnalysis
    """
    cfg = cfg or validators.TracerConfigV1()
    c = cfg.classifier

    uses_alpha = transparent_fraction(raster, c.alpha_transparent_level) > c.alpha_fraction

    lum = luminance(raster)
    mean = float(lum.mean())
    std = float(lum.std())
    contrast = std / mean if mean > 0 else 0.0

    entropy = tonal_entropy(lum)
    colors = count_color_buckets(raster)
    density = edge_density(lum, c.edge_gradient)

    kind = classify(uses_alpha, colors, entropy, density, cfg)
    sigma, low, high = recommend_canny_params(kind, density, cfg)

    logger.debug(
        "Analysis: kind=%s alpha=%s colors=%d entropy=%.3f edges=%.3f contrast=%.3f",
        kind, uses_alpha, colors, entropy, density, contrast,
    )

    return ImageAnalysis(
        kind=kind,
        uses_alpha=uses_alpha,
        unique_colors=colors,
        entropy=entropy,
        edge_density=density,
        contrast_ratio=contrast,
        recommended_sigma=sigma,
        recommended_low=low,
        recommended_high=high,
    )
