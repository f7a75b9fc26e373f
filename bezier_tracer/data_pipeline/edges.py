"""Canny edge detection for photographic sources.

Pipeline (full resolution, float64 throughout):
    1. Grayscale: L = 0.299R + 0.587G + 0.114B
    2. Separable Gaussian blur, radius ceil(3σ), border samples clamp to the
       nearest valid pixel (no wraparound)
    3. Sobel gradients: magnitude + atan2 direction; 1-px border is zero
    4. Non-maximum suppression along the gradient quantized to
       0°/45°/90°/135° (mod 180°)
    5. Double threshold relative to max(NMS), then hysteresis: weak pixels
       survive only if 8-connected to a strong seed

An image without any gradient yields an empty mask; the orchestrator treats
that as "no edges found".
"""

import logging
import math

import numpy as np
from scipy import ndimage

from .classifier import luminance
from .image_loader import Raster

logger = logging.getLogger(__name__)

EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)


def to_grayscale(raster: Raster) -> np.ndarray:
    """Float luminance (H, W)."""
    return luminance(raster)


def gaussian_kernel(sigma: float) -> np.ndarray:
    """Normalized 1-D Gaussian of radius ceil(3σ); [1.0] for σ ≤ 0."""
    if sigma <= 0:
        return np.ones(1, dtype=np.float64)
    radius = int(math.ceil(3.0 * sigma))
    x = np.arange(-radius, radius + 1, dtype=np.float64)
    kernel = np.exp(-(x * x) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


def gaussian_blur(gray: np.ndarray, sigma: float) -> np.ndarray:
    """Separable blur: horizontal pass, then vertical, clamped borders."""
    kernel = gaussian_kernel(sigma)
    if kernel.size == 1:
        return np.asarray(gray, dtype=np.float64).copy()
    out = ndimage.correlate1d(np.asarray(gray, dtype=np.float64), kernel, axis=1, mode='nearest')
    return ndimage.correlate1d(out, kernel, axis=0, mode='nearest')


def sobel_gradients(gray: np.ndarray):
    """3×3 Sobel gradients.

    Returns
    -------
    magnitude : np.ndarray
        (H, W) Euclidean norm, zero on the 1-px border
    direction : np.ndarray
        (H, W) atan2(gy, gx) in radians, zero on the border
    """
    g = np.asarray(gray, dtype=np.float64)
    h, w = g.shape
    gx = np.zeros((h, w), dtype=np.float64)
    gy = np.zeros((h, w), dtype=np.float64)

    if h >= 3 and w >= 3:
        tl, tc, tr = g[:-2, :-2], g[:-2, 1:-1], g[:-2, 2:]
        ml, mr = g[1:-1, :-2], g[1:-1, 2:]
        bl, bc, br = g[2:, :-2], g[2:, 1:-1], g[2:, 2:]
        gx[1:-1, 1:-1] = (tr + 2.0 * mr + br) - (tl + 2.0 * ml + bl)
        gy[1:-1, 1:-1] = (bl + 2.0 * bc + br) - (tl + 2.0 * tc + tr)

    magnitude = np.hypot(gx, gy)
    direction = np.arctan2(gy, gx)
    return magnitude, direction


def non_maximum_suppression(magnitude: np.ndarray, direction: np.ndarray) -> np.ndarray:
    """Thin gradient ridges to single-pixel width.

    A pixel keeps its magnitude only if it is ≥ both neighbours along its
    quantized gradient direction; zero-magnitude pixels are dropped. The image
    border has no magnitude, so only interior pixels are examined.
    """
    h, w = magnitude.shape
    out = np.zeros_like(magnitude)
    if h < 3 or w < 3:
        return out

    angle = np.degrees(direction[1:-1, 1:-1]) % 180.0
    mag = magnitude[1:-1, 1:-1]

    # Neighbour offsets (dy, dx) per direction bin; y grows downward.
    bins = [
        ((angle < 22.5) | (angle >= 157.5), (0, 1)),
        ((angle >= 22.5) & (angle < 67.5), (1, 1)),
        ((angle >= 67.5) & (angle < 112.5), (1, 0)),
        ((angle >= 112.5) & (angle < 157.5), (1, -1)),
    ]

    keep = np.zeros_like(mag, dtype=bool)
    for selector, (dy, dx) in bins:
        ahead = magnitude[1 + dy:h - 1 + dy, 1 + dx:w - 1 + dx]
        behind = magnitude[1 - dy:h - 1 - dy, 1 - dx:w - 1 - dx]
        keep |= selector & (mag >= ahead) & (mag >= behind)

    keep &= mag > 0
    out[1:-1, 1:-1] = np.where(keep, mag, 0.0)
    return out


def hysteresis_threshold(nms: np.ndarray, low_ratio: float, high_ratio: float) -> np.ndarray:
    """Double threshold + 8-connected hysteresis linking.

    Thresholds are ``max(nms) × ratio``. Connected components of the
    candidate set (strong ∪ weak) that contain at least one strong pixel are
    kept, which is exactly the set a breadth-first search from every strong
    seed would reach.
    """
    peak = float(nms.max()) if nms.size else 0.0
    if peak <= 0:
        return np.zeros(nms.shape, dtype=bool)

    high = peak * high_ratio
    low = peak * low_ratio

    strong = nms >= high
    candidates = (nms >= low) & (nms > 0)
    candidates |= strong

    labels, n = ndimage.label(candidates, structure=EIGHT_CONNECTED)
    if n == 0:
        return np.zeros(nms.shape, dtype=bool)

    seeded = np.zeros(n + 1, dtype=bool)
    seeded[np.unique(labels[strong])] = True
    seeded[0] = False
    return seeded[labels]


def canny_edge_detection(
    raster: Raster,
    sigma: float,
    low_ratio: float,
    high_ratio: float
) -> np.ndarray:
    """Full Canny pipeline.

    Parameters
    ----------
    raster : Raster
        Source raster
    sigma : float
        Gaussian blur sigma (px)
    low_ratio, high_ratio : float
        Hysteresis thresholds relative to the strongest suppressed gradient

    Returns
    -------
    edge_mask : np.ndarray
        (H, W) bool; empty when the image has no gradient
    """
    gray = to_grayscale(raster)
    blurred = gaussian_blur(gray, sigma)
    magnitude, direction = sobel_gradients(blurred)
    nms = non_maximum_suppression(magnitude, direction)
    edges = hysteresis_threshold(nms, low_ratio, high_ratio)

    logger.debug(
        "Canny sigma=%.2f low=%.3f high=%.3f: %d edge pixels",
        sigma, low_ratio, high_ratio, int(edges.sum()),
    )
    return edges
