"""Geometric operations for polylines and cubic Bézier segments.

Provides:
    - Cubic Bézier evaluation and first/second derivatives
    - Polyline operations: length, bbox
    - Shoelace polygon area
    - Stroke sampling (piecewise Bézier → dense polyline)

Used by:
    - Curve fitter: evaluation + Newton–Raphson derivatives
    - Tests: error bounds, contour bounding boxes, traced area checks

All coordinates are (x, y) in raster pixels or output canvas units; arrays of
points have shape (N, 2).
"""

from typing import Sequence, Tuple

import numpy as np


def _as_ctrl(ctrl) -> np.ndarray:
    arr = np.asarray(ctrl, dtype=np.float64)
    if arr.shape != (4, 2):
        raise ValueError(f"Control polygon must have shape (4, 2), got {arr.shape}")
    return arr


def bezier_cubic_eval(ctrl, t) -> np.ndarray:
    """Evaluate cubic Bézier curve at parameter t.

    Parameters
    ----------
    ctrl : array-like
        Control points [p0, c1, c2, p3], shape (4, 2)
    t : float or array-like
        Parameter value(s) in [0, 1]

    Returns
    -------
    np.ndarray
        Point (2,) for scalar t, or points (N, 2) for array t

    Notes
    -----
    B(t) = (1-t)³·p0 + 3(1-t)²t·c1 + 3(1-t)t²·c2 + t³·p3
    """
    ctrl = _as_ctrl(ctrl)
    t_arr = np.asarray(t, dtype=np.float64)
    tt = np.atleast_1d(t_arr)[:, None]
    mt = 1.0 - tt

    result = (
        (mt ** 3) * ctrl[0]
        + 3.0 * (mt ** 2) * tt * ctrl[1]
        + 3.0 * mt * (tt ** 2) * ctrl[2]
        + (tt ** 3) * ctrl[3]
    )
    return result[0] if t_arr.ndim == 0 else result


def bezier_cubic_deriv(ctrl, t) -> np.ndarray:
    """First derivative B'(t); same shape conventions as bezier_cubic_eval."""
    ctrl = _as_ctrl(ctrl)
    t_arr = np.asarray(t, dtype=np.float64)
    tt = np.atleast_1d(t_arr)[:, None]
    mt = 1.0 - tt

    result = (
        3.0 * (mt ** 2) * (ctrl[1] - ctrl[0])
        + 6.0 * mt * tt * (ctrl[2] - ctrl[1])
        + 3.0 * (tt ** 2) * (ctrl[3] - ctrl[2])
    )
    return result[0] if t_arr.ndim == 0 else result


def bezier_cubic_deriv2(ctrl, t) -> np.ndarray:
    """Second derivative B''(t); same shape conventions as bezier_cubic_eval."""
    ctrl = _as_ctrl(ctrl)
    t_arr = np.asarray(t, dtype=np.float64)
    tt = np.atleast_1d(t_arr)[:, None]
    mt = 1.0 - tt

    result = (
        6.0 * mt * (ctrl[2] - 2.0 * ctrl[1] + ctrl[0])
        + 6.0 * tt * (ctrl[3] - 2.0 * ctrl[2] + ctrl[1])
    )
    return result[0] if t_arr.ndim == 0 else result


def polyline_length(points) -> float:
    """Sum of Euclidean distances between consecutive vertices (0 for N < 2)."""
    pts = np.asarray(points, dtype=np.float64)
    if pts.shape[0] < 2:
        return 0.0
    return float(np.linalg.norm(np.diff(pts, axis=0), axis=1).sum())


def polyline_bbox(points) -> Tuple[float, float, float, float]:
    """Axis-aligned bounding box (xmin, ymin, xmax, ymax).

    Returns (0, 0, 0, 0) if there are no points.
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.shape[0] == 0:
        return (0.0, 0.0, 0.0, 0.0)
    xmin, ymin = pts.min(axis=0)
    xmax, ymax = pts.max(axis=0)
    return (float(xmin), float(ymin), float(xmax), float(ymax))


def polygon_area(points) -> float:
    """Unsigned polygon area via the shoelace formula.

    The polygon is closed implicitly; a repeated last vertex is harmless.
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.shape[0] < 3:
        return 0.0
    x = pts[:, 0]
    y = pts[:, 1]
    return float(0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))


def sample_stroke(segments: Sequence, samples_per_segment: int = 32) -> np.ndarray:
    """Flatten a stroke (chained cubic segments) to a dense polyline.

    Parameters
    ----------
    segments : Sequence
        Objects exposing ``as_array()`` → (4, 2), or raw (4, 2) control arrays
    samples_per_segment : int
        Samples per segment including its start point, default 32

    Returns
    -------
    np.ndarray
        Polyline (N, 2); shared joints between segments appear once
    """
    if not segments:
        return np.zeros((0, 2), dtype=np.float64)

    t = np.linspace(0.0, 1.0, samples_per_segment + 1)
    chunks = []
    for i, seg in enumerate(segments):
        ctrl = seg.as_array() if hasattr(seg, 'as_array') else seg
        pts = bezier_cubic_eval(ctrl, t)
        chunks.append(pts if i == len(segments) - 1 else pts[:-1])
    return np.concatenate(chunks, axis=0)
