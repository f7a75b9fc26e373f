"""Cubic Bézier fitting of polylines (Schneider's algorithm).

Given an ordered point sequence and an error tolerance, produce a minimal
chain of cubic segments:
    1. Estimate end tangents from the first two / last two points
    2. Chord-length parameterize the points to u ∈ [0, 1]
    3. Least-squares solve for the tangent scales (alphaL, alphaR) with fixed
       endpoints and tangent directions
    4. Accept when the max deviation at the sampled u is below the tolerance
    5. If the deviation is below tolerance², refine u with up to 5
       Newton–Raphson rounds and refit
    6. Otherwise split at the worst point and recurse on both halves with a
       shared, opposite-facing centre tangent

Recursion is capped at depth 50; past the cap a segment is emitted with
control points at one-third of the chord along each tangent, which bounds
run time at the cost of exceeding the tolerance on that segment.

Output segments chain: segment i's p3 is segment i+1's p0.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ..utils import geometry

MAX_DEPTH = 50
MAX_REPARAM_ITERATIONS = 5
SINGULAR_EPS = 1e-6
ALPHA_EPS = 1e-6

Point = Tuple[float, float]


@dataclass(frozen=True)
class BezierSegment:
    """Cubic segment: anchor p0, control points c1 and c2, anchor p3."""
    p0: Point
    c1: Point
    c2: Point
    p3: Point

    @classmethod
    def from_array(cls, ctrl) -> 'BezierSegment':
        c = np.asarray(ctrl, dtype=np.float64)
        return cls(*(tuple(float(v) for v in row) for row in c))

    def as_array(self) -> np.ndarray:
        """Control polygon, shape (4, 2)."""
        return np.array([self.p0, self.c1, self.c2, self.p3], dtype=np.float64)

    def to_dict(self) -> dict:
        """Plain-float mapping {p0, c1, c2, p3} of [x, y] lists."""
        return {
            name: [float(v) for v in getattr(self, name)]
            for name in ('p0', 'c1', 'c2', 'p3')
        }


Stroke = List[BezierSegment]


def normalize(v) -> np.ndarray:
    """Unit vector of v; zero vector when v has no length."""
    v = np.asarray(v, dtype=np.float64)
    n = float(np.hypot(v[0], v[1]))
    if n == 0:
        return np.zeros(2, dtype=np.float64)
    return v / n


def chord_length_parameterize(points: np.ndarray) -> np.ndarray:
    """Cumulative chord length normalized to [0, 1]; all zeros if degenerate."""
    seg = np.hypot(*np.diff(points, axis=0).T)
    u = np.concatenate([[0.0], np.cumsum(seg)])
    total = u[-1]
    if total == 0:
        return np.zeros_like(u)
    return u / total


def generate_bezier(
    points: np.ndarray,
    u: np.ndarray,
    left_tan: np.ndarray,
    right_tan: np.ndarray
) -> np.ndarray:
    """Least-squares cubic with fixed endpoints and tangent directions.

    Solves the 2×2 normal equations for the tangent scales against the points
    minus their endpoint terms ``b0·p0 + b3·p3``. A singular system or a scale
    below 1e-6 falls back to one third of the chord length.

    Returns
    -------
    np.ndarray
        Control polygon (4, 2)
    """
    p0 = points[0]
    p3 = points[-1]

    mt = 1.0 - u
    b0 = mt ** 3
    b1 = 3.0 * u * mt ** 2
    b2 = 3.0 * u ** 2 * mt
    b3 = u ** 3

    a1 = b1[:, None] * left_tan
    a2 = b2[:, None] * right_tan

    c00 = float(np.sum(a1 * a1))
    c01 = float(np.sum(a1 * a2))
    c11 = float(np.sum(a2 * a2))

    # Only the endpoint weights are removed from the right-hand side; traced
    # output depends on this exact form.
    base = np.outer(b0, p0) + np.outer(b3, p3)
    tmp = points - base
    x0 = float(np.sum(a1 * tmp))
    x1 = float(np.sum(a2 * tmp))

    det = c00 * c11 - c01 * c01
    alpha_l = 0.0
    alpha_r = 0.0
    if abs(det) > SINGULAR_EPS:
        alpha_l = (x0 * c11 - x1 * c01) / det
        alpha_r = (c00 * x1 - c01 * x0) / det

    if alpha_l < ALPHA_EPS or alpha_r < ALPHA_EPS:
        seg_length = float(np.hypot(*(p3 - p0)))
        alpha_l = alpha_r = seg_length / 3.0

    return np.array([p0, p0 + left_tan * alpha_l, p3 + right_tan * alpha_r, p3])


def compute_max_error(points: np.ndarray, bezier: np.ndarray, u: np.ndarray) -> Tuple[float, int]:
    """Largest distance between points[i] and B(u[i]), and its index.

    The index defaults to the middle point when every distance is zero.
    """
    curve = geometry.bezier_cubic_eval(bezier, u)
    dist = np.hypot(*(curve - points).T)
    max_dist = 0.0
    split = len(points) // 2
    for i, d in enumerate(dist.tolist()):
        if d > max_dist:
            max_dist = d
            split = i
    return max_dist, split


def newton_raphson_root_find(bezier: np.ndarray, point: np.ndarray, u: float) -> float:
    """One Newton step toward the parameter closest to ``point``."""
    q = geometry.bezier_cubic_eval(bezier, u)
    q1 = geometry.bezier_cubic_deriv(bezier, u)
    q2 = geometry.bezier_cubic_deriv2(bezier, u)
    diff = q - point
    numerator = float(np.dot(diff, q1))
    denominator = float(np.dot(q1, q1) + np.dot(diff, q2))
    if denominator == 0:
        return u
    return u - numerator / denominator


def reparameterize(points: np.ndarray, u: np.ndarray, bezier: np.ndarray) -> np.ndarray:
    return np.array([
        newton_raphson_root_find(bezier, p, float(ui))
        for p, ui in zip(points, u)
    ])


def _third_chord_segment(points: np.ndarray, left_tan: np.ndarray, right_tan: np.ndarray) -> np.ndarray:
    p0 = points[0]
    p3 = points[-1]
    dist = float(np.hypot(*(p3 - p0))) / 3.0
    return np.array([p0, p0 + left_tan * dist, p3 + right_tan * dist, p3])


def fit_cubic(
    points: np.ndarray,
    left_tan: np.ndarray,
    right_tan: np.ndarray,
    error: float,
    depth: int = 0
) -> List[np.ndarray]:
    """Recursive fit of one point run; returns control polygons (4, 2)."""
    if len(points) == 2 or depth > MAX_DEPTH:
        return [_third_chord_segment(points, left_tan, right_tan)]

    u = chord_length_parameterize(points)
    bezier = generate_bezier(points, u, left_tan, right_tan)
    max_error, split = compute_max_error(points, bezier, u)

    if max_error < error:
        return [bezier]

    # Compared against error², not a fixed multiple of error.
    if max_error < error * error:
        for _ in range(MAX_REPARAM_ITERATIONS):
            u = reparameterize(points, u, bezier)
            bezier = generate_bezier(points, u, left_tan, right_tan)
            max_error, split = compute_max_error(points, bezier, u)
            if max_error < error:
                return [bezier]

    split = min(max(split, 1), len(points) - 2)

    center_tan = normalize(points[split - 1] - points[split + 1])
    left = fit_cubic(points[:split + 1], left_tan, center_tan, error, depth + 1)
    right = fit_cubic(points[split:], -center_tan, right_tan, error, depth + 1)
    return left + right


def fit_curve(points, error: float = 4.0) -> Stroke:
    """Fit a chain of cubic Bézier segments to a polyline.

    Parameters
    ----------
    points : array-like
        (N, 2) polyline
    error : float
        Max allowed deviation at the sampled parameters

    Returns
    -------
    Stroke
        Chained segments; empty for fewer than 2 points
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 2:
        return []

    left_tan = normalize(pts[1] - pts[0])
    right_tan = normalize(pts[-2] - pts[-1])
    ctrls = fit_cubic(pts, left_tan, right_tan, error)
    return [BezierSegment.from_array(c) for c in ctrls]


def max_segment_error(segment: BezierSegment, points) -> float:
    """Max distance from each point to its chord-length sample on the segment."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    u = chord_length_parameterize(pts)
    max_dist, _ = compute_max_error(pts, segment.as_array(), u)
    return max_dist
