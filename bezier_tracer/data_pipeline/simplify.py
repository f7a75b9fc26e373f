"""Ramer–Douglas–Peucker polyline simplification."""

import numpy as np


def point_segment_distances(points, a, b) -> np.ndarray:
    """Distance from each point to segment ab (projection clamped to [0, 1]).

    A degenerate segment (a == b) measures plain distance to a.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    a = np.asarray(a, dtype=np.float64)
    d = np.asarray(b, dtype=np.float64) - a
    denom = float(np.dot(d, d))
    rel = pts - a
    if denom == 0:
        return np.hypot(rel[:, 0], rel[:, 1])
    t = np.clip(rel @ d / denom, 0.0, 1.0)
    proj = rel - t[:, None] * d
    return np.hypot(proj[:, 0], proj[:, 1])


def rdp(points, epsilon: float) -> np.ndarray:
    """Simplify a polyline within ``epsilon``.

    Keeps the first interior point of maximum distance to the chord when that
    distance exceeds epsilon and recurses on both halves; otherwise collapses
    to the two endpoints. Fewer than 3 points are returned unchanged.

    Parameters
    ----------
    points : array-like
        (N, 2) polyline
    epsilon : float
        Distance tolerance

    Returns
    -------
    np.ndarray
        (M, 2) simplified polyline, M ≤ N, endpoints preserved
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 3:
        return pts

    dists = point_segment_distances(pts[1:-1], pts[0], pts[-1])
    index = int(np.argmax(dists)) + 1
    max_dist = float(dists[index - 1])

    if max_dist > epsilon:
        left = rdp(pts[:index + 1], epsilon)
        right = rdp(pts[index:], epsilon)
        return np.concatenate([left[:-1], right], axis=0)

    return np.stack([pts[0], pts[-1]])
