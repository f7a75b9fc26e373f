"""Unit tests for Ramer–Douglas–Peucker simplification.

Tests:
    - Point-to-segment distance (clamped projection, degenerate segment)
    - Collinear points collapse to endpoints
    - Every input point stays within epsilon of the result
    - Idempotence and endpoint preservation
    - Short inputs returned unchanged
"""

import math

import numpy as np
import pytest

from bezier_tracer.data_pipeline import contour
from bezier_tracer.data_pipeline.simplify import point_segment_distances, rdp


def _distance_to_polyline(p, poly):
    return min(float(point_segment_distances([p], a, b)[0]) for a, b in zip(poly[:-1], poly[1:]))


@pytest.fixture
def random_polyline():
    rng = np.random.default_rng(11)
    return np.cumsum(rng.normal(0, 1.5, size=(200, 2)), axis=0)


def test_point_segment_distances():
    pts = [(0, 1), (3, 4), (-3, 0)]
    # Interior projection, then clamped beyond b and before a
    assert np.allclose(point_segment_distances(pts, (-1, 0), (1, 0)), [1.0, math.hypot(2, 4), 2.0])
    # Degenerate segment → point distance
    assert np.allclose(point_segment_distances(pts, (0, 0), (0, 0)), [1.0, 5.0, 3.0])


def test_collinear_collapses():
    pts = np.column_stack([np.arange(10.0), 2.0 * np.arange(10.0)])
    out = rdp(pts, 0.1)
    assert out.tolist() == [[0.0, 0.0], [9.0, 18.0]]


def test_short_inputs_unchanged():
    one = rdp([[1.0, 2.0]], 1.0)
    two = rdp([[1.0, 2.0], [3.0, 4.0]], 1.0)
    assert one.tolist() == [[1.0, 2.0]]
    assert two.tolist() == [[1.0, 2.0], [3.0, 4.0]]


def test_keeps_corner():
    """A right angle survives any epsilon smaller than its offset."""
    pts = [[0, 0], [1, 0], [2, 0], [3, 0], [3, 1], [3, 2], [3, 3]]
    out = rdp(pts, 0.5)
    assert out.tolist() == [[0.0, 0.0], [3.0, 0.0], [3.0, 3.0]]


def test_error_bound(random_polyline):
    """Every input point is within epsilon of the simplified polyline."""
    eps = 2.0
    out = rdp(random_polyline, eps)

    assert len(out) < len(random_polyline)
    worst = max(_distance_to_polyline(p, out) for p in random_polyline)
    assert worst <= eps + 1e-9, f"Point {worst:.3f} away exceeds epsilon {eps}"


def test_endpoints_and_subset(random_polyline):
    out = rdp(random_polyline, 1.0)
    assert np.array_equal(out[0], random_polyline[0])
    assert np.array_equal(out[-1], random_polyline[-1])
    inputs = {tuple(p) for p in random_polyline.tolist()}
    assert all(tuple(p) in inputs for p in out.tolist())


def test_idempotent(random_polyline):
    once = rdp(random_polyline, 1.5)
    twice = rdp(once, 1.5)
    assert np.array_equal(once, twice)


def test_closed_square_contour():
    """Closed loop (first == last) reduces to the four sides."""
    m = np.zeros((20, 20), dtype=bool)
    m[5:15, 5:15] = True
    out = rdp(contour.marching_squares(m), 1.0)

    assert out.tolist() == [[5.0, 4.5], [4.5, 14.0], [14.0, 14.5], [14.5, 5.0], [5.0, 4.5]]
