"""Unit tests for marching-squares contour tracing.

Tests:
    - Closed contour of an interior square (start point, length, bbox)
    - Saddle cell policy (codes 5 and 10)
    - Open contours where the mask touches the border
    - Multi-contour ordering, length filter and cap
    - Every segment walked exactly once
"""

import numpy as np
import pytest

from bezier_tracer.data_pipeline import contour
from bezier_tracer.utils import geometry


@pytest.fixture
def square_mask():
    """20×20 mask with a 10×10 foreground square at [5:15, 5:15]."""
    m = np.zeros((20, 20), dtype=bool)
    m[5:15, 5:15] = True
    return m


def test_square_contour_closed(square_mask):
    """Interior square → one closed loop of 40 crossings."""
    c = contour.marching_squares(square_mask)

    assert c.shape == (41, 2)
    assert contour.is_closed(c)
    assert tuple(c[0]) == (5.0, 4.5)
    assert geometry.polyline_bbox(c) == (4.5, 4.5, 14.5, 14.5)


def test_square_contour_is_connected(square_mask):
    """Consecutive points are half a pixel apart on each axis at most."""
    c = contour.marching_squares(square_mask)
    steps = np.abs(np.diff(c, axis=0))
    assert (steps <= 1.0 + 1e-9).all()
    assert (np.hypot(steps[:, 0], steps[:, 1]) > 0).all()


def test_empty_and_full_masks():
    """No mixed cells → empty contour."""
    empty = contour.marching_squares(np.zeros((8, 8), dtype=bool))
    full = contour.marching_squares(np.ones((8, 8), dtype=bool))
    assert empty.shape == (0, 2)
    assert full.shape == (0, 2)
    assert contour.marching_squares_multi(np.zeros((8, 8), dtype=bool), 5, 0) == []


def test_saddle_code_5():
    """tr + bl foreground → top–right and bottom–left segments."""
    m = np.array([[0, 1], [1, 0]], dtype=bool)
    segments, points = contour.marching_squares_segments(m)

    assert segments == [((500, 0), (1000, 500)), ((500, 1000), (0, 500))]
    assert points[(500, 0)] == (0.5, 0.0)


def test_saddle_code_10():
    """tl + br foreground → top–left and bottom–right segments."""
    m = np.array([[1, 0], [0, 1]], dtype=bool)
    segments, _ = contour.marching_squares_segments(m)

    assert segments == [((500, 0), (0, 500)), ((500, 1000), (1000, 500))]


def test_diagonal_squares_stay_separate():
    """Squares touching at a corner (saddle 10) trace as two loops."""
    m = np.zeros((6, 6), dtype=bool)
    m[1:3, 1:3] = True
    m[3:5, 3:5] = True
    contours = contour.marching_squares_multi(m, 5, 0)

    assert len(contours) == 2
    for c in contours:
        assert len(c) == 9
        assert contour.is_closed(c)


def test_border_touching_mask_is_open():
    """A shape cut by the border yields an open path."""
    m = np.zeros((10, 10), dtype=bool)
    m[:, :5] = True
    c = contour.marching_squares(m)

    assert len(c) == 10
    assert not contour.is_closed(c)
    assert np.allclose(c[:, 0], 4.5)
    assert c[0, 1] == 0.0 and c[-1, 1] == 9.0


def test_multi_sorted_filtered_capped():
    """Longest first; min_length filters; max_contours truncates."""
    m = np.zeros((30, 30), dtype=bool)
    m[18:22, 18:22] = True
    m[2:12, 2:12] = True

    both = contour.marching_squares_multi(m, 5, 0)
    assert [len(c) for c in both] == [41, 17]

    long_only = contour.marching_squares_multi(m, 5, 20)
    assert [len(c) for c in long_only] == [41]

    capped = contour.marching_squares_multi(m, 1, 0)
    assert len(capped) == 1 and len(capped[0]) == 41


def test_every_edge_walked_once():
    """Path edges account for every generated segment exactly once."""
    rng = np.random.default_rng(3)
    m = rng.random((25, 25)) > 0.5
    segments, _ = contour.marching_squares_segments(m)
    paths = contour.walk_paths(segments, contour.build_adjacency(segments))

    walked = [contour._edge_id(a, b) for p in paths for a, b in zip(p[:-1], p[1:])]
    assert len(walked) == len(segments)
    assert set(walked) == {contour._edge_id(a, b) for a, b in segments}


def test_point_key_rounds():
    assert contour.point_key(1.5, 2.0) == (1500, 2000)
    assert contour.point_key(0.1234, 0.0004) == (123, 0)
