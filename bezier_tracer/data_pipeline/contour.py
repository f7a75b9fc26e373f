"""Marching-squares contour tracing of binary masks.

Steps:
    1. Slide a 2×2 window over the mask; corner bits form the cell code
       ``tl<<3 | tr<<2 | br<<1 | bl``; codes 0 and 15 carry no boundary
    2. Boundary crossings sit at edge midpoints (top, right, bottom, left)
       wherever the two corners of that edge disagree
    3. Two crossings → one segment. Saddles resolve by fixed policy:
       code 5 → top–right + bottom–left, code 10 → top–left + bottom–right
    4. Crossing points are deduplicated on integer keys (coordinate × 1000,
       rounded) and linked into an adjacency graph
    5. Each unvisited edge starts a greedy forward walk that closes when it
       returns to its start vertex and stops at the first visited edge

Coordinates are (x, y) with x = column and y = row, in mask pixels.

Junction vertices (degree > 2) are resolved by taking the first neighbour
that is not the vertex just arrived from. The walk is local and greedy, so
such junctions can yield crossed or truncated paths.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Key = Tuple[int, int]
Segment = Tuple[Key, Key]

KEY_SCALE = 1000


def point_key(x: float, y: float) -> Key:
    """Quantize a crossing to a 1/1000-pixel integer key."""
    return (int(round(x * KEY_SCALE)), int(round(y * KEY_SCALE)))


def _edge_id(a: Key, b: Key) -> Tuple[Key, Key]:
    return (a, b) if a < b else (b, a)


def marching_squares_segments(mask: np.ndarray):
    """Boundary segments of every mixed 2×2 cell, in row-major cell order.

    Parameters
    ----------
    mask : np.ndarray
        (H, W) bool or 0/1 array

    Returns
    -------
    segments : List[Segment]
        Pairs of vertex keys
    points : Dict[Key, Point]
        Key → crossing coordinates
    """
    m = np.asarray(mask, dtype=bool)
    h, w = m.shape
    segments: List[Segment] = []
    points: Dict[Key, Point] = {}
    if h < 2 or w < 2:
        return segments, points

    codes = (
        (m[:-1, :-1].astype(np.uint8) << 3)
        | (m[:-1, 1:].astype(np.uint8) << 2)
        | (m[1:, 1:].astype(np.uint8) << 1)
        | m[1:, :-1].astype(np.uint8)
    )

    def add(p: Point, q: Point):
        kp = point_key(*p)
        kq = point_key(*q)
        points[kp] = p
        points[kq] = q
        segments.append((kp, kq))

    ys, xs = np.nonzero((codes != 0) & (codes != 15))
    for y, x in zip(ys.tolist(), xs.tolist()):
        c = int(codes[y, x])
        tl = (c >> 3) & 1
        tr = (c >> 2) & 1
        br = (c >> 1) & 1
        bl = c & 1

        top = (x + 0.5, float(y))
        right = (x + 1.0, y + 0.5)
        bottom = (x + 0.5, y + 1.0)
        left = (float(x), y + 0.5)

        crossings = []
        if tl != tr:
            crossings.append(top)
        if tr != br:
            crossings.append(right)
        if br != bl:
            crossings.append(bottom)
        if bl != tl:
            crossings.append(left)

        if len(crossings) == 2:
            add(crossings[0], crossings[1])
        elif c == 5:
            add(top, right)
            add(bottom, left)
        elif c == 10:
            add(top, left)
            add(bottom, right)

    return segments, points


def build_adjacency(segments: List[Segment]) -> Dict[Key, List[Key]]:
    """Undirected adjacency lists; neighbours kept in segment order."""
    adj: Dict[Key, List[Key]] = defaultdict(list)
    for a, b in segments:
        adj[a].append(b)
        adj[b].append(a)
    return adj


def walk_paths(segments: List[Segment], adjacency: Dict[Key, List[Key]]) -> List[List[Key]]:
    """Walk the segment graph into vertex paths.

    Every edge is traversed exactly once. A path closes (repeating its start
    vertex) when the walk returns to the start; it ends open when the next
    edge was already used, e.g. at a mask border.
    """
    visited = set()
    paths: List[List[Key]] = []

    for k1, k2 in segments:
        eid = _edge_id(k1, k2)
        if eid in visited:
            continue
        visited.add(eid)

        path = [k1, k2]
        prev, curr = k1, k2

        while True:
            neighbors = adjacency.get(curr, [])
            if not neighbors:
                break
            if len(neighbors) == 1:
                nxt = neighbors[0]
            else:
                nxt = next((n for n in neighbors if n != prev), neighbors[0])

            eid_next = _edge_id(curr, nxt)
            if eid_next in visited:
                break
            visited.add(eid_next)
            path.append(nxt)

            if nxt == path[0]:
                break
            prev, curr = curr, nxt

        paths.append(path)

    return paths


def _trace_all(mask: np.ndarray) -> List[np.ndarray]:
    segments, points = marching_squares_segments(mask)
    if not segments:
        return []
    adjacency = build_adjacency(segments)
    paths = walk_paths(segments, adjacency)

    contours = [
        np.array([points[k] for k in path], dtype=np.float64)
        for path in paths
    ]
    # Stable sort keeps generation order among equal lengths.
    contours.sort(key=len, reverse=True)
    logger.debug("Marching squares: %d segments → %d paths", len(segments), len(contours))
    return contours


def marching_squares(mask: np.ndarray) -> np.ndarray:
    """Longest contour of a mask.

    Returns
    -------
    np.ndarray
        (N, 2) points, closed when first == last; shape (0, 2) if the mask
        has no boundary
    """
    contours = _trace_all(mask)
    if not contours:
        return np.zeros((0, 2), dtype=np.float64)
    return contours[0]


def marching_squares_multi(
    mask: np.ndarray,
    max_contours: int,
    min_length: float
) -> List[np.ndarray]:
    """Up to ``max_contours`` longest contours with at least ``min_length`` points."""
    contours = [c for c in _trace_all(mask) if len(c) >= min_length]
    return contours[:max_contours]


def is_closed(contour: np.ndarray) -> bool:
    """True when the contour returns to its first point."""
    return len(contour) > 2 and bool(np.allclose(contour[0], contour[-1]))
