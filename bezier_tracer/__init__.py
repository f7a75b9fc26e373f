"""Bezier Tracer: raster images to editable cubic Bézier strokes.

This package classifies a source image, extracts a binary mask or Canny edge
map, traces contours with marching squares, simplifies them with
Ramer–Douglas–Peucker and fits chains of cubic Bézier segments (Schneider).

Architecture layers (strict one-way dependency):
    scripts/ → bezier_tracer/data_pipeline/ → bezier_tracer/utils/

Key invariants:
    - Rasters are immutable RGBA uint8 (H, W, 4)
    - Points are (x, y) with x = column, y = row
    - Output strokes are chained: segment i ends where segment i+1 starts
    - YAML-only configs, no JSON
"""

__version__ = "1.0.0"
