"""Integration tests for the tracing orchestrator.

Tests:
    - Alpha strategy: transparent PNG with an opaque disk → one closed stroke
      whose area matches the disk, in source image coordinates
    - Logo strategy: anti-aliased dark disk on white
    - Edge strategy: noise photo yields chained strokes inside the canvas
    - Empty cases: no foreground, no edges
    - Input validation and error propagation
    - fit_contour scaling + simplification
    - Debug mask export and per-contour fit timing
    - trace_image reports kind, resolution and canvas
"""

import logging
import math

import numpy as np
import pytest
from PIL import Image

from bezier_tracer.data_pipeline import tracer
from bezier_tracer.data_pipeline.classifier import ImageAnalysis
from bezier_tracer.data_pipeline.image_loader import ImageLoadError, raster_from_array
from bezier_tracer.utils import geometry, validators


def _disk_distance(size, center):
    yy, xx = np.mgrid[0:size, 0:size]
    return np.hypot(xx - center, yy - center)


def _analysis(kind, sigma=2.0, low=0.05, high=0.15):
    return ImageAnalysis(
        kind=kind,
        uses_alpha=kind == "alpha",
        unique_colors=64,
        entropy=0.9,
        edge_density=0.3,
        contrast_ratio=0.5,
        recommended_sigma=sigma,
        recommended_low=low,
        recommended_high=high,
    )


def _assert_chained(stroke):
    for a, b in zip(stroke[:-1], stroke[1:]):
        assert a.p3 == b.p0


@pytest.fixture
def alpha_disk_png(tmp_path):
    """64×64 transparent PNG with an opaque black disk of radius 24."""
    arr = np.zeros((64, 64, 4), dtype=np.uint8)
    arr[_disk_distance(64, 31.5) <= 24.0] = [0, 0, 0, 255]
    path = tmp_path / "disk.png"
    Image.fromarray(arr).save(path)
    return path


@pytest.fixture
def logo_disk_png(tmp_path):
    """64×64 white RGB PNG with an anti-aliased black disk of radius 20."""
    d = _disk_distance(64, 31.5)
    gray = np.clip((d - 20.0) * 64.0 + 128.0, 0, 255).astype(np.uint8)
    path = tmp_path / "logo.png"
    Image.fromarray(np.stack([gray] * 3, axis=-1)).save(path)
    return path


@pytest.fixture
def noise_png(tmp_path):
    rng = np.random.default_rng(5)
    arr = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
    path = tmp_path / "noise.png"
    Image.fromarray(arr).save(path)
    return path


def test_alpha_disk_single_closed_stroke(alpha_disk_png):
    """Alpha images trace the single longest outline in a handful of segments."""
    strokes = tracer.trace_from_image(alpha_disk_png, 3.0)

    assert len(strokes) == 1
    stroke = strokes[0]
    assert 1 <= len(stroke) < 10, f"Got {len(stroke)} segments"
    _assert_chained(stroke)
    assert stroke[0].p0 == stroke[-1].p3, "Outline should be closed"

    area = geometry.polygon_area(geometry.sample_stroke(stroke))
    expected = math.pi * 24.0 ** 2
    assert area == pytest.approx(expected, rel=0.05), f"Area {area:.1f} vs {expected:.1f}"


def test_output_in_source_coordinates(alpha_disk_png):
    """Coordinates map back to the 64 px source regardless of resolution."""
    for res in (128, 512):
        stroke = tracer.trace_from_image(alpha_disk_png, 1.0, resolution=res)[0]
        xmin, ymin, xmax, ymax = geometry.polyline_bbox(geometry.sample_stroke(stroke))
        assert 4.0 < xmin < 10.0 and 54.0 < xmax < 60.0, f"res={res}: x range {xmin}..{xmax}"
        assert 4.0 < ymin < 10.0 and 54.0 < ymax < 60.0, f"res={res}: y range {ymin}..{ymax}"


def test_canvas_output_space(alpha_disk_png):
    """A configured canvas rescales output to canvas units."""
    cfg = validators.TracerConfigV1(output={'canvas_px': 1024})
    stroke = tracer.trace_from_image(alpha_disk_png, 8.0, config=cfg)[0]
    xmin, _, xmax, _ = geometry.polyline_bbox(geometry.sample_stroke(stroke))
    # Disk spans 48/64 of the image → ~768 canvas units
    assert 700.0 < xmax - xmin < 830.0


def test_logo_disk(logo_disk_png):
    """Dark anti-aliased disk on white → one outline around the disk."""
    strokes = tracer.trace_from_image(logo_disk_png, 1.0)

    assert len(strokes) == 1
    _assert_chained(strokes[0])
    xmin, ymin, xmax, ymax = geometry.polyline_bbox(geometry.sample_stroke(strokes[0]))
    assert 34.0 < xmax - xmin < 46.0
    assert 34.0 < ymax - ymin < 46.0


def test_noise_photo_strokes_inside_canvas(noise_png):
    """Edge strategy: chained strokes, anchors inside the source bounds."""
    strokes = tracer.trace_from_image(noise_png, 2.0, resolution=128)

    for stroke in strokes:
        assert len(stroke) >= 1
        _assert_chained(stroke)
        for seg in stroke:
            for x, y in (seg.p0, seg.p3):
                assert 0.0 <= x <= 64.0 and 0.0 <= y <= 64.0


def test_no_foreground_returns_empty():
    """A fully transparent raster has nothing to trace."""
    raster = raster_from_array(np.zeros((32, 32, 4), dtype=np.uint8))
    assert tracer.trace_raster(raster, _analysis("alpha"), 2.0) == []


def test_no_edges_returns_empty():
    """Edge strategy on a flat image yields no strokes."""
    raster = raster_from_array(np.full((32, 32, 3), 128, dtype=np.uint8))
    assert tracer.trace_raster(raster, _analysis("photo"), 2.0) == []


def test_trace_raster_rejects_bad_input():
    square = raster_from_array(np.zeros((8, 8, 4), dtype=np.uint8))
    wide = raster_from_array(np.zeros((8, 16, 4), dtype=np.uint8))
    with pytest.raises(ValueError):
        tracer.trace_raster(square, _analysis("logo"), 0.0)
    with pytest.raises(ValueError, match="square"):
        tracer.trace_raster(wide, _analysis("logo"), 1.0)


def test_trace_from_image_validation(alpha_disk_png, tmp_path):
    with pytest.raises(ValueError):
        tracer.trace_from_image(alpha_disk_png, -1.0)
    with pytest.raises(ValueError):
        tracer.trace_from_image(alpha_disk_png, 1.0, resolution=0)
    with pytest.raises(ValueError, match="max_px"):
        tracer.trace_from_image(alpha_disk_png, 1.0, resolution=10_000)
    with pytest.raises(FileNotFoundError):
        tracer.trace_from_image(tmp_path / "missing.png", 1.0)

    junk = tmp_path / "junk.png"
    junk.write_bytes(b"\x00\x01\x02")
    with pytest.raises(ImageLoadError):
        tracer.trace_from_image(junk, 1.0)


def test_choose_resolution_defaults():
    assert tracer.choose_resolution(_analysis("photo")) == 640
    assert tracer.choose_resolution(_analysis("logo")) == 512
    assert tracer.choose_resolution(_analysis("alpha"), 300) == 300


def test_output_size():
    assert tracer.output_size((800, 600)) == (800, 600)
    cfg = validators.TracerConfigV1(output={'canvas_px': 1024})
    assert tracer.output_size((800, 600), cfg) == (1024, 1024)


def test_fit_contour_scales_points():
    """Contour points are scaled per axis before fitting."""
    line = np.column_stack([np.arange(11.0), np.zeros(11)])
    stroke = tracer.fit_contour(line, (2.0, 3.0), 1.0)

    assert len(stroke) == 1
    assert stroke[0].p0 == (0.0, 0.0)
    assert stroke[0].p3 == (20.0, 0.0)


def test_fit_contour_single_point():
    assert tracer.fit_contour(np.array([[1.0, 1.0]]), (1.0, 1.0), 2.0) == []


def test_debug_masks_saved(alpha_disk_png, tmp_path):
    out_dir = tmp_path / "debug"
    cfg = validators.TracerConfigV1(
        debug={'save_intermediates': True, 'output_dir': str(out_dir)}
    )
    tracer.trace_from_image(alpha_disk_png, 2.0, resolution=64, config=cfg)

    mask_png = out_dir / "disk_mask.png"
    assert mask_png.exists()
    with Image.open(mask_png) as img:
        assert img.size == (64, 64)
        assert set(np.unique(np.asarray(img)).tolist()) == {0, 255}


def test_fit_timing_logged(alpha_disk_png, caplog):
    """Per-contour fit timing is reported at DEBUG."""
    with caplog.at_level(logging.DEBUG, logger="bezier_tracer.data_pipeline.tracer"):
        tracer.trace_from_image(alpha_disk_png, 2.0, resolution=64)
    assert any("per contour" in r.getMessage() for r in caplog.records)


def test_trace_image_reports_decisions(alpha_disk_png):
    """trace_image returns the classification next to the strokes."""
    result = tracer.trace_image(alpha_disk_png, 2.0, resolution=96)

    assert result.analysis.kind == "alpha"
    assert result.resolution == 96
    assert result.canvas == (64, 64)
    assert result.strokes == tracer.trace_from_image(alpha_disk_png, 2.0, resolution=96)
