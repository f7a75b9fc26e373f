"""Test YAML schema validation.

Tests for bezier_tracer.utils.validators:
    - Shipped tracer config matches the built-in defaults
    - Invalid configs raise ValueError with the offending field
    - strokes.v1 documents: conversion, chaining check, file round trip
"""

from pathlib import Path

import pytest

from bezier_tracer.data_pipeline.bezier_fit import BezierSegment
from bezier_tracer.utils import fs, validators

CONFIG_PATH = Path(__file__).parent.parent / "configs" / "tracer.v1.yaml"


@pytest.fixture
def metadata():
    return {
        'source': 'logo.png',
        'kind': 'logo',
        'resolution_px': 512,
        'error_tolerance': 4.0,
        'generated_at': '2026-10-18T12:00:00+00:00',
        'tracer_version': '1.0.0',
    }


@pytest.fixture
def chained_stroke():
    return [
        BezierSegment((0.0, 0.0), (1.0, 2.0), (3.0, 2.0), (4.0, 0.0)),
        BezierSegment((4.0, 0.0), (5.0, -2.0), (7.0, -2.0), (8.0, 0.0)),
    ]


def test_shipped_config_matches_defaults():
    cfg = validators.load_tracer_config(CONFIG_PATH)
    assert cfg == validators.TracerConfigV1()


def test_default_constants():
    cfg = validators.TracerConfigV1()
    assert cfg.preview.size_px == 256
    assert cfg.resolution.for_kind("photo") == 640
    assert cfg.resolution.for_kind("logo") == 512
    assert cfg.contours.logo_max_contours == 3
    assert cfg.contours.illustration_max_contours == 5
    assert cfg.fitting.rdp_epsilon_scale == 0.5
    assert cfg.output.canvas_px is None


def test_wrong_schema_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    fs.atomic_yaml_dump({'schema': 'tracer.v2'}, path)
    with pytest.raises(ValueError, match="tracer.v1"):
        validators.load_tracer_config(path)


def test_canny_ratio_order_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    fs.atomic_yaml_dump(
        {'schema': 'tracer.v1', 'canny': {'photo': {'sigma': 2.0, 'low_ratio': 0.5, 'high_ratio': 0.1}}},
        path,
    )
    with pytest.raises(ValueError, match="low_ratio"):
        validators.load_tracer_config(path)


def test_out_of_range_rejected():
    with pytest.raises(ValueError):
        validators.TracerConfigV1(preview={'size_px': 4})
    with pytest.raises(ValueError):
        validators.TracerConfigV1(contours={'edge_min_contours': 40, 'edge_max_contours': 30})
    with pytest.raises(ValueError):
        validators.TracerConfigV1(output={'canvas_px': 0})


def test_partial_config_keeps_defaults(tmp_path):
    path = tmp_path / "partial.yaml"
    fs.atomic_yaml_dump({'schema': 'tracer.v1', 'resolution': {'photo': 800}}, path)
    cfg = validators.load_tracer_config(path)
    assert cfg.resolution.photo == 800
    assert cfg.resolution.logo == 512


def test_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        validators.load_tracer_config(tmp_path / "nope.yaml")


def test_strokes_roundtrip(tmp_path, chained_stroke, metadata):
    doc = validators.strokes_to_yaml_dict([chained_stroke], (64, 48), metadata)
    assert doc['schema'] == 'strokes.v1'
    assert doc['canvas_px'] == [64.0, 48.0]
    assert doc['strokes'][0][1]['p0'] == [4.0, 0.0]

    path = tmp_path / "out.strokes.yaml"
    fs.atomic_yaml_dump(doc, path)
    loaded = validators.validate_strokes_file(path)

    assert len(loaded.strokes) == 1
    assert loaded.strokes[0][1].p3 == (8.0, 0.0)
    assert loaded.metadata.kind == 'logo'


def test_broken_chain_rejected(chained_stroke, metadata):
    broken = [chained_stroke[0], BezierSegment((4.5, 0.0), (5.0, 1.0), (6.0, 1.0), (7.0, 0.0))]
    with pytest.raises(ValueError, match="ends at"):
        validators.strokes_to_yaml_dict([broken], (64, 64), metadata)


def test_empty_stroke_rejected(metadata):
    with pytest.raises(ValueError, match="no segments"):
        validators.strokes_to_yaml_dict([[]], (64, 64), metadata)


def test_unknown_kind_rejected(chained_stroke, metadata):
    metadata['kind'] = 'vector'
    with pytest.raises(ValueError, match="kind"):
        validators.strokes_to_yaml_dict([chained_stroke], (64, 64), metadata)


def test_empty_stroke_list_is_valid(metadata):
    doc = validators.strokes_to_yaml_dict([], (10, 10), metadata)
    assert doc['strokes'] == []
