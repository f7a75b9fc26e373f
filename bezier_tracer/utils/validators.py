"""YAML schema validation and config loading.

Provides centralized validation for configuration and output files using
pydantic:
    - Tracer schema (tracer.v1.yaml): preview/trace resolutions, mask and
      contour filters, per-kind Canny parameters, fitting knobs, I/O
    - Strokes schema (strokes.v1.yaml): traced cubic Bézier strokes

All modules must use these validators to load configs for fail-fast error
detection with actionable messages (offending keys, expected ranges).

Units:
    - Resolutions: pixels (square trace raster)
    - Lengths / tolerances: trace pixels unless noted as output units
    - Canny ratios: fraction of the max suppressed gradient magnitude

Usage:
    from bezier_tracer.utils import validators

    cfg = validators.load_tracer_config("configs/tracer.v1.yaml")
    doc = validators.validate_strokes_file("outputs/logo.strokes.yaml")
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


IMAGE_KINDS = ("alpha", "logo", "illustration", "photo")


# ============================================================================
# TRACER SCHEMA V1
# ============================================================================

class PreviewConfig(BaseModel):
    """Classifier preview raster."""
    size_px: int = Field(256, ge=16, le=1024, description="Square preview size")


class ResolutionConfig(BaseModel):
    """Default square trace resolution per image kind."""
    alpha: int = Field(512, ge=16, le=4096)
    logo: int = Field(512, ge=16, le=4096)
    illustration: int = Field(512, ge=16, le=4096)
    photo: int = Field(640, ge=16, le=4096)
    max_px: int = Field(4096, ge=16, le=16384, description="Upper bound for caller-supplied resolution")

    def for_kind(self, kind: str) -> int:
        return int(getattr(self, kind))


class ClassifierConfig(BaseModel):
    """Thresholds of the image classifier."""
    alpha_transparent_level: int = Field(10, ge=0, le=255, description="alpha < level counts as transparent")
    alpha_fraction: float = Field(0.1, ge=0.0, le=1.0, description="Transparent share that marks alpha usage")
    edge_gradient: float = Field(20.0, gt=0.0, description="Central-difference magnitude counted as edge")
    logo_max_colors: int = Field(12, ge=1, le=64)
    logo_max_entropy: float = Field(0.55, ge=0.0, le=1.0)
    illustration_max_entropy: float = Field(0.7, ge=0.0, le=1.0)
    illustration_max_colors: int = Field(24, ge=1, le=64)
    illustration_max_edge_density: float = Field(0.15, ge=0.0, le=1.0)
    photo_noisy_edge_density: float = Field(0.25, ge=0.0, le=1.0)
    photo_noisy_sigma_boost: float = Field(0.5, ge=0.0, le=5.0)


class CannyParams(BaseModel):
    """Canny parameters recommended for one image kind."""
    sigma: float = Field(..., ge=0.0, le=10.0, description="Gaussian blur sigma (px)")
    low_ratio: float = Field(..., ge=0.0, le=1.0, description="Low hysteresis ratio")
    high_ratio: float = Field(..., ge=0.0, le=1.0, description="High hysteresis ratio")

    @model_validator(mode='after')
    def validate_ratio_order(self) -> 'CannyParams':
        if self.low_ratio > self.high_ratio:
            raise ValueError(
                f"low_ratio ({self.low_ratio}) must not exceed high_ratio ({self.high_ratio})"
            )
        return self


class CannyTable(BaseModel):
    """Fixed Canny lookup keyed by image kind."""
    alpha: CannyParams = CannyParams(sigma=1.0, low_ratio=0.10, high_ratio=0.30)
    logo: CannyParams = CannyParams(sigma=1.0, low_ratio=0.10, high_ratio=0.30)
    illustration: CannyParams = CannyParams(sigma=1.4, low_ratio=0.08, high_ratio=0.20)
    photo: CannyParams = CannyParams(sigma=2.0, low_ratio=0.05, high_ratio=0.15)

    def for_kind(self, kind: str) -> CannyParams:
        return getattr(self, kind)


class MaskConfig(BaseModel):
    """Binary mask extraction."""
    alpha_foreground_level: int = Field(128, ge=0, le=255, description="alpha > level is foreground")
    otsu_default: int = Field(128, ge=0, le=255, description="Threshold when Otsu is undefined")


class ContourConfig(BaseModel):
    """Marching-squares contour selection per strategy."""
    alpha_max_contours: int = Field(1, ge=1, le=100)
    logo_max_contours: int = Field(3, ge=1, le=100)
    illustration_max_contours: int = Field(5, ge=1, le=100)
    mask_min_length: int = Field(20, ge=2, description="Floor of the mask min contour length (points)")
    mask_min_length_frac: float = Field(0.04, ge=0.0, le=1.0, description="Mask min length as fraction of resolution")
    edge_min_length: int = Field(15, ge=2, description="Floor of the edge min contour length (points)")
    edge_min_length_frac: float = Field(0.03, ge=0.0, le=1.0, description="Edge min length as fraction of resolution")
    edge_min_contours: int = Field(5, ge=1, le=1000)
    edge_max_contours: int = Field(30, ge=1, le=1000)
    edge_pixels_per_contour: float = Field(2.0, gt=0.0, description="Edge pixels per contour, in units of resolution")

    @model_validator(mode='after')
    def validate_edge_bounds(self) -> 'ContourConfig':
        if self.edge_min_contours > self.edge_max_contours:
            raise ValueError(
                f"edge_min_contours ({self.edge_min_contours}) must not exceed "
                f"edge_max_contours ({self.edge_max_contours})"
            )
        return self


class FittingConfig(BaseModel):
    """Simplification + Bézier fitting knobs."""
    rdp_epsilon_scale: float = Field(0.5, ge=0.0, le=10.0, description="RDP epsilon = tolerance × scale")
    photo_tolerance_scale: float = Field(1.2, ge=1.0, le=10.0, description="Tolerance relaxation for photos")


class OutputConfig(BaseModel):
    """Output coordinate space."""
    canvas_px: Optional[int] = Field(
        None,
        description="Square canvas size for output coordinates; null maps back to the source image size",
    )

    @field_validator('canvas_px')
    @classmethod
    def validate_canvas(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError(f"canvas_px must be positive, got {v}")
        return v


class IOConfig(BaseModel):
    """Image source access."""
    url_timeout_s: float = Field(30.0, gt=0.0, le=600.0, description="HTTP timeout for URL sources")


class DebugConfig(BaseModel):
    """Debug output settings."""
    save_intermediates: bool = Field(False, description="Save binary/edge masks as PNG")
    output_dir: str = Field("outputs/trace_debug", description="Directory for intermediate images")


class TracerConfigV1(BaseModel):
    """Tracer schema v1 (classification + extraction + fitting)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("tracer.v1", alias="schema", description="Schema version")
    preview: PreviewConfig = PreviewConfig()
    resolution: ResolutionConfig = ResolutionConfig()
    classifier: ClassifierConfig = ClassifierConfig()
    canny: CannyTable = CannyTable()
    mask: MaskConfig = MaskConfig()
    contours: ContourConfig = ContourConfig()
    fitting: FittingConfig = FittingConfig()
    output: OutputConfig = OutputConfig()
    io: IOConfig = IOConfig()
    debug: DebugConfig = DebugConfig()

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "tracer.v1":
            raise ValueError(f"Expected schema 'tracer.v1', got '{v}'")
        return v


# ============================================================================
# STROKES SCHEMA V1
# ============================================================================

class BezierSegmentV1(BaseModel):
    """Cubic Bézier segment: anchor, two control points, anchor."""
    p0: Tuple[float, float] = Field(..., description="Start anchor (x, y)")
    c1: Tuple[float, float] = Field(..., description="First control point (x, y)")
    c2: Tuple[float, float] = Field(..., description="Second control point (x, y)")
    p3: Tuple[float, float] = Field(..., description="End anchor (x, y)")


class StrokesMetadata(BaseModel):
    """Trace provenance."""
    source: str = Field(..., description="Image path or URL")
    kind: str = Field(..., description="Classifier category")
    resolution_px: int = Field(..., ge=1, description="Trace resolution")
    error_tolerance: float = Field(..., gt=0.0, description="Fitting tolerance (output units)")
    generated_at: str = Field(..., description="ISO 8601 timestamp")
    tracer_version: str = Field(..., description="Package version")

    @field_validator('kind')
    @classmethod
    def validate_kind(cls, v: str) -> str:
        if v not in IMAGE_KINDS:
            raise ValueError(f"kind must be one of {IMAGE_KINDS}, got '{v}'")
        return v


class StrokesFileV1(BaseModel):
    """Traced strokes (serialization format consumed by editors)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("strokes.v1", alias="schema", description="Schema version")
    canvas_px: List[float] = Field(..., description="Output coordinate space [W, H]")
    strokes: List[List[BezierSegmentV1]] = Field(..., description="Strokes (chained segments)")
    metadata: StrokesMetadata

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "strokes.v1":
            raise ValueError(f"Expected schema 'strokes.v1', got '{v}'")
        return v

    @field_validator('canvas_px')
    @classmethod
    def validate_canvas(cls, v: List[float]) -> List[float]:
        if len(v) != 2:
            raise ValueError(f"canvas_px must have 2 elements [W, H], got {len(v)}")
        if v[0] <= 0 or v[1] <= 0:
            raise ValueError(f"canvas_px dimensions must be positive, got {v}")
        return v

    @model_validator(mode='after')
    def validate_chaining(self) -> 'StrokesFileV1':
        """Every stroke is non-empty and segment i ends where i+1 starts."""
        for s, stroke in enumerate(self.strokes):
            if not stroke:
                raise ValueError(f"Stroke {s} has no segments")
            for i in range(len(stroke) - 1):
                end = stroke[i].p3
                start = stroke[i + 1].p0
                if abs(end[0] - start[0]) > 1e-6 or abs(end[1] - start[1]) > 1e-6:
                    raise ValueError(
                        f"Stroke {s} segment {i} ends at {end} but segment {i + 1} starts at {start}"
                    )
        return self


# ============================================================================
# PUBLIC API
# ============================================================================

def load_tracer_config(path: Union[str, Path]) -> TracerConfigV1:
    """Load and validate tracer config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to tracer.v1.yaml file

    Returns
    -------
    TracerConfigV1
        Validated tracer configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Tracer config not found: {path}")

    data = fs.load_yaml(path)
    try:
        return TracerConfigV1(**data)
    except Exception as e:
        raise ValueError(f"Tracer config validation failed at {path}: {e}") from e


def strokes_to_yaml_dict(
    strokes: Sequence[Sequence[Any]],
    canvas_px: Tuple[float, float],
    metadata: Dict[str, Any]
) -> Dict[str, Any]:
    """Convert traced strokes into a validated strokes.v1 document.

    Parameters
    ----------
    strokes : Sequence[Sequence[BezierSegment]]
        Pipeline output; segments expose ``to_dict()``
    canvas_px : Tuple[float, float]
        Output coordinate space (W, H)
    metadata : dict
        Fields of StrokesMetadata

    Returns
    -------
    dict
        Plain dict ready for fs.atomic_yaml_dump

    Raises
    ------
    ValueError
        If the document violates the schema
    """
    doc = {
        'schema': 'strokes.v1',
        'canvas_px': [float(canvas_px[0]), float(canvas_px[1])],
        'strokes': [[seg.to_dict() for seg in stroke] for stroke in strokes],
        'metadata': metadata,
    }
    try:
        StrokesFileV1(**doc)
    except Exception as e:
        raise ValueError(f"Strokes document validation failed: {e}") from e
    return doc


def validate_strokes_file(path: Union[str, Path]) -> StrokesFileV1:
    """Load and validate a strokes.v1 YAML file.

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Strokes file not found: {path}")

    data = fs.load_yaml(path)
    try:
        return StrokesFileV1(**data)
    except Exception as e:
        raise ValueError(f"Strokes validation failed at {path}: {e}") from e
