"""Pipeline orchestrator: image source → list of Bézier strokes.

Flow per image:
    1. Decode once; classify a small square preview (default 256 px)
    2. Pick the trace resolution from the kind (photo 640, others 512)
       unless the caller supplies one
    3. Resample the decoded image to a res × res square
    4. Extract a point set per strategy:
         alpha         mask → single longest contour
         logo          mask → up to 3 contours
         illustration  mask → up to 5 contours
         photo         Canny edges → 5..30 contours, relaxed tolerance
    5. Scale every contour back to the output space, simplify with RDP
       (epsilon = half the tolerance) and fit cubic Béziers

The output space is the source image size (per-axis scale factors undo the
square stretch) or a square ``output.canvas_px`` canvas when configured. The
error tolerance is expressed in output units.

The pipeline is synchronous and CPU bound; async callers can offload it with
``asyncio.to_thread(trace_from_image, ...)``. Each call is independent, so
traces of different images may run concurrently.
"""

import logging
import math
from pathlib import Path
from typing import List, NamedTuple, Optional, Tuple

import numpy as np
from PIL import Image

from ..utils import fs, validators
from ..utils.logging_config import pop_context, push_context
from ..utils.profiler import TimerAccumulator, timer
from .bezier_fit import Stroke, fit_curve
from .classifier import ImageAnalysis, analyze_image
from .contour import marching_squares, marching_squares_multi
from .edges import canny_edge_detection
from .image_loader import ImageSource, Raster, image_to_raster, load_image
from .mask import image_to_mask
from .simplify import rdp

logger = logging.getLogger(__name__)


def _log_stage(name: str, elapsed: float) -> None:
    logger.debug("Stage %s took %.3f s", name, elapsed)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def analyze_preview(img: Image.Image, cfg: Optional[validators.TracerConfigV1] = None) -> ImageAnalysis:
    """Classify a decoded image from its square preview."""
    cfg = cfg or validators.TracerConfigV1()
    preview = image_to_raster(img, cfg.preview.size_px)
    return analyze_image(preview, cfg)


def choose_resolution(
    analysis: ImageAnalysis,
    resolution: Optional[int] = None,
    cfg: Optional[validators.TracerConfigV1] = None
) -> int:
    """Trace resolution: caller override, else the per-kind default.

    Raises
    ------
    ValueError
        If the override is not positive or exceeds ``resolution.max_px``
    """
    cfg = cfg or validators.TracerConfigV1()
    if resolution is None:
        return cfg.resolution.for_kind(analysis.kind)
    if resolution <= 0:
        raise ValueError(f"resolution must be positive, got {resolution}")
    if resolution > cfg.resolution.max_px:
        raise ValueError(
            f"resolution {resolution} exceeds max_px ({cfg.resolution.max_px})"
        )
    return int(resolution)


def output_size(
    img_size: Tuple[int, int],
    cfg: Optional[validators.TracerConfigV1] = None
) -> Tuple[int, int]:
    """Output coordinate space (W, H): source size or the configured canvas."""
    cfg = cfg or validators.TracerConfigV1()
    if cfg.output.canvas_px is not None:
        return cfg.output.canvas_px, cfg.output.canvas_px
    return int(img_size[0]), int(img_size[1])


def fit_contour(
    contour: np.ndarray,
    scale_xy: Tuple[float, float],
    tolerance: float,
    rdp_epsilon_scale: float = 0.5
) -> Stroke:
    """Scale a contour to output units, simplify it and fit Béziers.

    Parameters
    ----------
    contour : np.ndarray
        (N, 2) points in trace-raster pixels
    scale_xy : Tuple[float, float]
        Per-axis factors from trace pixels to output units
    tolerance : float
        Fitting error tolerance (output units)
    rdp_epsilon_scale : float
        RDP epsilon as a fraction of the tolerance

    Returns
    -------
    Stroke
        Chained segments; empty when simplification leaves < 2 points
    """
    pts = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
    scaled = pts * np.asarray(scale_xy, dtype=np.float64)
    simplified = rdp(scaled, tolerance * rdp_epsilon_scale)
    if len(simplified) < 2:
        return []
    return fit_curve(simplified, tolerance)


def _fit_all(
    contours: List[np.ndarray],
    scale_xy: Tuple[float, float],
    tolerance: float,
    cfg: validators.TracerConfigV1
) -> List[Stroke]:
    strokes = []
    fit_timer = TimerAccumulator("fit_contour")
    for contour in contours:
        with fit_timer.measure():
            stroke = fit_contour(contour, scale_xy, tolerance, cfg.fitting.rdp_epsilon_scale)
        if stroke:
            strokes.append(stroke)
    logger.debug(
        "Fitted %d contours in %.3f s (%.4f s per contour)",
        fit_timer.count, fit_timer.total_time, fit_timer.mean(),
    )
    return strokes


def _save_debug(name: str, mask: np.ndarray, debug_name: Optional[str], cfg: validators.TracerConfigV1) -> None:
    if not cfg.debug.save_intermediates:
        return
    out_dir = fs.ensure_dir(cfg.debug.output_dir)
    path = out_dir / f"{debug_name or 'trace'}_{name}.png"
    fs.atomic_save_mask(mask, path)
    logger.debug("Saved %s to %s", name, path)


def trace_mask(
    raster: Raster,
    analysis: ImageAnalysis,
    error_tolerance: float,
    scale_xy: Tuple[float, float],
    cfg: Optional[validators.TracerConfigV1] = None,
    debug_name: Optional[str] = None
) -> List[Stroke]:
    """Mask-based strategy for alpha, logo and illustration images."""
    cfg = cfg or validators.TracerConfigV1()
    res = raster.width
    cc = cfg.contours

    with timer("mask", sink=_log_stage):
        mask = image_to_mask(raster, cfg)
    _save_debug("mask", mask, debug_name, cfg)

    with timer("contours", sink=_log_stage):
        if analysis.kind == "alpha" and cc.alpha_max_contours == 1:
            longest = marching_squares(mask)
            contours = [longest] if len(longest) > 0 else []
        else:
            max_contours = {
                "alpha": cc.alpha_max_contours,
                "logo": cc.logo_max_contours,
                "illustration": cc.illustration_max_contours,
            }[analysis.kind]
            min_length = max(cc.mask_min_length, res * cc.mask_min_length_frac)
            contours = marching_squares_multi(mask, max_contours, min_length)

    logger.debug("Mask strategy: %d contours", len(contours))

    with timer("fit", sink=_log_stage):
        return _fit_all(contours, scale_xy, error_tolerance, cfg)


def trace_edges(
    raster: Raster,
    analysis: ImageAnalysis,
    error_tolerance: float,
    scale_xy: Tuple[float, float],
    cfg: Optional[validators.TracerConfigV1] = None,
    debug_name: Optional[str] = None
) -> List[Stroke]:
    """Edge-based strategy for photographs."""
    cfg = cfg or validators.TracerConfigV1()
    res = raster.width
    cc = cfg.contours

    with timer("canny", sink=_log_stage):
        edges = canny_edge_detection(
            raster,
            analysis.recommended_sigma,
            analysis.recommended_low,
            analysis.recommended_high,
        )
    _save_debug("edges", edges, debug_name, cfg)

    edge_count = int(np.count_nonzero(edges))
    if edge_count == 0:
        logger.info("No edges found")
        return []

    estimate = _round_half_up(edge_count / (res * cc.edge_pixels_per_contour))
    max_contours = min(max(estimate, cc.edge_min_contours), cc.edge_max_contours)
    min_length = max(cc.edge_min_length, res * cc.edge_min_length_frac)

    with timer("contours", sink=_log_stage):
        contours = marching_squares_multi(edges, max_contours, min_length)

    tolerance = max(error_tolerance, error_tolerance * cfg.fitting.photo_tolerance_scale)
    logger.debug(
        "Edge strategy: %d edge pixels, %d/%d contours, tolerance %.3f",
        edge_count, len(contours), max_contours, tolerance,
    )

    with timer("fit", sink=_log_stage):
        return _fit_all(contours, scale_xy, tolerance, cfg)


def trace_raster(
    raster: Raster,
    analysis: ImageAnalysis,
    error_tolerance: float,
    output_size: Optional[Tuple[int, int]] = None,
    config: Optional[validators.TracerConfigV1] = None,
    debug_name: Optional[str] = None
) -> List[Stroke]:
    """Trace a square raster already resampled to the trace resolution.

    Parameters
    ----------
    raster : Raster
        res × res raster
    analysis : ImageAnalysis
        Classification of the same image (selects the strategy)
    error_tolerance : float
        Fitting tolerance in output units, > 0
    output_size : Tuple[int, int], optional
        Output space (W, H); defaults to the raster size
    config : TracerConfigV1, optional
        Pipeline configuration; defaults when None
    debug_name : str, optional
        File stem for intermediate masks when debug saving is enabled

    Returns
    -------
    List[Stroke]
        Non-empty strokes in output coordinates
    """
    cfg = config or validators.TracerConfigV1()
    if error_tolerance <= 0:
        raise ValueError(f"error_tolerance must be positive, got {error_tolerance}")
    if raster.width != raster.height:
        raise ValueError(f"Trace raster must be square, got {raster.width}x{raster.height}")

    res = raster.width
    out_w, out_h = output_size or (res, res)
    scale_xy = (out_w / res, out_h / res)

    if analysis.kind == "photo":
        return trace_edges(raster, analysis, error_tolerance, scale_xy, cfg, debug_name)
    return trace_mask(raster, analysis, error_tolerance, scale_xy, cfg, debug_name)


class TraceResult(NamedTuple):
    """Strokes plus the decisions that produced them."""
    analysis: ImageAnalysis
    resolution: int
    canvas: Tuple[int, int]
    strokes: List[Stroke]


def trace_image(
    source: ImageSource,
    error_tolerance: float,
    resolution: Optional[int] = None,
    config: Optional[validators.TracerConfigV1] = None
) -> TraceResult:
    """Trace an image and report its classification alongside the strokes.

    Same contract as :func:`trace_from_image`; callers that record how a
    trace was made (the CLI metadata block) use this form.
    """
    cfg = config or validators.TracerConfigV1()
    if error_tolerance <= 0:
        raise ValueError(f"error_tolerance must be positive, got {error_tolerance}")
    if resolution is not None and resolution <= 0:
        raise ValueError(f"resolution must be positive, got {resolution}")

    name = Path(str(source)).name or str(source)
    push_context(image=name)
    try:
        with timer("load", sink=_log_stage):
            img = load_image(source, timeout_s=cfg.io.url_timeout_s)

        with timer("classify", sink=_log_stage):
            analysis = analyze_preview(img, cfg)
        res = choose_resolution(analysis, resolution, cfg)
        logger.info(
            "Classified as %s (colors=%d entropy=%.3f edges=%.3f), tracing at %d px",
            analysis.kind, analysis.unique_colors, analysis.entropy,
            analysis.edge_density, res,
        )

        canvas = output_size(img.size, cfg)
        strokes = trace_raster(
            image_to_raster(img, res), analysis, error_tolerance,
            output_size=canvas,
            config=cfg,
            debug_name=Path(name).stem,
        )
        logger.info(
            "Traced %d strokes (%d segments)",
            len(strokes), sum(len(s) for s in strokes),
        )
        return TraceResult(analysis, res, canvas, strokes)
    finally:
        pop_context(["image"])


def trace_from_image(
    source: ImageSource,
    error_tolerance: float,
    resolution: Optional[int] = None,
    config: Optional[validators.TracerConfigV1] = None
) -> List[Stroke]:
    """Trace an image file or URL into cubic Bézier strokes.

    Parameters
    ----------
    source : str or Path
        Filesystem path or http(s) URL
    error_tolerance : float
        Max fitting deviation in output units, > 0
    resolution : int, optional
        Square trace resolution; per-kind default when None
    config : TracerConfigV1, optional
        Pipeline configuration; defaults when None

    Returns
    -------
    List[Stroke]
        Strokes in output coordinates (source image size by default)

    Raises
    ------
    FileNotFoundError
        If a path source doesn't exist
    ImageLoadError
        If the source cannot be fetched or decoded
    ValueError
        If error_tolerance or resolution is invalid
    """
    return trace_image(source, error_tolerance, resolution, config).strokes
