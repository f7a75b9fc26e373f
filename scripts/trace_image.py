#!/usr/bin/env python3
"""Trace an image into cubic Bézier strokes and dump them as YAML.

Runs the full pipeline (classify → mask/edges → contours → RDP → Bézier fit)
and writes a strokes.v1 document:
    schema: strokes.v1
    canvas_px: [W, H]
    strokes: [[{p0, c1, c2, p3}, ...], ...]
    metadata: {source, kind, resolution_px, error_tolerance, ...}

Usage:
    # Trace a local logo with the default tolerance
    python scripts/trace_image.py data/logo.png -o outputs/logo.strokes.yaml

    # Trace a photo from a URL at a custom resolution
    python scripts/trace_image.py https://example.com/cat.jpg --resolution 800 --tolerance 3
"""
import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bezier_tracer import __version__
from bezier_tracer.data_pipeline.image_loader import ImageLoadError
from bezier_tracer.data_pipeline.tracer import trace_image
from bezier_tracer.utils import fs, validators
from bezier_tracer.utils.logging_config import get_logger, setup_logging

DEFAULT_TOLERANCE = 4.0

logger = get_logger(__name__)


def main() -> int:
    """CLI entrypoint for image tracing."""
    parser = argparse.ArgumentParser(
        description="Trace a raster image into cubic Bézier strokes (strokes.v1 YAML)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Strategies (picked automatically from a 256 px preview):
  alpha          transparency defines the shape → single outline
  logo           few colours → up to 3 outlines
  illustration   moderate detail → up to 5 outlines
  photo          Canny edges → 5..30 edge strokes

Coordinates are written in source image pixels unless output.canvas_px is
set in the config.
""",
    )
    parser.add_argument("source", help="Image path or http(s) URL")
    parser.add_argument(
        "--tolerance",
        "-t",
        type=float,
        default=DEFAULT_TOLERANCE,
        help=f"Max fitting error in output units (default: {DEFAULT_TOLERANCE})",
    )
    parser.add_argument(
        "--resolution",
        "-r",
        type=int,
        default=None,
        help="Square trace resolution (default: 512, or 640 for photos)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Tracer config YAML (tracer.v1); built-in defaults when omitted",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output strokes YAML (default: <source stem>.strokes.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Write the log file as JSON lines",
    )

    args = parser.parse_args()

    # Setup logging
    log_level = "DEBUG" if args.verbose else "INFO"
    setup_logging(
        log_level=log_level,
        log_file=str(args.log_file) if args.log_file else None,
        json=args.log_json,
        quiet_libs=["PIL", "urllib3"],
    )

    try:
        cfg = validators.load_tracer_config(args.config) if args.config else validators.TracerConfigV1()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.tolerance <= 0:
        print(f"Error: --tolerance must be positive, got {args.tolerance}", file=sys.stderr)
        return 1

    name = Path(args.source).name
    output_path = args.output or Path(f"{Path(name).stem}.strokes.yaml")

    try:
        result = trace_image(args.source, args.tolerance, args.resolution, cfg)
    except (FileNotFoundError, ImageLoadError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    strokes = result.strokes

    if not strokes:
        logger.warning("No strokes traced from %s", args.source)

    doc = validators.strokes_to_yaml_dict(
        strokes,
        result.canvas,
        {
            'source': str(args.source),
            'kind': result.analysis.kind,
            'resolution_px': result.resolution,
            'error_tolerance': float(args.tolerance),
            'generated_at': datetime.now(timezone.utc).isoformat(),
            'tracer_version': __version__,
        },
    )
    fs.atomic_yaml_dump(doc, output_path)
    logger.info(
        "Wrote %d strokes (%d segments) to %s",
        len(strokes), sum(len(s) for s in strokes), output_path,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
