"""Tracing pipeline stages.

Modules:
    - image_loader: Path/URL decoding into immutable RGBA rasters
    - classifier: Preview statistics → alpha / logo / illustration / photo
    - mask: Alpha or Otsu binary foreground mask
    - edges: Canny edge detection (blur, Sobel, NMS, hysteresis)
    - contour: Marching squares → ordered contours
    - simplify: Ramer–Douglas–Peucker polyline simplification
    - bezier_fit: Schneider cubic Bézier fitting
    - tracer: Orchestrator tying the stages together

Workflow:
    1. Decode source; classify a 256 px preview
    2. Resample to the trace resolution (512, or 640 for photos)
    3. Mask (alpha/logo/illustration) or Canny edges (photo)
    4. Marching squares → longest contours
    5. Scale to output space → RDP → cubic Bézier strokes

All stages are deterministic pure functions of their inputs.
"""
