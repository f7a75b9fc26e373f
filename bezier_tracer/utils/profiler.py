"""Lightweight profiling: wall-clock timers for pipeline stages.

Provides:
    - timer(): Context manager for wall-clock timing with optional sink
    - TimerAccumulator: Aggregate repeated measurements (e.g., per contour)

Used to measure:
    - Image decoding (preview + trace resolution)
    - Mask / Canny edge extraction
    - Marching squares tracing
    - Simplification + Bézier fitting

No heavy dependencies (no line_profiler, no cProfile overhead per trace).
"""

import time
from contextlib import contextmanager
from typing import Callable, Optional


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None):
    """Context manager for wall-clock timing.

    Parameters
    ----------
    name : str
        Timer name (for logging/display)
    sink : Optional[Callable[[str, float], None]]
        Optional callback(name, elapsed_seconds)
        If None, prints to stdout

    Yields
    ------
    None

    Examples
    --------
    >>> with timer("canny"):
    ...     edges = canny_edge_detection(raster, 1.4, 0.08, 0.2)
    canny: 0.123 s

    >>> def log_stage(name, elapsed):
    ...     logger.debug("%s took %.3f s", name, elapsed)
    >>> with timer("fit", sink=log_stage):
    ...     segments = fit_curve(points, 4.0)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if sink is not None:
            sink(name, elapsed)
        else:
            print(f"{name}: {elapsed:.3f} s")


class TimerAccumulator:
    """Accumulate multiple timing measurements for averaging.

    Examples
    --------
    >>> fit_timer = TimerAccumulator("fit")
    >>> for contour in contours:
    ...     with fit_timer.measure():
    ...         fit_contour(contour, scale, tolerance)
    >>> print(f"Mean: {fit_timer.mean():.4f} s")
    """

    def __init__(self, name: str):
        self.name = name
        self.total_time = 0.0
        self.count = 0

    @contextmanager
    def measure(self):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.total_time += time.perf_counter() - start
            self.count += 1

    def mean(self) -> float:
        """Mean seconds per measurement (0.0 before the first one)."""
        if self.count == 0:
            return 0.0
        return self.total_time / self.count
