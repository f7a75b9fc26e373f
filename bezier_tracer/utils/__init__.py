"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config and output schema validation (validators)
    - Geometry operations (geometry)
    - Atomic I/O (fs)
    - Profiling (profiler)
    - Unified logging (logging_config)

No module in utils/ may import from data_pipeline/.

Convenience imports:
    from bezier_tracer.utils import fs, geometry, validators
    from bezier_tracer.utils.logging_config import setup_logging, get_logger
"""

# Re-export commonly used modules for convenience
from . import fs
from . import geometry
from . import logging_config
from . import profiler
from . import validators

# Common functions for direct import
from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'geometry',
    'logging_config',
    'profiler',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
