#!/usr/bin/env python3
"""
Streaming Template Packager

Bounded-memory analysis, archiving and optimization of large deployment
templates and template packages, with self-reported memory metrics.
"""

__version__ = "0.1.0"
__description__ = "Bounded-memory streaming processor for deployment template packages"

import logging
import sys
from typing import Optional, TextIO

# Get package logger
logger = logging.getLogger(__name__)

# Version info
VERSION_INFO = tuple(map(int, __version__.split('.')))

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_version() -> str:
    """Get the current version string."""
    return __version__


def setup_logging(level: str = "INFO", log_file: Optional[str] = None, stream: Optional[TextIO] = None):
    """Setup logging configuration. Console records go to stdout unless another stream is given."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    handlers = [logging.StreamHandler(stream or sys.stdout)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )

    logger.debug(f"Logging configured at {level} level")


from .errors import (
    PackagingError,
    ConfigurationError,
    PackagingIOError,
    TransformationError,
)
from .core.options import StreamingOptions
from .services.packaging_service import (
    StreamingPackagingService,
    TemplateAnalysis,
    ArchiveResult,
    OptimizationResult,
)

__all__ = [
    'StreamingPackagingService',
    'StreamingOptions',
    'TemplateAnalysis',
    'ArchiveResult',
    'OptimizationResult',
    'PackagingError',
    'ConfigurationError',
    'PackagingIOError',
    'TransformationError',
    'get_version',
    'setup_logging',
    '__version__'
]
