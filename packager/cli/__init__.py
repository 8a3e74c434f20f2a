#!/usr/bin/env python3
"""
CLI Interface for the Streaming Template Packager

Provides the command-line interface for analyzing, archiving, optimizing
and benchmarking deployment templates.
"""

from .main import main, cli
from .config import load_config, build_streaming_options

__all__ = [
    'main',
    'cli',
    'load_config',
    'build_streaming_options'
]
