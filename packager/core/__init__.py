#!/usr/bin/env python3
"""
Core processing components of the Streaming Template Packager.
"""

from .options import StreamingOptions
from .chunked_reader import ChunkedReader, iter_chunks, expected_chunk_count
from .directory_walker import DirectoryWalker, WalkEntry
from .archiver import StreamArchiver, ArchiveStats
from .optimizer import DocumentOptimizer, TransformationCounters
from .document_format import DocumentFormat, detect_format, parse_document, serialize_document
from .template_stats import TemplateCounts, count_template_nodes, calculate_complexity

__all__ = [
    'StreamingOptions',
    'ChunkedReader',
    'iter_chunks',
    'expected_chunk_count',
    'DirectoryWalker',
    'WalkEntry',
    'StreamArchiver',
    'ArchiveStats',
    'DocumentOptimizer',
    'TransformationCounters',
    'DocumentFormat',
    'detect_format',
    'parse_document',
    'serialize_document',
    'TemplateCounts',
    'count_template_nodes',
    'calculate_complexity'
]
