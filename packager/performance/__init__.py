#!/usr/bin/env python3
"""
Resource Monitoring Components for the Streaming Template Packager

Components included:
- MemoryProbe: On-demand process memory sampling and ceiling checks
- SampleRecorder: Per-operation sample buffer
- MetricsAggregator: Immutable per-operation metrics
"""

from .memory_probe import MemoryProbe, MemorySample
from .metrics import MetricsAggregator, OperationMetrics, SampleRecorder, MemoryReport

__all__ = [
    'MemoryProbe',
    'MemorySample',
    'MetricsAggregator',
    'OperationMetrics',
    'SampleRecorder',
    'MemoryReport'
]
