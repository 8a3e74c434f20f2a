#!/usr/bin/env python3
"""
Memory Probe for the Streaming Template Packager

Samples process memory counters on demand and evaluates the advisory
memory ceiling. Samples are plain values; the probe keeps no history.
"""

import logging
import time
import tracemalloc
from dataclasses import dataclass
from typing import Any, Dict, Optional

import psutil

from ..core.options import StreamingOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemorySample:
    """Point-in-time memory reading tagged with the operation step that took it."""

    timestamp_millis: int
    resident_bytes: int
    heap_used_bytes: int
    heap_total_bytes: int
    external_bytes: int
    label: str

    @property
    def resident_mb(self) -> float:
        return self.resident_bytes / 1024 / 1024

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'timestamp_millis': self.timestamp_millis,
            'resident_bytes': self.resident_bytes,
            'heap_used_bytes': self.heap_used_bytes,
            'heap_total_bytes': self.heap_total_bytes,
            'external_bytes': self.external_bytes,
            'label': self.label
        }


class MemoryProbe:
    """
    Reads memory counters of the current process.

    Resident size comes from psutil RSS, heap total from the virtual memory
    size and external bytes from shared memory where the platform reports
    it. Heap used is the amount traced by tracemalloc, so it is only non-zero
    while tracing is active.
    """

    def __init__(self, process: Optional[psutil.Process] = None):
        self.process = process or psutil.Process()

    def sample(self, label: str) -> MemorySample:
        """
        Take a memory sample. Never raises.

        Args:
            label: Operation step the sample belongs to

        Returns:
            MemorySample, zero-valued if the counters could not be read
        """
        timestamp = time.time_ns() // 1_000_000

        try:
            memory_info = self.process.memory_info()
        except (psutil.Error, OSError) as e:
            logger.warning(f"Failed to read memory counters for '{label}': {e}")
            return MemorySample(timestamp, 0, 0, 0, 0, label)

        heap_used = tracemalloc.get_traced_memory()[0] if tracemalloc.is_tracing() else 0

        return MemorySample(
            timestamp_millis=timestamp,
            resident_bytes=memory_info.rss,
            heap_used_bytes=heap_used,
            heap_total_bytes=memory_info.vms,
            external_bytes=getattr(memory_info, 'shared', 0),
            label=label
        )

    def check_ceiling(self, sample: MemorySample, options: StreamingOptions) -> bool:
        """
        Warn when a sample exceeds the configured memory ceiling.

        The ceiling is advisory: processing always continues.

        Returns:
            True if the ceiling was exceeded
        """
        if sample.resident_bytes <= options.max_memory_bytes:
            return False

        logger.warning(f"Memory usage high at '{sample.label}': {sample.resident_mb:.2f}MB "
                       f"exceeds ceiling {options.max_memory_bytes / 1024 / 1024:.2f}MB")
        logger.warning("Consider reducing chunk size or enabling more aggressive streaming")
        return True
