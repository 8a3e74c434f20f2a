#!/usr/bin/env python3
"""
Operation Metrics for the Streaming Template Packager

Collects memory samples for a single operation call and aggregates them,
together with timing and size data, into one immutable metrics record.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from .memory_probe import MemorySample

logger = logging.getLogger(__name__)

TREND_INCREASING = 'increasing'
TREND_DECREASING = 'decreasing'
TREND_STABLE = 'stable'

# Relative change between first and last sample that counts as a trend
TREND_THRESHOLD = 0.1


class SampleRecorder:
    """
    Append-only sample buffer owned by exactly one operation call.

    Timestamps are kept non-decreasing: a sample whose clock reading is
    earlier than the previous one is recorded with the previous timestamp.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._samples: List[MemorySample] = []

    def record(self, sample: MemorySample) -> Optional[MemorySample]:
        if not self.enabled:
            return None

        if self._samples and sample.timestamp_millis < self._samples[-1].timestamp_millis:
            sample = replace(sample, timestamp_millis=self._samples[-1].timestamp_millis)

        self._samples.append(sample)
        return sample

    def snapshot(self) -> Tuple[MemorySample, ...]:
        return tuple(self._samples)

    def clear(self):
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)


@dataclass(frozen=True)
class OperationMetrics:
    """Resource report of one completed operation."""

    input_size_bytes: int
    chunk_count: int
    samples: Tuple[MemorySample, ...] = field(default_factory=tuple)
    duration_millis: int = 0
    peak_resident_bytes: int = 0
    average_resident_bytes: float = 0.0
    compression_ratio: Optional[float] = None
    ceiling_breaches: int = 0

    @property
    def memory_trend(self) -> str:
        return memory_trend(self.samples)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'input_size_bytes': self.input_size_bytes,
            'chunk_count': self.chunk_count,
            'samples': [s.to_dict() for s in self.samples],
            'duration_millis': self.duration_millis,
            'peak_resident_bytes': self.peak_resident_bytes,
            'average_resident_bytes': self.average_resident_bytes,
            'compression_ratio': self.compression_ratio,
            'ceiling_breaches': self.ceiling_breaches,
            'memory_trend': self.memory_trend
        }


@dataclass(frozen=True)
class MemoryReport:
    """Summary of the memory behaviour of one operation."""
    peak: int
    average: float
    trend: str
    sample_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'peak': self.peak,
            'average': self.average,
            'trend': self.trend,
            'sample_count': self.sample_count
        }


def memory_trend(samples: Tuple[MemorySample, ...]) -> str:
    """Classify resident memory movement between the first and last sample."""
    if len(samples) < 2:
        return TREND_STABLE

    first = samples[0].resident_bytes
    last = samples[-1].resident_bytes
    diff = last - first
    threshold = first * TREND_THRESHOLD

    if diff > threshold:
        return TREND_INCREASING
    if diff < -threshold:
        return TREND_DECREASING
    return TREND_STABLE


class MetricsAggregator:
    """Turns samples plus timing and size data into OperationMetrics."""

    def aggregate(self,
                  input_size_bytes: int,
                  chunk_count: int,
                  samples: Tuple[MemorySample, ...],
                  started_millis: int,
                  finished_millis: int,
                  output_size_bytes: Optional[int] = None,
                  ceiling_breaches: int = 0) -> OperationMetrics:
        """
        Build the metrics record for a finished operation.

        Args:
            input_size_bytes: Bytes read from the source
            chunk_count: Chunks processed, in file order
            samples: Ordered memory samples of the operation
            started_millis: Operation start, monotonic milliseconds
            finished_millis: Operation end, monotonic milliseconds
            output_size_bytes: Archive size; only given by the archive operation
            ceiling_breaches: Samples that exceeded the advisory memory ceiling

        Returns:
            Immutable OperationMetrics
        """
        samples = tuple(samples)
        peak, average = self._resident_stats(samples)

        compression_ratio = None
        if output_size_bytes is not None:
            if output_size_bytes > 0:
                compression_ratio = input_size_bytes / output_size_bytes
            else:
                logger.warning("Output size is zero - compression ratio undefined")

        return OperationMetrics(
            input_size_bytes=input_size_bytes,
            chunk_count=chunk_count,
            samples=samples,
            duration_millis=max(0, finished_millis - started_millis),
            peak_resident_bytes=peak,
            average_resident_bytes=average,
            compression_ratio=compression_ratio,
            ceiling_breaches=ceiling_breaches
        )

    def memory_report(self, metrics: OperationMetrics) -> MemoryReport:
        """Generate a memory usage report for a finished operation."""
        return MemoryReport(
            peak=metrics.peak_resident_bytes,
            average=metrics.average_resident_bytes,
            trend=metrics.memory_trend,
            sample_count=len(metrics.samples)
        )

    def _resident_stats(self, samples: Tuple[MemorySample, ...]) -> Tuple[int, float]:
        if not samples:
            return 0, 0.0

        resident = [s.resident_bytes for s in samples]
        return max(resident), sum(resident) / len(resident)
