#!/usr/bin/env python3
"""
Streaming Packaging Service for the Streaming Template Packager

Top-level analyze, archive and optimize operations over large deployment
templates and template packages. Each operation runs the same pipeline:
start probe, transformation, end probe, metrics, guaranteed cleanup.

Analysis and optimization still materialize the whole document after the
chunked read; only archiving is incremental end to end.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles

from ..core.archiver import DEFAULT_COMPRESSION_LEVEL, StreamArchiver, validate_compression_level
from ..core.chunked_reader import ChunkedReader
from ..core.directory_walker import DirectoryWalker
from ..core.document_format import detect_format, parse_document, serialize_document
from ..core.optimizer import DocumentOptimizer, TransformationCounters
from ..core.options import StreamingOptions
from ..core.template_stats import count_template_nodes
from ..errors import ConfigurationError, PackagingIOError
from ..performance.memory_probe import MemoryProbe
from ..performance.metrics import MemoryReport, MetricsAggregator, OperationMetrics
from .operation_scope import OperationPhase, OperationScope

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TemplateAnalysis:
    """Result of a streaming template analysis."""
    resource_count: int
    parameter_count: int
    output_count: int
    template_size_bytes: int
    complexity: int
    metrics: OperationMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {
            'resource_count': self.resource_count,
            'parameter_count': self.parameter_count,
            'output_count': self.output_count,
            'template_size_bytes': self.template_size_bytes,
            'complexity': self.complexity,
            'metrics': self.metrics.to_dict()
        }


@dataclass(frozen=True)
class ArchiveResult:
    """Result of a streaming package archive build."""
    archive_path: Path
    archive_size_bytes: int
    entry_count: int
    metrics: OperationMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {
            'archive_path': str(self.archive_path),
            'archive_size_bytes': self.archive_size_bytes,
            'entry_count': self.entry_count,
            'metrics': self.metrics.to_dict()
        }


@dataclass(frozen=True)
class OptimizationResult:
    """Result of a streaming template optimization."""
    output_path: Path
    output_size_bytes: int
    counters: TransformationCounters
    metrics: OperationMetrics

    @property
    def size_reduction(self) -> float:
        """Fraction of the input size saved, negative when the output grew."""
        if self.metrics.input_size_bytes == 0:
            return 0.0
        return 1 - self.output_size_bytes / self.metrics.input_size_bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            'output_path': str(self.output_path),
            'output_size_bytes': self.output_size_bytes,
            'size_reduction': self.size_reduction,
            'counters': self.counters.to_dict(),
            'metrics': self.metrics.to_dict()
        }


class StreamingPackagingService:
    """
    Bounded-memory processor for deployment templates and packages.

    The service holds only immutable configuration and collaborators; all
    per-call state lives in an OperationScope, so concurrent calls on one
    instance do not interfere.
    """

    def __init__(self,
                 options: Optional[StreamingOptions] = None,
                 probe: Optional[MemoryProbe] = None,
                 aggregator: Optional[MetricsAggregator] = None):
        """
        Initialize streaming packaging service.

        Args:
            options: Streaming options (defaults apply when omitted)
            probe: Memory probe; tests pass a deterministic fake
            aggregator: Metrics aggregator
        """
        self.options = options or StreamingOptions()
        self.probe = probe or MemoryProbe()
        self.aggregator = aggregator or MetricsAggregator()
        self.optimizer = DocumentOptimizer()

        logger.debug(f"Streaming packaging service initialized: chunk_size={self.options.chunk_size_bytes}, "
                     f"max_memory={self.options.max_memory_bytes}, "
                     f"monitoring={self.options.memory_monitoring_enabled}")

    def _scope(self, name: str, subject: PathLike) -> OperationScope:
        return OperationScope(name, subject, self.options, self.probe, self.aggregator)

    async def analyze_template(self, template_path: PathLike) -> TemplateAnalysis:
        """
        Count resources, parameters and outputs of a template read in chunks.

        Args:
            template_path: JSON or YAML template

        Returns:
            TemplateAnalysis with counts, complexity and metrics
        """
        path = _require_path(template_path, 'template_path')

        async with self._scope('analysis', path) as scope:
            scope.sample('analysis-start')

            scope.enter(OperationPhase.READING)
            template_size = path.stat().st_size
            logger.info(f"Analyzing template {path} ({_format_mb(template_size)})")
            self._warn_if_large(template_size, 'template')

            reader = ChunkedReader(self.options.chunk_size_bytes)
            content = await reader.read_all(path, lambda index: scope.sample(f"read-chunk-{index + 1}"))

            scope.enter(OperationPhase.TRANSFORMING)
            document = parse_document(content, detect_format(path), source=path)
            counts = count_template_nodes(document)

            scope.enter(OperationPhase.FINALIZING)
            scope.sample('analysis-end')
            metrics = scope.build_metrics(len(content), reader.chunks_read)

        logger.info(f"Streaming analysis completed: {counts.resource_count} resources, "
                    f"{counts.parameter_count} parameters, {counts.output_count} outputs, "
                    f"complexity {counts.complexity}, {metrics.duration_millis}ms, "
                    f"peak {_format_mb(metrics.peak_resident_bytes)}")

        return TemplateAnalysis(
            resource_count=counts.resource_count,
            parameter_count=counts.parameter_count,
            output_count=counts.output_count,
            template_size_bytes=len(content),
            complexity=counts.complexity,
            metrics=metrics
        )

    async def create_package_archive(self,
                                     source_path: PathLike,
                                     destination_path: PathLike,
                                     compression_level: int = DEFAULT_COMPRESSION_LEVEL) -> ArchiveResult:
        """
        Build a ZIP package from a directory tree with streaming compression.

        Args:
            source_path: Package directory
            destination_path: Archive file to write
            compression_level: zlib level 0-9

        Returns:
            ArchiveResult with the archive size, entry count and metrics
            (including the compression ratio)
        """
        source = _require_path(source_path, 'source_path')
        destination = _require_path(destination_path, 'destination_path')
        validate_compression_level(compression_level)

        async with self._scope('archive', source) as scope:
            scope.sample('compression-start')

            scope.enter(OperationPhase.WALKING)
            if not source.is_dir():
                raise PackagingIOError("Source path is not a directory", path=source)
            source_size = DirectoryWalker(source, exclude=[destination]).total_size()
            logger.info(f"Archiving {source} ({_format_mb(source_size)}) into {destination}")
            self._warn_if_large(source_size, 'package')

            scope.enter(OperationPhase.TRANSFORMING)
            archiver = StreamArchiver(self.options.chunk_size_bytes,
                                      on_entry=lambda name: scope.sample(f"archive-file-{name}"))
            stats = await archiver.create_archive(source, destination, compression_level)

            scope.enter(OperationPhase.FINALIZING)
            scope.sample('compression-end')
            metrics = scope.build_metrics(stats.input_size_bytes, stats.chunk_count,
                                          output_size_bytes=stats.archive_size_bytes)

        ratio = metrics.compression_ratio or 0.0
        logger.info(f"Streaming compression completed: {stats.entry_count} files, "
                    f"{_format_mb(stats.input_size_bytes)} -> {_format_mb(stats.archive_size_bytes)} "
                    f"({ratio:.2f}x), {metrics.duration_millis}ms, "
                    f"peak {_format_mb(metrics.peak_resident_bytes)}")

        return ArchiveResult(
            archive_path=destination,
            archive_size_bytes=stats.archive_size_bytes,
            entry_count=stats.entry_count,
            metrics=metrics
        )

    async def optimize_template(self, input_path: PathLike, output_path: PathLike) -> OptimizationResult:
        """
        Strip comments and collapse whitespace in a template's string values.

        The result is written in the input's format (JSON or YAML). It is
        staged in the operation's temp directory and moved into place once
        complete.

        Args:
            input_path: Template to optimize
            output_path: Where to write the optimized template

        Returns:
            OptimizationResult with output size, counters and metrics
        """
        source = _require_path(input_path, 'input_path')
        output = _require_path(output_path, 'output_path')

        async with self._scope('optimization', source) as scope:
            scope.sample('optimization-start')

            scope.enter(OperationPhase.READING)
            input_size = source.stat().st_size
            logger.info(f"Optimizing template {source} ({_format_mb(input_size)})")
            self._warn_if_large(input_size, 'template')

            reader = ChunkedReader(self.options.chunk_size_bytes)
            content = await reader.read_all(source, lambda index: scope.sample(f"read-chunk-{index + 1}"))

            scope.enter(OperationPhase.TRANSFORMING)
            document_format = detect_format(source)
            document = parse_document(content, document_format, source=source)
            optimized, counters = self.optimizer.optimize(document)
            payload = serialize_document(optimized, document_format)

            scope.enter(OperationPhase.FINALIZING)
            output_size = await self._write_output(payload, scope.temp_dir / output.name, output)
            scope.sample('optimization-end')
            metrics = scope.build_metrics(len(content), reader.chunks_read)

        result = OptimizationResult(
            output_path=output,
            output_size_bytes=output_size,
            counters=counters,
            metrics=metrics
        )

        logger.info(f"Streaming optimization completed: {counters.comments_removed} comments removed, "
                    f"{counters.whitespace_compactions} whitespace compactions, "
                    f"{counters.subtrees_visited} subtrees, "
                    f"size reduction {result.size_reduction * 100:.1f}%, {metrics.duration_millis}ms")

        return result

    def memory_report(self, metrics: OperationMetrics) -> MemoryReport:
        """Peak, average and trend of a finished operation's memory samples."""
        return self.aggregator.memory_report(metrics)

    async def _write_output(self, payload: bytes, staged: Path, output: Path) -> int:
        try:
            async with aiofiles.open(staged, 'wb') as f:
                await f.write(payload)

            output.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(staged), str(output))
            return output.stat().st_size
        except OSError as e:
            raise PackagingIOError(f"Failed to write optimized template: {e}", path=output) from e

    def _warn_if_large(self, size_bytes: int, kind: str):
        if size_bytes > self.options.max_memory_bytes:
            logger.warning(f"Large {kind} detected ({_format_mb(size_bytes)}) - "
                           f"exceeds memory ceiling {_format_mb(self.options.max_memory_bytes)}")


def _require_path(value: Optional[PathLike], name: str) -> Path:
    if value is None or str(value) == '':
        raise ConfigurationError(f"{name} is required")
    return Path(value)


def _format_mb(size_bytes: float) -> str:
    return f"{size_bytes / 1024 / 1024:.2f}MB"
