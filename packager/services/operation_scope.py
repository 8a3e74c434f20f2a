#!/usr/bin/env python3
"""
Operation Scope for the Streaming Template Packager

Owns everything one operation call mutates: its phase, its memory sample
buffer and its temp directory. The scope guarantees that the temp
directory is gone and the samples are discarded when the call ends,
whether it succeeded or failed.
"""

import logging
import shutil
import tempfile
import time
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from ..core.options import StreamingOptions
from ..errors import PackagingError, PackagingIOError
from ..performance.memory_probe import MemoryProbe
from ..performance.metrics import MetricsAggregator, OperationMetrics, SampleRecorder

logger = logging.getLogger(__name__)


class OperationPhase(Enum):
    IDLE = 'idle'
    READING = 'reading'
    WALKING = 'walking'
    TRANSFORMING = 'transforming'
    FINALIZING = 'finalizing'
    DONE = 'done'
    FAILED = 'failed'


class OperationScope:
    """
    Async context manager scoping one analyze/archive/optimize call.

    Usage:
        async with OperationScope('analysis', path, options, probe, aggregator) as scope:
            scope.sample('analysis-start')
            scope.enter(OperationPhase.READING)
            ...
    """

    def __init__(self,
                 name: str,
                 subject: Union[str, Path],
                 options: StreamingOptions,
                 probe: MemoryProbe,
                 aggregator: MetricsAggregator):
        self.name = name
        self.subject = Path(subject)
        self.options = options
        self.probe = probe
        self.aggregator = aggregator

        self.phase = OperationPhase.IDLE
        self.recorder = SampleRecorder(enabled=options.memory_monitoring_enabled)
        self.temp_dir: Optional[Path] = None
        self.ceiling_breaches = 0

        self._created_dirs: List[Path] = []
        self._started_millis = 0

    async def __aenter__(self) -> 'OperationScope':
        self._started_millis = _monotonic_millis()
        self._create_temp_dir()
        logger.debug(f"[{self.name}] started on {self.subject} (temp dir {self.temp_dir})")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            self._cleanup(raise_errors=True)
            self.phase = OperationPhase.DONE
            logger.debug(f"[{self.name}] done")
            return False

        failed_phase = self.phase
        self.phase = OperationPhase.FAILED
        self._cleanup(raise_errors=False)

        logger.error(f"[{self.name}] failed during {failed_phase.value}: {exc}")

        if isinstance(exc, PackagingError):
            exc.attach_context(self.name, failed_phase.value)
            return False

        if isinstance(exc, OSError):
            raise PackagingIOError(str(exc),
                                   path=getattr(exc, 'filename', None) or self.subject,
                                   operation=self.name,
                                   phase=failed_phase.value) from exc

        return False

    def enter(self, phase: OperationPhase):
        """Move to the next pipeline phase."""
        logger.debug(f"[{self.name}] {self.phase.value} -> {phase.value}")
        self.phase = phase

    def sample(self, label: str):
        """Take a memory sample and check the ceiling. No-op when monitoring is disabled."""
        if not self.options.memory_monitoring_enabled:
            return

        sample = self.probe.sample(label)
        self.recorder.record(sample)

        if self.probe.check_ceiling(sample, self.options):
            self.ceiling_breaches += 1

    def build_metrics(self,
                      input_size_bytes: int,
                      chunk_count: int,
                      output_size_bytes: Optional[int] = None) -> OperationMetrics:
        """Aggregate this call's samples and timing into its metrics record."""
        return self.aggregator.aggregate(
            input_size_bytes=input_size_bytes,
            chunk_count=chunk_count,
            samples=self.recorder.snapshot(),
            started_millis=self._started_millis,
            finished_millis=_monotonic_millis(),
            output_size_bytes=output_size_bytes,
            ceiling_breaches=self.ceiling_breaches
        )

    def _create_temp_dir(self):
        base = self.options.temp_directory

        # Remember which directories this call creates so only those are removed
        self._created_dirs = missing_ancestors(base)

        try:
            base.mkdir(parents=True, exist_ok=True)
            self.temp_dir = Path(tempfile.mkdtemp(prefix=f"{self.name}-{time.time_ns()}-", dir=base))
        except OSError as e:
            self._remove_created_dirs()
            raise PackagingIOError(f"Failed to create temp directory: {e}", path=base,
                                   operation=self.name, phase=self.phase.value) from e

    def _cleanup(self, raise_errors: bool):
        self.recorder.clear()

        if self.temp_dir is not None:
            try:
                shutil.rmtree(self.temp_dir)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"[{self.name}] failed to remove temp directory {self.temp_dir}: {e}")
                if raise_errors:
                    raise PackagingIOError(f"Failed to remove temp directory: {e}",
                                           path=self.temp_dir, operation=self.name,
                                           phase=self.phase.value) from e
            self.temp_dir = None

        self._remove_created_dirs()

    def _remove_created_dirs(self):
        remove_created_dirs(self._created_dirs)
        self._created_dirs = []


def _monotonic_millis() -> int:
    return time.monotonic_ns() // 1_000_000


def missing_ancestors(path: Path) -> List[Path]:
    """Directories from path upwards that do not exist yet, innermost first."""
    missing = []
    candidate = path
    while not candidate.exists() and candidate != candidate.parent:
        missing.append(candidate)
        candidate = candidate.parent
    return missing


def remove_created_dirs(directories: List[Path]):
    """Remove directories innermost first, stopping at the first one still in use."""
    for directory in directories:
        try:
            directory.rmdir()
        except FileNotFoundError:
            continue
        except OSError:
            logger.debug(f"Keeping shared directory {directory} (not empty)")
            break
