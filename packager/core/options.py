#!/usr/bin/env python3
"""
Streaming options for the Streaming Template Packager.

Options are built once per invocation and passed down unchanged.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_MEMORY_BYTES = 100 * 1024 * 1024  # 100MB
DEFAULT_CHUNK_SIZE_BYTES = 1024 * 1024  # 1MB
DEFAULT_TEMP_DIRECTORY = Path('.temp') / 'streaming'


@dataclass(frozen=True)
class StreamingOptions:
    """Immutable per-invocation streaming configuration."""

    max_memory_bytes: int = DEFAULT_MAX_MEMORY_BYTES
    chunk_size_bytes: int = DEFAULT_CHUNK_SIZE_BYTES
    memory_monitoring_enabled: bool = True
    temp_directory: Path = field(default_factory=lambda: Path.cwd() / DEFAULT_TEMP_DIRECTORY)

    def __post_init__(self):
        _require_positive_int('max_memory_bytes', self.max_memory_bytes)
        _require_positive_int('chunk_size_bytes', self.chunk_size_bytes)

        if self.temp_directory is None or str(self.temp_directory) == '':
            raise ConfigurationError("temp_directory is required")

        # Normalize to Path without breaking immutability
        object.__setattr__(self, 'temp_directory', Path(self.temp_directory))
        object.__setattr__(self, 'memory_monitoring_enabled', bool(self.memory_monitoring_enabled))

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'StreamingOptions':
        """
        Build options from a plain mapping using the recognized option names.

        Args:
            values: Mapping with any of max_memory_bytes, chunk_size_bytes,
                memory_monitoring_enabled, temp_directory

        Returns:
            Validated StreamingOptions
        """
        recognized = {'max_memory_bytes', 'chunk_size_bytes',
                      'memory_monitoring_enabled', 'temp_directory'}
        unknown = set(values) - recognized
        if unknown:
            raise ConfigurationError(f"Unknown streaming options: {', '.join(sorted(unknown))}")

        return cls(**values)

    def to_dict(self) -> Dict[str, Union[int, bool, str]]:
        """Convert to dictionary."""
        return {
            'max_memory_bytes': self.max_memory_bytes,
            'chunk_size_bytes': self.chunk_size_bytes,
            'memory_monitoring_enabled': self.memory_monitoring_enabled,
            'temp_directory': str(self.temp_directory)
        }


def _require_positive_int(name: str, value: Any):
    # bool is an int subclass but never a valid size
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got: {value!r}")
