#!/usr/bin/env python3
"""
Error types for the Streaming Template Packager.

Every error carries the offending path plus the operation and phase it was
raised in, so a single log line is enough to act on it.
"""

from pathlib import Path
from typing import Optional, Union


class PackagingError(Exception):
    """Base exception for packaging operations."""

    def __init__(self,
                 message: str,
                 path: Optional[Union[str, Path]] = None,
                 operation: Optional[str] = None,
                 phase: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else None
        self.operation = operation
        self.phase = phase

    def attach_context(self, operation: str, phase: str) -> 'PackagingError':
        """Fill in operation and phase unless already set closer to the failure."""
        if self.operation is None:
            self.operation = operation
        if self.phase is None:
            self.phase = phase
        return self

    def __str__(self) -> str:
        parts = [self.message]
        if self.path:
            parts.append(f"path={self.path}")
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.phase:
            parts.append(f"phase={self.phase}")
        return " | ".join(parts)


class ConfigurationError(PackagingError):
    """Invalid options or missing required paths. Raised before any I/O."""
    pass


class PackagingIOError(PackagingError, OSError):
    """Open, read, write or listing failure on a source, destination or temp path."""
    pass


class TransformationError(PackagingError):
    """A document could not be parsed or contains an unsupported node."""
    pass
