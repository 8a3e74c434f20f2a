#!/usr/bin/env python3
"""
Service Layer for the Streaming Template Packager

Services included:
- StreamingPackagingService: analyze, archive and optimize operations
- OperationScope: per-call phase, samples and temp directory
"""

from .operation_scope import OperationScope, OperationPhase
from .packaging_service import (
    StreamingPackagingService,
    TemplateAnalysis,
    ArchiveResult,
    OptimizationResult
)

__all__ = [
    'StreamingPackagingService',
    'TemplateAnalysis',
    'ArchiveResult',
    'OptimizationResult',
    'OperationScope',
    'OperationPhase'
]
