#!/usr/bin/env python3
"""
Document Optimizer for the Streaming Template Packager

Rewrites the string leaves of a parsed template: comment-like substrings
are removed and whitespace runs collapsed. Pure transform, no I/O.
"""

import datetime
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from ..errors import TransformationError

logger = logging.getLogger(__name__)

# `//` only counts as a comment at line start or after whitespace, so URLs
# such as "https://schema.management.azure.com/..." survive
LINE_COMMENT = re.compile(r'(^|(?<=\s))//.*$', re.MULTILINE)
BLOCK_COMMENT = re.compile(r'/\*.*?\*/', re.DOTALL)
WHITESPACE_RUN = re.compile(r'\s{2,}|[\t\n\r\f\v]')
ANY_WHITESPACE = re.compile(r'\s+')

PASSTHROUGH_TYPES = (bool, int, float, type(None), datetime.date, bytes)


@dataclass
class TransformationCounters:
    """Counts accumulated during one optimizer traversal."""
    comments_removed: int = 0
    whitespace_compactions: int = 0
    subtrees_visited: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'comments_removed': self.comments_removed,
            'whitespace_compactions': self.whitespace_compactions,
            'subtrees_visited': self.subtrees_visited
        }


def remove_comments(content: str) -> str:
    """Remove `// ...` line comments and `/* ... */` block comments."""
    while True:
        stripped = LINE_COMMENT.sub('', BLOCK_COMMENT.sub('', content))
        # Removing one comment can splice together another
        if stripped == content:
            return stripped
        content = stripped


def compact_whitespace(content: str) -> str:
    """Collapse every whitespace run to a single space and trim."""
    return ANY_WHITESPACE.sub(' ', content).strip()


class DocumentOptimizer:
    """
    Structural optimizer for parsed JSON/YAML documents.

    Mappings and sequences are recursed into, keys are kept verbatim.
    A string is only counted when it actually changed, which keeps the
    transform idempotent: optimizing its own output changes nothing.
    """

    def optimize(self, document: Any) -> Tuple[Any, TransformationCounters]:
        """
        Optimize a document tree.

        Args:
            document: Parsed document (dicts, lists, strings and scalars)

        Returns:
            Tuple of (optimized document, counters)

        Raises:
            TransformationError: unsupported node type, or input too deep
                (including cyclic input) to traverse
        """
        counters = TransformationCounters()

        try:
            optimized = self._optimize_node(document, '$', counters)
        except RecursionError as e:
            raise TransformationError("Document is cyclic or nested too deeply to optimize") from e

        logger.debug(f"Optimization counters: {counters.to_dict()}")
        return optimized, counters

    def _optimize_node(self, node: Any, location: str, counters: TransformationCounters) -> Any:
        if isinstance(node, str):
            return self._optimize_string(node, counters)

        if isinstance(node, dict):
            counters.subtrees_visited += 1
            return {
                key: self._optimize_node(value, f"{location}.{key}", counters)
                for key, value in node.items()
            }

        if isinstance(node, list):
            counters.subtrees_visited += 1
            return [
                self._optimize_node(item, f"{location}[{index}]", counters)
                for index, item in enumerate(node)
            ]

        if isinstance(node, PASSTHROUGH_TYPES):
            return node

        raise TransformationError(
            f"Unsupported node type '{type(node).__name__}' at {location}")

    def _optimize_string(self, value: str, counters: TransformationCounters) -> str:
        optimized = value

        if '//' in optimized or '/*' in optimized:
            stripped = remove_comments(optimized)
            if stripped != optimized:
                counters.comments_removed += 1
                optimized = stripped

        if WHITESPACE_RUN.search(optimized):
            compacted = compact_whitespace(optimized)
            if compacted != optimized:
                counters.whitespace_compactions += 1
                optimized = compacted

        return optimized


def optimize(document: Any) -> Tuple[Any, TransformationCounters]:
    """Convenience function to optimize a document."""
    return DocumentOptimizer().optimize(document)
