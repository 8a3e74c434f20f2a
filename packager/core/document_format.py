#!/usr/bin/env python3
"""
Document formats supported by the Streaming Template Packager.

Templates are JSON or YAML; the format is chosen from the file suffix and
optimized documents are written back in the format they were read in.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Union

import yaml

from ..errors import TransformationError

logger = logging.getLogger(__name__)


class DocumentFormat(Enum):
    JSON = 'json'
    YAML = 'yaml'


YAML_SUFFIXES = {'.yaml', '.yml'}


def detect_format(file_path: Union[str, Path]) -> DocumentFormat:
    """Pick the document format from the file suffix. Unknown suffixes are treated as JSON."""
    suffix = Path(file_path).suffix.lower()
    if suffix in YAML_SUFFIXES:
        return DocumentFormat.YAML
    if suffix != '.json':
        logger.debug(f"Unknown template suffix '{suffix}' for {file_path} - assuming JSON")
    return DocumentFormat.JSON


def parse_document(content: bytes, document_format: DocumentFormat,
                   source: Union[str, Path, None] = None) -> Any:
    """
    Parse raw template bytes.

    Empty or whitespace-only content parses to None.

    Raises:
        TransformationError: content is not valid UTF-8 or not a valid document
    """
    try:
        text = content.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise TransformationError(f"Template is not valid UTF-8: {e}", path=source) from e

    if not text.strip():
        return None

    try:
        if document_format is DocumentFormat.YAML:
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise TransformationError(f"Failed to parse {document_format.value} template: {e}",
                                  path=source) from e


def serialize_document(document: Any, document_format: DocumentFormat) -> bytes:
    """Serialize a document back to its textual format. None becomes empty content."""
    if document is None:
        return b''

    try:
        if document_format is DocumentFormat.YAML:
            text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True,
                                  default_flow_style=False)
        else:
            text = json.dumps(document, indent=2, ensure_ascii=False) + '\n'
    except (TypeError, ValueError, yaml.YAMLError) as e:
        raise TransformationError(f"Failed to serialize {document_format.value} document: {e}") from e

    return text.encode('utf-8')
