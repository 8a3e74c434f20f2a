#!/usr/bin/env python3
"""
Chunked Reader for the Streaming Template Packager

Reads files in bounded-size chunks. Each chunk boundary is an observation
checkpoint for the caller; the returned content is still fully materialized.
"""

import logging
import math
from contextlib import aclosing
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional, Union

import aiofiles

from ..errors import ConfigurationError, PackagingIOError

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[int], None]


def expected_chunk_count(size_bytes: int, chunk_size_bytes: int) -> int:
    """Number of chunks a file of the given size is read in. Zero-byte files take no chunks."""
    return math.ceil(size_bytes / chunk_size_bytes)


async def iter_chunks(file_path: Union[str, Path], chunk_size_bytes: int) -> AsyncIterator[bytes]:
    """
    Yield the file's bytes in order, at most chunk_size_bytes at a time.

    Args:
        file_path: File to read
        chunk_size_bytes: Maximum bytes per chunk

    Yields:
        Non-empty byte chunks
    """
    if chunk_size_bytes <= 0:
        raise ConfigurationError(f"chunk_size_bytes must be positive, got: {chunk_size_bytes}",
                                 path=file_path)

    try:
        async with aiofiles.open(file_path, 'rb') as f:
            while True:
                chunk = await f.read(chunk_size_bytes)
                if not chunk:
                    break
                yield chunk
    except OSError as e:
        logger.error(f"Error reading file {file_path} in chunks: {e}")
        raise PackagingIOError(f"Failed to read file: {e}", path=file_path) from e


class ChunkedReader:
    """
    Reads a file chunk by chunk into a single buffer.

    on_chunk is called with the 0-based chunk index after every chunk; the
    packaging service uses it to sample memory and check the ceiling.
    """

    def __init__(self, chunk_size_bytes: int):
        if chunk_size_bytes <= 0:
            raise ConfigurationError(f"chunk_size_bytes must be positive, got: {chunk_size_bytes}")
        self.chunk_size_bytes = chunk_size_bytes
        self.chunks_read = 0

    async def read_all(self,
                       file_path: Union[str, Path],
                       on_chunk: Optional[ChunkCallback] = None) -> bytes:
        """
        Read the complete file.

        Args:
            file_path: File to read
            on_chunk: Called after every chunk with its index

        Returns:
            Full file content. Nothing is returned on failure.
        """
        chunks: List[bytes] = []
        chunk_index = 0

        async with aclosing(iter_chunks(file_path, self.chunk_size_bytes)) as stream:
            async for chunk in stream:
                chunks.append(chunk)
                if on_chunk is not None:
                    on_chunk(chunk_index)
                chunk_index += 1

        self.chunks_read = chunk_index
        logger.debug(f"Read {file_path} in {chunk_index} chunks of up to {self.chunk_size_bytes} bytes")

        return b''.join(chunks)


async def read_all(file_path: Union[str, Path],
                   chunk_size_bytes: int,
                   on_chunk: Optional[ChunkCallback] = None) -> bytes:
    """Convenience function to read a whole file in chunks."""
    reader = ChunkedReader(chunk_size_bytes)
    return await reader.read_all(file_path, on_chunk)
