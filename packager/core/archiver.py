#!/usr/bin/env python3
"""
Stream Archiver for the Streaming Template Packager

Builds a ZIP package incrementally: every source file is piped chunk by
chunk into its archive entry, so a package tree is never held in memory.
"""

import asyncio
import logging
import zipfile
from contextlib import aclosing
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from ..errors import ConfigurationError, PackagingIOError
from .chunked_reader import iter_chunks
from .directory_walker import DirectoryWalker, WalkEntry

logger = logging.getLogger(__name__)

DEFAULT_COMPRESSION_LEVEL = 6
MIN_COMPRESSION_LEVEL = 0
MAX_COMPRESSION_LEVEL = 9

EntryCallback = Callable[[str], None]


@dataclass(frozen=True)
class ArchiveStats:
    """Outcome of one archive build."""
    archive_size_bytes: int
    entry_count: int
    input_size_bytes: int
    chunk_count: int


def validate_compression_level(compression_level: int):
    if (isinstance(compression_level, bool) or not isinstance(compression_level, int)
            or not MIN_COMPRESSION_LEVEL <= compression_level <= MAX_COMPRESSION_LEVEL):
        raise ConfigurationError(
            f"compression_level must be an integer between {MIN_COMPRESSION_LEVEL} "
            f"and {MAX_COMPRESSION_LEVEL}, got: {compression_level!r}")


class StreamArchiver:
    """
    Writes a directory tree into a DEFLATE-compressed ZIP archive.

    Entries are added in DirectoryWalker order under their relative paths.
    Writes into the archive run in the default executor and are awaited one
    at a time. On failure the partial destination file is left in place;
    cleaning it up is the caller's decision.
    """

    def __init__(self,
                 chunk_size_bytes: int,
                 on_entry: Optional[EntryCallback] = None):
        """
        Args:
            chunk_size_bytes: Read size used when piping each source file
            on_entry: Called with the relative path after each archived file
        """
        if chunk_size_bytes <= 0:
            raise ConfigurationError(f"chunk_size_bytes must be positive, got: {chunk_size_bytes}")
        self.chunk_size_bytes = chunk_size_bytes
        self.on_entry = on_entry

    async def create_archive(self,
                             source_path: Union[str, Path],
                             destination_path: Union[str, Path],
                             compression_level: int = DEFAULT_COMPRESSION_LEVEL) -> ArchiveStats:
        """
        Archive every file below source_path into destination_path.

        Args:
            source_path: Package directory
            destination_path: ZIP file to create (parent directories are created)
            compression_level: zlib level 0-9

        Returns:
            ArchiveStats with the final archive size read after the
            destination stream was closed
        """
        validate_compression_level(compression_level)

        source = Path(source_path)
        destination = Path(destination_path)

        if not source.is_dir():
            raise PackagingIOError("Source path is not a directory", path=source)

        loop = asyncio.get_running_loop()

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            output = open(destination, 'wb')
        except OSError as e:
            logger.error(f"Cannot open archive destination {destination}: {e}")
            raise PackagingIOError(f"Failed to open destination: {e}", path=destination) from e

        entry_count = 0
        input_size = 0
        chunk_count = 0
        archive: Optional[zipfile.ZipFile] = None

        try:
            archive = zipfile.ZipFile(output, 'w',
                                      compression=zipfile.ZIP_DEFLATED,
                                      compresslevel=compression_level)

            walker = DirectoryWalker(source, exclude=[destination])
            for entry in walker:
                chunk_count += await self._append_entry(archive, entry, destination, loop)
                entry_count += 1
                input_size += entry.size_bytes

                if self.on_entry is not None:
                    self.on_entry(entry.relative_path)

            # Writes the central directory, then flushes the destination
            await loop.run_in_executor(None, archive.close)
            await loop.run_in_executor(None, output.close)
            archive_size = destination.stat().st_size
        except PackagingIOError:
            raise
        except OSError as e:
            raise PackagingIOError(f"Failed to write archive: {e}", path=destination) from e
        finally:
            if archive is not None:
                # No-op after a successful close; on failure it finalizes the partial archive
                self._close_quietly(archive, destination)
            if not output.closed:
                output.close()

        logger.debug(f"Archived {entry_count} files ({input_size} bytes) into {destination} "
                     f"({archive_size} bytes)")

        return ArchiveStats(
            archive_size_bytes=archive_size,
            entry_count=entry_count,
            input_size_bytes=input_size,
            chunk_count=chunk_count
        )

    async def _append_entry(self,
                            archive: zipfile.ZipFile,
                            entry: WalkEntry,
                            destination: Path,
                            loop: asyncio.AbstractEventLoop) -> int:
        """Pipe one file into a new archive entry and return the number of chunks written."""
        # Same headroom rule zipfile applies in ZipFile.write
        force_zip64 = entry.size_bytes * 1.05 > zipfile.ZIP64_LIMIT
        chunks_written = 0

        async with aclosing(iter_chunks(entry.absolute_path, self.chunk_size_bytes)) as chunks:
            try:
                with archive.open(entry.relative_path, 'w', force_zip64=force_zip64) as target:
                    async for chunk in chunks:
                        await loop.run_in_executor(None, target.write, chunk)
                        chunks_written += 1
            except PackagingIOError:
                raise
            except OSError as e:
                raise PackagingIOError(f"Failed to write entry '{entry.relative_path}': {e}",
                                       path=destination) from e

        logger.debug(f"Added {entry.relative_path} ({entry.size_bytes} bytes, {chunks_written} chunks)")
        return chunks_written

    def _close_quietly(self, archive: zipfile.ZipFile, destination: Path):
        try:
            archive.close()
        except (OSError, ValueError) as e:
            logger.debug(f"Could not finalize partial archive {destination}: {e}")


async def create_archive(source_path: Union[str, Path],
                         destination_path: Union[str, Path],
                         compression_level: int = DEFAULT_COMPRESSION_LEVEL,
                         chunk_size_bytes: int = 1024 * 1024) -> ArchiveStats:
    """Convenience function to archive a directory tree."""
    archiver = StreamArchiver(chunk_size_bytes)
    return await archiver.create_archive(source_path, destination_path, compression_level)
