#!/usr/bin/env python3
"""
Directory Walker for the Streaming Template Packager

Lazily enumerates the files of a package tree, depth-first, without
building the full listing up front.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Union

from ..errors import PackagingIOError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalkEntry:
    """A file discovered in the package tree."""
    relative_path: str
    absolute_path: Path
    size_bytes: int

    def __iter__(self):
        # Allows `for rel, abs_path, size in walker` unpacking
        return iter((self.relative_path, self.absolute_path, self.size_bytes))


class DirectoryWalker:
    """
    Depth-first, lazy and restartable file enumeration.

    Entries of each directory are visited in sorted name order. Every
    iteration re-lists the filesystem. Directory symlinks are not followed.
    Relative paths always use '/' separators.
    """

    def __init__(self,
                 root_path: Union[str, Path],
                 exclude: Optional[Iterable[Union[str, Path]]] = None):
        """
        Args:
            root_path: Directory to walk
            exclude: Absolute file paths to skip
        """
        self.root_path = Path(root_path)
        self.exclude: Set[Path] = {Path(p).resolve() for p in (exclude or [])}

    def __iter__(self) -> Iterator[WalkEntry]:
        return self.walk()

    def walk(self) -> Iterator[WalkEntry]:
        """
        Yield every file below the root.

        Raises:
            PackagingIOError: the root or a subdirectory cannot be listed
        """
        stack: List[Iterator[os.DirEntry]] = [self._list_directory(self.root_path)]
        prefixes: List[str] = ['']

        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop()
                prefixes.pop()
                continue

            relative_path = f"{prefixes[-1]}{entry.name}"

            try:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(self._list_directory(Path(entry.path)))
                    prefixes.append(f"{relative_path}/")
                    continue

                if not entry.is_file():
                    logger.debug(f"Skipping non-regular file {entry.path}")
                    continue

                absolute_path = Path(entry.path)
                if self.exclude and absolute_path.resolve() in self.exclude:
                    logger.debug(f"Skipping excluded file {entry.path}")
                    continue

                size_bytes = entry.stat().st_size
            except PackagingIOError:
                raise
            except OSError as e:
                raise PackagingIOError(f"Failed to inspect entry: {e}", path=entry.path) from e

            yield WalkEntry(relative_path, absolute_path, size_bytes)

    def total_size(self) -> int:
        """Sum of the sizes of all files below the root."""
        return sum(entry.size_bytes for entry in self.walk())

    def _list_directory(self, directory: Path) -> Iterator[os.DirEntry]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.error(f"Failed to list directory {directory}: {e}")
            raise PackagingIOError(f"Failed to list directory: {e}", path=directory) from e

        return iter(entries)


def walk(root_path: Union[str, Path]) -> Iterator[WalkEntry]:
    """Convenience function to walk a directory tree."""
    return DirectoryWalker(root_path).walk()
