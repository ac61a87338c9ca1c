"""Directory scanning utilities for brain folders."""

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from ..models import FileRecord
from .handles import DirectoryHandle, Entry, FileHandle

logger = logging.getLogger(__name__)

IGNORED_FOLDERS = frozenset(
    {".git", "node_modules", "dist", "build", ".next", "coverage"}
)
IGNORED_FILES = frozenset({".DS_Store", "Thumbs.db"})

# Directories deeper than this are treated as empty
MAX_DEPTH = 10


@dataclass
class ScanStats:
    """Aggregate size of a directory subtree."""

    total_bytes: int = 0
    """Sum of all file sizes in bytes"""

    total_file_count: int = 0
    """Number of files found"""


class DirectoryScanner:
    """Walks a directory handle and reports files.

    The walk uses an explicit stack instead of recursion. Folders named in
    ``IGNORED_FOLDERS`` and files named in ``IGNORED_FILES`` are skipped at
    every depth, and directories below ``max_depth`` are not entered.

    A directory that cannot be listed or a file that cannot be read is
    logged and skipped; the rest of the tree is still scanned.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> stats = scanner.scan_stats(LocalDirectoryHandle("~/brains/abc"))
        >>> files = scanner.collect_files(LocalDirectoryHandle("~/brains/abc"))
    """

    def __init__(
        self,
        ignored_folders: frozenset[str] = IGNORED_FOLDERS,
        ignored_files: frozenset[str] = IGNORED_FILES,
        max_depth: int = MAX_DEPTH,
    ):
        """Initialize directory scanner.

        Args:
            ignored_folders: Directory names to skip at every depth
            ignored_files: File names to skip at every depth
            max_depth: Deepest directory level that is still listed
                (the scanned directory itself is level 0)
        """
        self.ignored_folders = ignored_folders
        self.ignored_files = ignored_files
        self.max_depth = max_depth

    def should_ignore(self, entry: Entry) -> bool:
        """Check if an entry is excluded by name."""
        if entry.kind == "directory":
            return entry.name in self.ignored_folders
        return entry.name in self.ignored_files

    def walk(self, directory: DirectoryHandle) -> Iterator[tuple[FileHandle, str]]:
        """Yield ``(file_handle, relative_path)`` for every file in the tree.

        Args:
            directory: Root of the walk

        Returns:
            Iterator of file handles with slash-joined paths relative to
            ``directory``
        """
        stack: list[tuple[DirectoryHandle, int, str]] = [(directory, 0, "")]

        while stack:
            current, depth, prefix = stack.pop()
            if depth > self.max_depth:
                logger.debug(f"Depth limit reached, skipping: {prefix}")
                continue

            try:
                entries = list(current.iter_entries())
            except OSError as e:
                logger.warning(f"Cannot list directory '{prefix or current.name}': {e}")
                continue

            subdirs: list[tuple[DirectoryHandle, int, str]] = []
            for entry in entries:
                if self.should_ignore(entry):
                    continue
                path = f"{prefix}/{entry.name}" if prefix else entry.name
                if entry.kind == "directory":
                    subdirs.append((entry, depth + 1, path))  # type: ignore[arg-type]
                else:
                    yield entry, path  # type: ignore[misc]

            # Reversed so subdirectories are visited in listing order
            stack.extend(reversed(subdirs))

    def scan_stats(self, directory: DirectoryHandle) -> ScanStats:
        """Count files and bytes in a directory tree.

        Args:
            directory: Directory to scan

        Returns:
            ScanStats with the totals
        """
        stats = ScanStats()
        for file_handle, path in self.walk(directory):
            try:
                size = file_handle.size()
            except OSError as e:
                logger.warning(f"Failed to read file '{path}': {e}")
                continue
            stats.total_bytes += size
            stats.total_file_count += 1
        return stats

    def collect_files(self, directory: DirectoryHandle) -> list[FileRecord]:
        """Read every file in a directory tree into memory.

        Args:
            directory: Directory to scan

        Returns:
            List of FileRecord objects, paths relative to ``directory``
        """
        files: list[FileRecord] = []
        for file_handle, path in self.walk(directory):
            try:
                content = file_handle.read_bytes()
            except OSError as e:
                logger.warning(f"Failed to read file '{path}': {e}")
                continue
            files.append(FileRecord(path=path, content=content))
        return files
