"""Sync engine for Memoria - directory scanning and cloud mirroring."""

from .engine import SyncEngine
from .handles import DirectoryHandle, FileHandle, LocalDirectoryHandle, LocalFileHandle
from .scanner import (
    IGNORED_FILES,
    IGNORED_FOLDERS,
    MAX_DEPTH,
    DirectoryScanner,
    ScanStats,
)

__all__ = [
    "SyncEngine",
    "DirectoryHandle",
    "FileHandle",
    "LocalDirectoryHandle",
    "LocalFileHandle",
    "DirectoryScanner",
    "ScanStats",
    "IGNORED_FILES",
    "IGNORED_FOLDERS",
    "MAX_DEPTH",
]
