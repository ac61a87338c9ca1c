"""Directory handles used by the scanner.

The scanner never works with raw path strings. It receives a handle, lists
its entries and reads files through it, so a tree can come from the local
filesystem or from an in-memory fake in tests. Any read may fail with
``OSError`` (for example when permission is revoked mid-scan).
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Literal, Protocol, Union

EntryKind = Literal["file", "directory"]


class FileHandle(Protocol):
    """Read access to a single file."""

    name: str
    kind: EntryKind

    def size(self) -> int: ...

    def read_bytes(self) -> bytes: ...


class DirectoryHandle(Protocol):
    """Read access to a directory and its children."""

    name: str
    kind: EntryKind

    def iter_entries(self) -> Iterator[Union["DirectoryHandle", FileHandle]]: ...

    def get_directory(self, name: str) -> "DirectoryHandle": ...


Entry = Union[DirectoryHandle, FileHandle]


class LocalFileHandle:
    """File handle backed by a local path."""

    kind: EntryKind = "file"

    def __init__(self, path: Path):
        self.path = path
        self.name = path.name

    def size(self) -> int:
        return self.path.stat().st_size

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def __repr__(self) -> str:
        return f"LocalFileHandle({str(self.path)!r})"


class LocalDirectoryHandle:
    """Directory handle backed by a local path.

    Examples:
        >>> root = LocalDirectoryHandle(Path("~/.gemini/antigravity/brain"))
        >>> [entry.name for entry in root.iter_entries()]
    """

    kind: EntryKind = "directory"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self.name = self.path.name

    def iter_entries(self) -> Iterator[Entry]:
        """Yield child entries in the order the filesystem lists them.

        Symlinks and special files are skipped.

        Raises:
            OSError: If the directory cannot be listed
        """
        for item in self.path.iterdir():
            if item.is_symlink():
                continue
            if item.is_dir():
                yield LocalDirectoryHandle(item)
            elif item.is_file():
                yield LocalFileHandle(item)

    def get_directory(self, name: str) -> "LocalDirectoryHandle":
        """Return the child directory called ``name``.

        Raises:
            FileNotFoundError: If there is no such child
            NotADirectoryError: If the child is not a directory
        """
        child = self.path / name
        if not child.exists():
            raise FileNotFoundError(f"No such directory: {child}")
        if not child.is_dir():
            raise NotADirectoryError(f"Not a directory: {child}")
        return LocalDirectoryHandle(child)

    def __repr__(self) -> str:
        return f"LocalDirectoryHandle({str(self.path)!r})"
