"""Shared fixtures: in-memory directory trees for scanner tests."""

from typing import Union

import pytest

from memoria.config import Config


class FakeFile:
    """In-memory file handle."""

    kind = "file"

    def __init__(self, name: str, content: bytes = b"", fail: bool = False):
        self.name = name
        self.content = content
        self.fail = fail
        self.reads = 0

    def size(self) -> int:
        if self.fail:
            raise PermissionError(f"Permission denied: {self.name}")
        return len(self.content)

    def read_bytes(self) -> bytes:
        if self.fail:
            raise PermissionError(f"Permission denied: {self.name}")
        self.reads += 1
        return self.content


class FakeDirectory:
    """In-memory directory handle."""

    kind = "directory"

    def __init__(self, name: str, children=None, fail: bool = False):
        self.name = name
        self.children = list(children or [])
        self.fail = fail

    def iter_entries(self):
        if self.fail:
            raise PermissionError(f"Permission denied: {self.name}")
        return iter(self.children)

    def get_directory(self, name: str) -> "FakeDirectory":
        for child in self.children:
            if child.name == name and child.kind == "directory":
                return child
        raise FileNotFoundError(f"No such directory: {name}")


TreeSpec = dict[str, Union[bytes, str, dict]]


def make_tree(spec: TreeSpec, name: str = "root") -> FakeDirectory:
    """Build a FakeDirectory from nested dicts (dict = folder, bytes = file)."""
    children = []
    for child_name, value in spec.items():
        if isinstance(value, dict):
            children.append(make_tree(value, child_name))
        elif isinstance(value, str):
            children.append(FakeFile(child_name, value.encode("utf-8")))
        else:
            children.append(FakeFile(child_name, value))
    return FakeDirectory(name, children)


def make_deep_tree(levels: int) -> FakeDirectory:
    """A chain of nested folders with one 1-byte file on every level."""
    current = FakeDirectory(f"level{levels}", [FakeFile("leaf.txt", b"x")])
    for level in range(levels - 1, -1, -1):
        current = FakeDirectory(
            f"level{level}", [FakeFile("leaf.txt", b"x"), current]
        )
    return current


@pytest.fixture
def temp_config(tmp_path, monkeypatch):
    """Config stored in a temporary directory with no environment overrides."""
    for key in (
        "MEMORIA_SUPABASE_URL",
        "MEMORIA_SUPABASE_KEY",
        "MEMORIA_SYNC_CODE",
        "MEMORIA_SYNC_HASH",
        "MEMORIA_BRAINS_DIR",
    ):
        monkeypatch.delenv(key, raising=False)
    return Config(config_dir=tmp_path / "config")
