"""Unit tests for the cloud mirror client."""

import json

import httpx
import pytest

from memoria.api import MirrorClient, storage_path
from memoria.exceptions import (
    MemoriaAPIError,
    MemoriaAuthenticationError,
    MemoriaConfigError,
    MemoriaConflictError,
    MemoriaInvalidResponseError,
    MemoriaNetworkError,
    MemoriaNotFoundError,
    MemoriaPermissionError,
)
from memoria.models import Brain, SectorZone, StorageFile, StorageFolder, SyncState

URL = "https://project.supabase.co"
KEY = "anon-key"
CODE = "ABC-2345-DEFG"


def make_client(handler):
    """Create a client whose requests are answered by ``handler``."""
    return MirrorClient(url=URL, key=KEY, transport=httpx.MockTransport(handler))


def make_brain(name="core"):
    return Brain(
        id=f"local_{name}",
        name=name,
        zone=SectorZone.SINGULARITY,
        local_path=f"./{name}",
        mass_bytes=42,
        neuron_count=3,
        last_pulse=0.0,
        state=SyncState.COHERENT,
    )


def brain_row(name="core", **extra):
    row = {
        "id": "row-1",
        "sync_code": CODE,
        "name": name,
        "zone": "SINGULARITY",
        "local_path": f"./{name}",
        "mass_bytes": 42,
        "neuron_count": 3,
        "created_at": "2025-01-15T10:30:00+00:00",
        "updated_at": "2025-01-15T10:31:00+00:00",
    }
    row.update(extra)
    return row


def file_item(name, size=10):
    return {"name": name, "id": f"id-{name}", "metadata": {"size": size}}


def folder_item(name):
    return {"name": name, "id": None, "metadata": None}


class TestMirrorClientInit:
    """Tests for MirrorClient initialization."""

    def test_requires_url_and_key(self, monkeypatch, temp_config):
        """Test that a missing backend configuration raises."""
        monkeypatch.setattr("memoria.api.config", temp_config)
        with pytest.raises(MemoriaConfigError):
            MirrorClient(url=URL, key="")
        with pytest.raises(MemoriaConfigError):
            MirrorClient(url="", key=KEY)

    def test_strips_trailing_slash(self):
        client = MirrorClient(url=URL + "/", key=KEY)
        assert client.url == URL

    def test_sends_auth_headers(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, json=[])

        make_client(handler).list_brains(CODE)
        assert seen["apikey"] == KEY
        assert seen["authorization"] == f"Bearer {KEY}"

    def test_context_manager_closes(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        with client:
            client.list_brains(CODE)
            assert client._client is not None
        assert client._client is None


class TestStoragePath:
    def test_with_file(self):
        assert storage_path(CODE, "core", "a/b.md") == f"{CODE}/core/a/b.md"

    def test_without_file(self):
        assert storage_path(CODE, "core") == f"{CODE}/core"


class TestBrainMetadata:
    """Tests for the brains table operations."""

    def test_upsert_request(self):
        """Test that the upsert targets the (sync_code, name) conflict key."""
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["params"] = dict(request.url.params)
            captured["prefer"] = request.headers["prefer"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json=[brain_row()])

        saved = make_client(handler).upsert_brain_metadata(CODE, make_brain())

        assert captured["method"] == "POST"
        assert captured["path"] == "/rest/v1/brains"
        assert captured["params"] == {"on_conflict": "sync_code,name"}
        assert "resolution=merge-duplicates" in captured["prefer"]
        body = captured["body"]
        assert body["sync_code"] == CODE
        assert body["name"] == "core"
        assert body["zone"] == "SINGULARITY"
        assert body["local_path"] == "./core"
        assert body["mass_bytes"] == 42
        assert body["neuron_count"] == 3
        assert "updated_at" in body
        assert saved.id == "row-1"
        assert saved.uuid == "core"

    def test_upsert_empty_response(self):
        """Test that a missing representation is an invalid response."""
        client = make_client(lambda request: httpx.Response(201, json=[]))
        with pytest.raises(MemoriaInvalidResponseError):
            client.upsert_brain_metadata(CODE, make_brain())

    def test_list_brains(self):
        """Test listing brains newest first for a sync code."""
        captured = {}

        def handler(request):
            captured["params"] = dict(request.url.params)
            return httpx.Response(
                200, json=[brain_row("newer"), brain_row("older", id="row-2")]
            )

        brains = make_client(handler).list_brains(CODE)

        assert captured["params"]["sync_code"] == f"eq.{CODE}"
        assert captured["params"]["order"] == "created_at.desc"
        assert [b.name for b in brains] == ["newer", "older"]
        assert brains[1].id == "row-2"

    def test_list_brains_empty(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        assert client.list_brains(CODE) == []

    def test_delete_brain(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["params"] = dict(request.url.params)
            return httpx.Response(204)

        make_client(handler).delete_brain("row-9")
        assert captured["method"] == "DELETE"
        assert captured["params"] == {"id": "eq.row-9"}

    def test_sync_code_exists(self):
        client = make_client(lambda request: httpx.Response(200, json=[{"id": 1}]))
        assert client.sync_code_exists("ABC-234-DEF")

        client = make_client(lambda request: httpx.Response(200, json=[]))
        assert not client.sync_code_exists("ABC-234-DEF")


class TestCredentials:
    """Tests for the sync_credentials table operations."""

    def test_create(self):
        captured = {}

        def handler(request):
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(201)

        make_client(handler).create_sync_credentials(CODE, "abc123")
        assert captured["path"] == "/rest/v1/sync_credentials"
        assert captured["body"] == {"code": CODE, "password_hash": "abc123"}

    def test_create_conflict(self):
        """Test that a duplicate code surfaces as a conflict."""
        client = make_client(
            lambda request: httpx.Response(
                409, json={"message": "duplicate key value"}
            )
        )
        with pytest.raises(MemoriaConflictError, match="duplicate key value"):
            client.create_sync_credentials(CODE, "abc123")

    def test_get_found(self):
        client = make_client(
            lambda request: httpx.Response(
                200, json=[{"code": CODE, "password_hash": "h"}]
            )
        )
        credential = client.get_sync_credentials(CODE)
        assert credential.code == CODE
        assert credential.password_hash == "h"

    def test_get_missing(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        assert client.get_sync_credentials(CODE) is None

    def test_verify_password(self):
        client = make_client(
            lambda request: httpx.Response(
                200, json=[{"code": CODE, "password_hash": "right"}]
            )
        )
        assert client.verify_sync_password(CODE, "right")
        assert not client.verify_sync_password(CODE, "wrong")

    def test_verify_unknown_code(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        assert not client.verify_sync_password(CODE, "anything")


class TestUploadFile:
    """Tests for MirrorClient.upload_file."""

    def test_success(self):
        captured = {}

        def handler(request):
            captured["path"] = request.url.path
            captured["upsert"] = request.headers.get("x-upsert")
            captured["content"] = request.content
            return httpx.Response(200, json={"Key": "brain-files/x"})

        result = make_client(handler).upload_file(
            CODE, "core", "notes/a.md", b"hello"
        )

        assert result.success
        assert result.path == "notes/a.md"
        assert result.error is None
        expected = f"/storage/v1/object/brain-files/{CODE}/core/notes/a.md"
        assert captured["path"] == expected
        assert captured["upsert"] == "true"
        assert captured["content"] == b"hello"

    def test_failure_is_reported_not_raised(self):
        client = make_client(
            lambda request: httpx.Response(400, json={"error": "payload too large"})
        )
        result = client.upload_file(CODE, "core", "big.bin", b"x")
        assert not result.success
        assert "payload too large" in result.error

    def test_network_failure_is_reported(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        result = make_client(handler).upload_file(CODE, "core", "a.md", b"x")
        assert not result.success
        assert "Network error" in result.error


class TestListFiles:
    """Tests for storage listing."""

    def test_files_and_folders(self):
        """Test that null ids are folders and the rest are files."""
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200, json=[folder_item("_conversation"), file_item("a.md", 5)]
            )

        entries = make_client(handler).list_files(CODE, "core")

        assert captured["body"]["prefix"] == f"{CODE}/core"
        assert captured["body"]["limit"] == 1000
        assert entries == [
            StorageFolder(name="_conversation", path="_conversation"),
            StorageFile(name="a.md", path="a.md", size=5, id="id-a.md"),
        ]

    def test_sub_path(self):
        captured = {}

        def handler(request):
            captured["prefix"] = json.loads(request.content)["prefix"]
            return httpx.Response(200, json=[file_item("b.md")])

        entries = make_client(handler).list_files(CODE, "core", "notes")
        assert captured["prefix"] == f"{CODE}/core/notes"
        assert entries[0].path == "notes/b.md"

    def test_missing_brain_lists_empty(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        assert client.list_files(CODE, "nothing") == []

    def test_recursive(self):
        """Test that folders are descended into."""
        listing = {
            f"{CODE}/core": [file_item("top.md"), folder_item("notes")],
            f"{CODE}/core/notes": [file_item("n.md"), folder_item("deep")],
            f"{CODE}/core/notes/deep": [file_item("d.md")],
        }

        def handler(request):
            prefix = json.loads(request.content)["prefix"]
            return httpx.Response(200, json=listing[prefix])

        files = make_client(handler).list_files_recursive(CODE, "core")
        assert sorted(f.path for f in files) == [
            "notes/deep/d.md",
            "notes/n.md",
            "top.md",
        ]


class TestDownloadAndDelete:
    def test_download(self):
        captured = {}

        def handler(request):
            captured["path"] = request.url.path
            return httpx.Response(200, content=b"\x00\x01bytes")

        data = make_client(handler).download_file(CODE, "core", "a.bin")
        assert data == b"\x00\x01bytes"
        assert captured["path"] == f"/storage/v1/object/brain-files/{CODE}/core/a.bin"

    def test_download_missing(self):
        client = make_client(lambda request: httpx.Response(404))
        with pytest.raises(MemoriaNotFoundError):
            client.download_file(CODE, "core", "gone.md")

    def test_delete_files(self):
        deleted = {}

        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json=[file_item("a.md"), file_item("b.md")])
            deleted["body"] = json.loads(request.content)
            return httpx.Response(200, json=[])

        count = make_client(handler).delete_files(CODE, "core")
        assert count == 2
        assert sorted(deleted["body"]["prefixes"]) == [
            f"{CODE}/core/a.md",
            f"{CODE}/core/b.md",
        ]

    def test_delete_nothing(self):
        def handler(request):
            assert request.method == "POST"
            return httpx.Response(200, json=[])

        assert make_client(handler).delete_files(CODE, "core") == 0


class TestErrorHandling:
    """Tests for HTTP error translation."""

    @pytest.mark.parametrize(
        "status,exc",
        [
            (401, MemoriaAuthenticationError),
            (403, MemoriaPermissionError),
            (404, MemoriaNotFoundError),
            (409, MemoriaConflictError),
            (500, MemoriaAPIError),
        ],
    )
    def test_status_mapping(self, status, exc):
        client = make_client(lambda request: httpx.Response(status))
        with pytest.raises(exc):
            client.list_brains(CODE)

    def test_error_detail_in_message(self):
        client = make_client(
            lambda request: httpx.Response(500, json={"message": "db down"})
        )
        with pytest.raises(MemoriaAPIError, match="status 500: db down"):
            client.list_brains(CODE)

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out")

        with pytest.raises(MemoriaNetworkError):
            make_client(handler).list_brains(CODE)

    def test_non_json_response(self):
        client = make_client(
            lambda request: httpx.Response(
                200, content=b"<html></html>", headers={"Content-Type": "text/html"}
            )
        )
        with pytest.raises(MemoriaInvalidResponseError):
            client.list_brains(CODE)


class InMemoryStorage:
    """Stateful stand-in for the storage bucket endpoints."""

    list_prefix = "/storage/v1/object/list/brain-files"
    object_prefix = "/storage/v1/object/brain-files"

    def __init__(self):
        self.objects = {}
        self.list_calls = 0
        self.delete_calls = 0

    def _children(self, prefix):
        items = {}
        for key, content in self.objects.items():
            if not key.startswith(prefix + "/"):
                continue
            rest = key[len(prefix) + 1 :]
            if "/" in rest:
                name = rest.split("/", 1)[0]
                items[name] = {"name": name, "id": None, "metadata": None}
            else:
                items[rest] = {
                    "name": rest,
                    "id": f"id-{key}",
                    "metadata": {"size": len(content)},
                }
        return [items[name] for name in sorted(items)]

    def __call__(self, request):
        path = request.url.path
        if request.method == "POST" and path == self.list_prefix:
            self.list_calls += 1
            body = json.loads(request.content)
            children = self._children(body["prefix"])
            start = body["offset"]
            return httpx.Response(200, json=children[start : start + body["limit"]])
        if request.method == "POST" and path.startswith(self.object_prefix + "/"):
            self.objects[path[len(self.object_prefix) + 1 :]] = request.content
            return httpx.Response(200, json={"Key": path})
        if request.method == "GET" and path.startswith(self.object_prefix + "/"):
            key = path[len(self.object_prefix) + 1 :]
            if key not in self.objects:
                return httpx.Response(404, json={"message": "Object not found"})
            return httpx.Response(200, content=self.objects[key])
        if request.method == "DELETE" and path == self.object_prefix:
            self.delete_calls += 1
            prefixes = json.loads(request.content)["prefixes"]
            removed = [
                {"name": p} for p in prefixes if self.objects.pop(p, None) is not None
            ]
            return httpx.Response(200, json=removed)
        return httpx.Response(400, json={"error": f"unexpected {request.method}"})


@pytest.fixture
def storage():
    return InMemoryStorage()


class TestStorageRoundTrip:
    """Tests against a bucket that keeps what is uploaded."""

    def test_listing_follows_pages(self, storage):
        """Test that a folder with more than one page is listed completely."""
        for index in range(1500):
            storage.objects[f"{CODE}/core/f{index:04d}.md"] = b"x"

        files = make_client(storage).list_files_recursive(CODE, "core")

        assert len(files) == 1500
        assert len({f.path for f in files}) == 1500
        assert storage.list_calls == 2

    def test_exact_page_boundary(self, storage):
        for index in range(1000):
            storage.objects[f"{CODE}/core/f{index:04d}.md"] = b"x"

        files = make_client(storage).list_files(CODE, "core")

        assert len(files) == 1000
        assert storage.list_calls == 2

    def test_upload_list_download(self, storage):
        """Test that uploaded files come back byte for byte."""
        uploaded = {
            f"bulk/n{index:04d}.md": f"note {index}".encode() for index in range(1100)
        }
        uploaded.update(
            {
                "a.md": b"top level",
                "notes/deep/b.bin": bytes(range(256)),
                "_conversation/chat.pb": b"\x08\x01\x12\x00",
                "empty.txt": b"",
            }
        )
        client = make_client(storage)

        for path, content in uploaded.items():
            assert client.upload_file(CODE, "core", path, content).success

        listed = client.list_files_recursive(CODE, "core")
        downloaded = {
            f.path: client.download_file(CODE, "core", f.path) for f in listed
        }

        assert downloaded == uploaded

    def test_upload_overwrites(self, storage):
        client = make_client(storage)
        client.upload_file(CODE, "core", "a.md", b"old")
        client.upload_file(CODE, "core", "a.md", b"new")

        assert client.download_file(CODE, "core", "a.md") == b"new"
        assert len(client.list_files_recursive(CODE, "core")) == 1

    def test_delete_removes_everything(self, storage):
        """Test that a brain with more than one page of files is fully removed."""
        for index in range(1200):
            storage.objects[f"{CODE}/core/f{index:04d}.md"] = b"x"
        storage.objects[f"{CODE}/core/sub/g.md"] = b"y"
        storage.objects[f"{CODE}/other/keep.md"] = b"z"

        removed = make_client(storage).delete_files(CODE, "core")

        assert removed == 1201
        assert storage.delete_calls == 2
        assert list(storage.objects) == [f"{CODE}/other/keep.md"]
