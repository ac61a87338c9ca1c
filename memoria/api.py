"""API client for the Memoria cloud mirror.

The backend is a hosted Supabase project: brain metadata lives in the
``brains`` table (REST API) and file bytes live in the ``brain-files``
storage bucket under ``{sync_code}/{brain_name}/{path}``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    MemoriaAPIError,
    MemoriaAuthenticationError,
    MemoriaConfigError,
    MemoriaConflictError,
    MemoriaInvalidResponseError,
    MemoriaNetworkError,
    MemoriaNotFoundError,
    MemoriaPermissionError,
)
from .models import (
    Brain,
    CloudBrain,
    FileUploadResult,
    StorageEntry,
    StorageFile,
    StorageFolder,
    SyncCredential,
)

logger = logging.getLogger(__name__)

STORAGE_BUCKET = "brain-files"
BRAINS_TABLE = "brains"
CREDENTIALS_TABLE = "sync_credentials"

# Page size of one storage listing call, also used for bulk removes
LIST_LIMIT = 1000


def storage_path(sync_code: str, brain_name: str, file_path: str = "") -> str:
    """Build the object key for a file inside a brain.

    Examples:
        >>> storage_path("ABC-2345-DEFG", "core", "notes/a.md")
        'ABC-2345-DEFG/core/notes/a.md'
        >>> storage_path("ABC-2345-DEFG", "core")
        'ABC-2345-DEFG/core'
    """
    base = f"{sync_code}/{brain_name}"
    return f"{base}/{file_path}" if file_path else base


class MirrorClient:
    """Client for the brain metadata table and the file storage bucket.

    Requests are not retried; errors are raised to the caller, except for
    :meth:`upload_file`, which reports failures in its result.
    """

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the mirror client.

        Args:
            url: Backend project URL (uses config if not provided)
            key: Backend API key (uses config if not provided)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)

        Raises:
            MemoriaConfigError: If URL or key is missing
        """
        self.url = (url or config.api_url or "").rstrip("/")
        self.key = key or config.api_key
        self.timeout = timeout
        self._transport = transport

        if not self.url or not self.key:
            raise MemoriaConfigError(
                "Cloud backend not configured. Please set MEMORIA_SUPABASE_URL "
                "and MEMORIA_SUPABASE_KEY or run 'memoria init'."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={
                    "apikey": str(self.key),
                    "Authorization": f"Bearer {self.key}",
                },
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> MirrorClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> MemoriaAPIError:
        """Translate an HTTP error into a Memoria exception."""
        status_code = e.response.status_code

        if status_code == 401:
            return MemoriaAuthenticationError("Invalid API key or unauthorized access")
        if status_code == 403:
            return MemoriaPermissionError("Access forbidden - check your permissions")
        if status_code == 404:
            return MemoriaNotFoundError("Resource not found")

        error_msg = f"API request failed with status {status_code}"

        # Try to extract more details from response body
        detail = None
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    detail = (
                        error_data.get("message")
                        or error_data.get("error")
                        or error_data.get("details")
                    )
        except ValueError:
            detail = None
        if detail:
            error_msg = f"{error_msg}: {detail}"

        if status_code == 409:
            return MemoriaConflictError(error_msg)
        return MemoriaAPIError(error_msg)

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Send a request and raise a Memoria exception on failure.

        Args:
            method: HTTP method
            endpoint: Path relative to the project URL
            **kwargs: Additional arguments passed to httpx

        Returns:
            The successful response

        Raises:
            MemoriaAPIError: If the request fails
        """
        url = f"{self.url}/{endpoint.lstrip('/')}"
        logger.debug(f"{method} {url}")
        try:
            response = self._get_client().request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._handle_http_error(e) from e
        except httpx.RequestError as e:
            raise MemoriaNetworkError(f"Network error: {e}") from e
        return response

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request that returns JSON.

        Returns:
            Response JSON data (empty dict for an empty body)
        """
        response = self._send(method, endpoint, **kwargs)
        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            raise MemoriaInvalidResponseError(
                f"Unexpected response type: {content_type}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise MemoriaInvalidResponseError(
                "Invalid JSON response from server"
            ) from e

    # =========================
    # Brain metadata
    # =========================

    def upsert_brain_metadata(self, sync_code: str, brain: Brain) -> CloudBrain:
        """Save brain metadata, overwriting an existing row with the same name.

        Args:
            sync_code: Partition key
            brain: Brain to save

        Returns:
            The stored row

        Raises:
            MemoriaAPIError: If the write fails
        """
        row = {
            "sync_code": sync_code,
            "name": brain.name,
            "zone": brain.zone.value,
            "local_path": brain.local_path,
            "mass_bytes": brain.mass_bytes,
            "neuron_count": brain.neuron_count,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        data = self._request(
            "POST",
            f"/rest/v1/{BRAINS_TABLE}",
            params={"on_conflict": "sync_code,name"},
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        rows = data if isinstance(data, list) else [data]
        if not rows or not isinstance(rows[0], dict):
            raise MemoriaInvalidResponseError(
                f"Backend did not return the saved brain '{brain.name}'"
            )
        return CloudBrain.from_api_response(rows[0])

    def list_brains(self, sync_code: str) -> list[CloudBrain]:
        """Get all brains stored for a sync code, newest first."""
        data = self._request(
            "GET",
            f"/rest/v1/{BRAINS_TABLE}",
            params={
                "select": "*",
                "sync_code": f"eq.{sync_code}",
                "order": "created_at.desc",
            },
        )
        return [CloudBrain.from_api_response(row) for row in data or []]

    def delete_brain(self, brain_id: str) -> None:
        """Delete a brain metadata row by its id."""
        self._request(
            "DELETE", f"/rest/v1/{BRAINS_TABLE}", params={"id": f"eq.{brain_id}"}
        )

    def sync_code_exists(self, sync_code: str) -> bool:
        """Check if any brain has been saved under ``sync_code``."""
        data = self._request(
            "GET",
            f"/rest/v1/{BRAINS_TABLE}",
            params={"select": "id", "sync_code": f"eq.{sync_code}", "limit": 1},
        )
        return bool(data)

    # =========================
    # Pairing credentials
    # =========================

    def create_sync_credentials(self, code: str, password_hash: str) -> None:
        """Register a new sync code with its password hash.

        Raises:
            MemoriaConflictError: If the code is already registered
        """
        self._request(
            "POST",
            f"/rest/v1/{CREDENTIALS_TABLE}",
            json={"code": code, "password_hash": password_hash},
            headers={"Prefer": "return=minimal"},
        )

    def get_sync_credentials(self, code: str) -> SyncCredential | None:
        """Return the stored credential for ``code``, or None."""
        data = self._request(
            "GET",
            f"/rest/v1/{CREDENTIALS_TABLE}",
            params={
                "select": "code,password_hash",
                "code": f"eq.{code}",
                "limit": 1,
            },
        )
        if not data:
            return None
        row = data[0]
        return SyncCredential(code=row["code"], password_hash=row.get("password_hash"))

    def verify_sync_password(self, code: str, password_hash: str) -> bool:
        """Check ``password_hash`` against the hash stored for ``code``."""
        credential = self.get_sync_credentials(code)
        return credential is not None and credential.password_hash == password_hash

    # =========================
    # File storage
    # =========================

    def upload_file(
        self, sync_code: str, brain_name: str, path: str, content: bytes
    ) -> FileUploadResult:
        """Upload one file, replacing any existing object at the same key.

        Args:
            sync_code: Partition key
            brain_name: Brain the file belongs to
            path: Path relative to the brain root
            content: File bytes

        Returns:
            FileUploadResult; failures are reported here, not raised
        """
        key = storage_path(sync_code, brain_name, path)
        try:
            self._request(
                "POST",
                f"/storage/v1/object/{STORAGE_BUCKET}/{quote(key)}",
                content=content,
                headers={
                    "Content-Type": "application/octet-stream",
                    "x-upsert": "true",
                },
            )
        except MemoriaAPIError as e:
            logger.debug(f"Upload failed for {key}: {e}")
            return FileUploadResult(path=path, success=False, error=str(e))
        return FileUploadResult(path=path, success=True)

    def list_files(
        self, sync_code: str, brain_name: str, sub_path: str = ""
    ) -> list[StorageEntry]:
        """List one level of a brain's stored files.

        Folders come back as StorageFolder entries; recurse into them to see
        their contents. Every page of the listing is fetched.

        Args:
            sync_code: Partition key
            brain_name: Brain to list
            sub_path: Folder inside the brain ("" for the brain root)

        Returns:
            StorageFile and StorageFolder entries
        """
        prefix = storage_path(sync_code, brain_name, sub_path)
        entries: list[StorageEntry] = []
        offset = 0
        while True:
            data = self._request(
                "POST",
                f"/storage/v1/object/list/{STORAGE_BUCKET}",
                json={
                    "prefix": prefix,
                    "limit": LIST_LIMIT,
                    "offset": offset,
                    "sortBy": {"column": "name", "order": "asc"},
                },
            )
            page = data or []

            for item in page:
                name = item.get("name", "")
                item_path = f"{sub_path}/{name}" if sub_path else name
                # The storage API marks folders by a null id
                if item.get("id") is None:
                    entries.append(StorageFolder(name=name, path=item_path))
                else:
                    metadata = item.get("metadata") or {}
                    entries.append(
                        StorageFile(
                            name=name,
                            path=item_path,
                            size=int(metadata.get("size") or 0),
                            id=str(item["id"]),
                        )
                    )

            # A short page is the last one
            if len(page) < LIST_LIMIT:
                return entries
            offset += LIST_LIMIT

    def list_files_recursive(
        self, sync_code: str, brain_name: str, sub_path: str = ""
    ) -> list[StorageFile]:
        """List every stored file under a brain, descending into folders."""
        files: list[StorageFile] = []
        pending = [sub_path]
        while pending:
            current = pending.pop()
            for entry in self.list_files(sync_code, brain_name, current):
                if isinstance(entry, StorageFolder):
                    pending.append(entry.path)
                else:
                    files.append(entry)
        return files

    def download_file(self, sync_code: str, brain_name: str, path: str) -> bytes:
        """Download the bytes of one stored file.

        Raises:
            MemoriaNotFoundError: If the object does not exist
        """
        key = storage_path(sync_code, brain_name, path)
        response = self._send(
            "GET", f"/storage/v1/object/{STORAGE_BUCKET}/{quote(key)}"
        )
        return response.content

    def delete_files(self, sync_code: str, brain_name: str) -> int:
        """Remove every stored file of a brain.

        Returns:
            Number of objects removed
        """
        files = self.list_files_recursive(sync_code, brain_name)
        if not files:
            return 0

        prefixes = [storage_path(sync_code, brain_name, f.path) for f in files]
        for start in range(0, len(prefixes), LIST_LIMIT):
            self._request(
                "DELETE",
                f"/storage/v1/object/{STORAGE_BUCKET}",
                json={"prefixes": prefixes[start : start + LIST_LIMIT]},
            )
        return len(prefixes)
