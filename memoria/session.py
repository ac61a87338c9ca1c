"""Session context shared by the scan, pair and push commands."""

from dataclasses import dataclass, field
from typing import Optional

from .api import MirrorClient
from .config import Config, config
from .exceptions import MemoriaConfigError
from .models import SyncCredential
from .registry import BrainRegistry
from .sync.handles import DirectoryHandle


@dataclass
class Session:
    """Everything a command needs, passed explicitly instead of globals.

    Holds the mounted brains folder, the brain registry for it, the paired
    credential and a lazily created mirror client.
    """

    root: Optional[DirectoryHandle] = None
    credential: Optional[SyncCredential] = None
    store: Config = field(default_factory=lambda: config)
    registry: BrainRegistry = field(default_factory=BrainRegistry)
    _client: Optional[MirrorClient] = field(default=None, repr=False)

    @classmethod
    def load(
        cls, root: Optional[DirectoryHandle] = None, store: Optional[Config] = None
    ) -> "Session":
        """Create a session using the credential saved in ``store``."""
        store = store or config
        return cls(root=root, credential=store.get_sync_credential(), store=store)

    @property
    def client(self) -> MirrorClient:
        """Mirror client, created on first use.

        Raises:
            MemoriaConfigError: If the backend is not configured
        """
        if self._client is None:
            self._client = MirrorClient(
                url=self.store.api_url, key=self.store.api_key
            )
        return self._client

    @property
    def sync_code(self) -> str:
        """The paired sync code.

        Raises:
            MemoriaConfigError: If this device is not paired
        """
        if self.credential is None:
            raise MemoriaConfigError(
                "No sync code configured. Run 'memoria pair new' or "
                "'memoria pair join CODE' first."
            )
        return self.credential.code

    def mount(self, root: DirectoryHandle) -> None:
        """Switch to another brains folder and rescan it."""
        self.root = root
        self.registry.scan(root)

    def rescan(self) -> None:
        if self.root is None:
            raise MemoriaConfigError("No brains folder mounted")
        self.registry.scan(self.root)

    def load_cloud(self) -> None:
        """Load the brains mirrored under the paired sync code."""
        self.registry.load_cloud(self.client, self.sync_code)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
