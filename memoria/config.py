"""Configuration management for Memoria."""

import os
from pathlib import Path
from typing import Optional

from .models import SyncCredential

URL_KEY = "MEMORIA_SUPABASE_URL"
API_KEY = "MEMORIA_SUPABASE_KEY"
SYNC_CODE_KEY = "MEMORIA_SYNC_CODE"
SYNC_HASH_KEY = "MEMORIA_SYNC_HASH"
BRAINS_DIR_KEY = "MEMORIA_BRAINS_DIR"


class Config:
    """Reads settings from the environment and ~/.config/memoria/config.

    Environment variables take precedence over the config file. The file
    holds simple KEY=value lines and also stores the paired sync code, so a
    paired device stays paired across runs.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file
                (defaults to ~/.config/memoria)
        """
        self.config_dir = config_dir or Path.home() / ".config" / "memoria"
        self.config_file = self.config_dir / "config"

    def _read_file(self) -> dict[str, str]:
        """Read all KEY=value pairs from the config file."""
        values: dict[str, str] = {}
        if not self.config_file.exists():
            return values

        for line in self.config_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip().strip('"').strip("'")
        return values

    def _write_file(self, values: dict[str, str]) -> None:
        """Write KEY=value pairs to the config file (owner-readable only)."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        content = "".join(f"{key}={value}\n" for key, value in values.items())
        self.config_file.write_text(content, encoding="utf-8")
        self.config_file.chmod(0o600)

    def _get(self, key: str) -> Optional[str]:
        value = os.environ.get(key)
        if value:
            return value
        return self._read_file().get(key) or None

    def _update(self, **values: Optional[str]) -> None:
        """Set or remove keys in the config file, keeping the others."""
        current = self._read_file()
        for key, value in values.items():
            if value is None:
                current.pop(key, None)
            else:
                current[key] = value
        self._write_file(current)

    @property
    def api_url(self) -> Optional[str]:
        """Backend project URL."""
        url = self._get(URL_KEY)
        return url.rstrip("/") if url else None

    @property
    def api_key(self) -> Optional[str]:
        """Backend API key."""
        return self._get(API_KEY)

    @property
    def brains_dir(self) -> Optional[Path]:
        """Default brains folder used by scan and push."""
        value = self._get(BRAINS_DIR_KEY)
        return Path(value).expanduser() if value else None

    def is_configured(self) -> bool:
        """Check whether both backend URL and key are available."""
        return bool(self.api_url and self.api_key)

    def save_backend(self, url: str, key: str) -> None:
        """Store backend URL and key in the config file."""
        self._update(**{URL_KEY: url.rstrip("/"), API_KEY: key})

    def get_sync_credential(self) -> Optional[SyncCredential]:
        """Return the stored pairing credential, if any."""
        code = self._get(SYNC_CODE_KEY)
        if not code:
            return None
        return SyncCredential(code=code, password_hash=self._get(SYNC_HASH_KEY))

    def save_sync_credential(self, credential: SyncCredential) -> None:
        """Persist the pairing credential for later runs."""
        self._update(
            **{
                SYNC_CODE_KEY: credential.code,
                SYNC_HASH_KEY: credential.password_hash,
            }
        )

    def clear_sync_credential(self) -> None:
        """Forget the stored pairing credential."""
        self._update(**{SYNC_CODE_KEY: None, SYNC_HASH_KEY: None})

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_file


# Global config instance
config = Config()
