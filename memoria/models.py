"""Data models for brains, cloud records and sync results."""

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

CURRENT_CODE_PATTERN = re.compile(r"^[A-Z]{3}-\d{4}-[A-Z]{4}$")
LEGACY_CODE_PATTERN = re.compile(r"^[A-Z]{3}-\d{3}-[A-Z]{3}$")

EMPTY_BRAIN_ID = "local_empty"


class SyncState(str, Enum):
    """Lifecycle state of a brain."""

    COHERENT = "COHERENT"
    """Fully synced / has content"""

    ENTANGLING = "ENTANGLING"
    """Sync in progress"""

    STABILIZING = "STABILIZING"
    """Empty or post-sync verification"""

    LOCKED = "LOCKED"
    """Write lock held by another peer"""

    DECOHERENT = "DECOHERENT"
    """Error, offline or nothing found"""


class SectorZone(str, Enum):
    """Ordinal classification bucket assigned by discovery order."""

    SINGULARITY = "SINGULARITY"
    EVENT_HORIZON = "EVENT_HORIZON"
    DEEP_VOID = "DEEP_VOID"

    @property
    def label(self) -> str:
        """Human readable zone name."""
        return _ZONE_LABELS[self]


_ZONE_LABELS = {
    SectorZone.SINGULARITY: "Core Identity",
    SectorZone.EVENT_HORIZON: "Working Memory",
    SectorZone.DEEP_VOID: "Archive",
}

ZONE_ORDER = (SectorZone.SINGULARITY, SectorZone.EVENT_HORIZON, SectorZone.DEEP_VOID)


@dataclass
class Brain:
    """A discovered top-level folder treated as one syncable memory unit."""

    id: str
    name: str
    zone: SectorZone
    local_path: str
    mass_bytes: int
    neuron_count: int
    last_pulse: float
    state: SyncState
    generation: int = 1
    peers: list[str] = field(default_factory=list)
    active_lock: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        """True for the sentinel emitted when a scan finds no folders."""
        return self.id == EMPTY_BRAIN_ID

    @property
    def directory_name(self) -> str:
        """Folder name relative to the scanned root."""
        return self.local_path.removeprefix("./")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "zone": self.zone.value,
            "local_path": self.local_path,
            "mass_bytes": self.mass_bytes,
            "neuron_count": self.neuron_count,
            "last_pulse": self.last_pulse,
            "state": self.state.value,
            "generation": self.generation,
            "peers": list(self.peers),
            "active_lock": self.active_lock,
        }


@dataclass
class FileRecord:
    """A file collected from a brain folder, waiting to be uploaded."""

    path: str
    """Path relative to the brain root, joined with forward slashes"""

    content: bytes


@dataclass
class CloudBrain:
    """Brain metadata row as stored in the cloud."""

    id: str
    sync_code: str
    name: str
    zone: str
    local_path: str
    mass_bytes: int
    neuron_count: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "CloudBrain":
        """Create a CloudBrain from a row returned by the backend."""
        return cls(
            id=str(data.get("id", "")),
            sync_code=data.get("sync_code", ""),
            name=data.get("name", ""),
            zone=data.get("zone", ""),
            local_path=data.get("local_path") or "",
            mass_bytes=int(data.get("mass_bytes") or 0),
            neuron_count=int(data.get("neuron_count") or 0),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    @property
    def uuid(self) -> str:
        """Folder name the brain was scanned from."""
        return self.local_path.removeprefix("./") or "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sync_code": self.sync_code,
            "name": self.name,
            "zone": self.zone,
            "local_path": self.local_path,
            "mass_bytes": self.mass_bytes,
            "neuron_count": self.neuron_count,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class SyncCredential:
    """Pairing code plus the password hash bound to it (if any)."""

    code: str
    password_hash: Optional[str] = None

    @property
    def is_legacy(self) -> bool:
        """True for the older LLL-DDD-LLL codes that carry no password."""
        return bool(LEGACY_CODE_PATTERN.match(self.code))


@dataclass
class StorageFile:
    """A stored object in the brain-files bucket."""

    name: str
    path: str
    """Path relative to the brain prefix"""

    size: int = 0
    id: Optional[str] = None


@dataclass
class StorageFolder:
    """A folder marker returned by the storage listing."""

    name: str
    path: str


StorageEntry = Union[StorageFile, StorageFolder]


@dataclass
class FileUploadResult:
    """Outcome of a single file upload."""

    path: str
    success: bool
    error: Optional[str] = None


@dataclass
class SyncProgress:
    """Progress of an upload or download batch."""

    completed: int
    total: int
    current_file: str


@dataclass
class LogEntry:
    """A line in the sync activity log."""

    level: str
    module: str
    message: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class SyncSummary:
    """Aggregated result of pushing brains to the cloud."""

    brains: int = 0
    uploaded: int = 0
    failed: int = 0
    total_files: int = 0
    errors: list[str] = field(default_factory=list)
    log: list[LogEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "brains": self.brains,
            "uploaded": self.uploaded,
            "failed": self.failed,
            "total_files": self.total_files,
            "errors": list(self.errors),
        }


@dataclass
class PullResult:
    """Result of downloading one brain from the cloud."""

    brain: CloudBrain
    destination: str
    downloaded: int = 0
    failed: int = 0
    total_files: int = 0
    conversation_path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "brain": self.brain.name,
            "destination": self.destination,
            "downloaded": self.downloaded,
            "failed": self.failed,
            "total_files": self.total_files,
            "conversation_path": self.conversation_path,
        }
