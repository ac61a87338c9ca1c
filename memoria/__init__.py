"""Memoria - Scan local AI agent brains and mirror them to the cloud."""

from .api import MirrorClient
from .exceptions import (
    MemoriaAPIError,
    MemoriaAuthenticationError,
    MemoriaConfigError,
    MemoriaConflictError,
    MemoriaError,
    MemoriaInvalidResponseError,
    MemoriaNetworkError,
    MemoriaNotFoundError,
    MemoriaPermissionError,
    MemoriaSyncInProgressError,
    PairingError,
    PairingRejectedError,
    PairingValidationError,
)
from .models import Brain, CloudBrain, SectorZone, SyncCredential, SyncState
from .pairing import PairingFlow, generate_sync_code, hash_password
from .registry import BrainRegistry, discover
from .session import Session

__all__ = [
    "MirrorClient",
    "MemoriaError",
    "MemoriaAPIError",
    "MemoriaAuthenticationError",
    "MemoriaConfigError",
    "MemoriaConflictError",
    "MemoriaInvalidResponseError",
    "MemoriaNetworkError",
    "MemoriaNotFoundError",
    "MemoriaPermissionError",
    "MemoriaSyncInProgressError",
    "PairingError",
    "PairingRejectedError",
    "PairingValidationError",
    "Brain",
    "CloudBrain",
    "SectorZone",
    "SyncCredential",
    "SyncState",
    "PairingFlow",
    "generate_sync_code",
    "hash_password",
    "BrainRegistry",
    "discover",
    "Session",
]
