"""Discovery of brain folders and the in-memory brain registry."""

import logging
import time
from collections.abc import Iterator
from typing import Optional

from .api import MirrorClient
from .exceptions import MemoriaAPIError
from .models import (
    EMPTY_BRAIN_ID,
    ZONE_ORDER,
    Brain,
    CloudBrain,
    SectorZone,
    SyncState,
)
from .sync.handles import DirectoryHandle
from .sync.scanner import DirectoryScanner

logger = logging.getLogger(__name__)

SKIPPED_ROOT_FOLDERS = frozenset({"node_modules"})


def zone_for_index(index: int) -> SectorZone:
    """Map a discovery index to its zone.

    The first folder is the core, the second working memory, and every
    folder after that goes to the archive.

    Examples:
        >>> zone_for_index(0)
        <SectorZone.SINGULARITY: 'SINGULARITY'>
        >>> zone_for_index(7)
        <SectorZone.DEEP_VOID: 'DEEP_VOID'>
    """
    return ZONE_ORDER[min(index, len(ZONE_ORDER) - 1)]


def empty_brain() -> Brain:
    """Placeholder returned when a scan finds no brain folders."""
    return Brain(
        id=EMPTY_BRAIN_ID,
        name="No Folders Found",
        zone=SectorZone.DEEP_VOID,
        local_path="./[empty]",
        mass_bytes=0,
        neuron_count=0,
        last_pulse=0,
        state=SyncState.DECOHERENT,
        generation=0,
    )


def discover(
    root: DirectoryHandle,
    scanner: Optional[DirectoryScanner] = None,
    now: Optional[float] = None,
) -> list[Brain]:
    """Scan the immediate subfolders of ``root`` as brains.

    Hidden folders and ``node_modules`` are skipped. A folder that fails to
    scan is logged and left out without using up a zone.

    Args:
        root: Directory holding one folder per brain
        scanner: Scanner to use (default: DirectoryScanner())
        now: Timestamp recorded as ``last_pulse`` (default: time.time())

    Returns:
        Brains in discovery order, or a single placeholder brain
        (id ``local_empty``) if nothing was found

    Raises:
        OSError: If the root itself cannot be listed
    """
    scanner = scanner or DirectoryScanner()
    timestamp = time.time() if now is None else now
    brains: list[Brain] = []

    for entry in root.iter_entries():
        if entry.kind != "directory":
            continue
        name = entry.name
        if name.startswith(".") or name in SKIPPED_ROOT_FOLDERS:
            continue

        try:
            stats = scanner.scan_stats(entry)  # type: ignore[arg-type]
        except OSError as e:
            logger.error(f"Failed to scan folder: {name}: {e}")
            continue

        brains.append(
            Brain(
                id=f"local_{name}",
                name=name,
                zone=zone_for_index(len(brains)),
                local_path=f"./{name}",
                mass_bytes=stats.total_bytes,
                neuron_count=stats.total_file_count,
                last_pulse=timestamp,
                state=(
                    SyncState.COHERENT
                    if stats.total_file_count > 0
                    else SyncState.STABILIZING
                ),
            )
        )
        logger.debug(
            f"Discovered brain {name}: {stats.total_file_count} files, "
            f"{stats.total_bytes} bytes"
        )

    if not brains:
        return [empty_brain()]
    return brains


class BrainRegistry:
    """Holds the brains found by the most recent scan.

    Every call to :meth:`scan` replaces the whole registry; nothing is
    merged between scans.
    """

    def __init__(self, scanner: Optional[DirectoryScanner] = None):
        self.scanner = scanner or DirectoryScanner()
        self._brains: list[Brain] = []
        self.cloud_brains: list[CloudBrain] = []

    def scan(self, root: DirectoryHandle) -> list[Brain]:
        """Rescan ``root`` and replace the registry contents."""
        self._brains = discover(root, scanner=self.scanner)
        return list(self._brains)

    def replace(self, brains: list[Brain]) -> None:
        self._brains = list(brains)

    def get(self, brain_id: str) -> Optional[Brain]:
        for brain in self._brains:
            if brain.id == brain_id:
                return brain
        return None

    @property
    def is_empty(self) -> bool:
        """True if no scan has run or the last scan found no folders."""
        return all(brain.is_placeholder for brain in self._brains)

    def syncable(self) -> list[Brain]:
        """Brains that can be pushed (everything except the placeholder)."""
        return [brain for brain in self._brains if not brain.is_placeholder]

    def filter(
        self, query: Optional[str] = None, zone: Optional[SectorZone] = None
    ) -> list[Brain]:
        """Filter brains by case-insensitive name search and zone."""
        needle = query.lower() if query else None
        return [
            brain
            for brain in self._brains
            if (needle is None or needle in brain.name.lower())
            and (zone is None or brain.zone == zone)
        ]

    def load_cloud(self, client: MirrorClient, sync_code: str) -> list[CloudBrain]:
        """Fetch the brains mirrored under ``sync_code``.

        A failed load is logged and keeps the previously loaded list.
        """
        try:
            self.cloud_brains = client.list_brains(sync_code)
        except MemoriaAPIError as e:
            logger.error(f"Failed to load cloud brains: {e}")
        return list(self.cloud_brains)

    def is_mirrored(self, brain: Brain) -> bool:
        return any(cloud.name == brain.name for cloud in self.cloud_brains)

    def totals(self) -> tuple[int, int]:
        """Return ``(total_bytes, total_files)`` across all brains."""
        return (
            sum(brain.mass_bytes for brain in self._brains),
            sum(brain.neuron_count for brain in self._brains),
        )

    def __iter__(self) -> Iterator[Brain]:
        return iter(self._brains)

    def __len__(self) -> int:
        return len(self._brains)
