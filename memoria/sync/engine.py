"""Core sync engine for pushing brains to and pulling them from the cloud."""

import logging
from pathlib import Path
from typing import Callable, Optional

from ..api import MirrorClient
from ..exceptions import (
    MemoriaAPIError,
    MemoriaNotFoundError,
    MemoriaSyncInProgressError,
)
from ..models import (
    Brain,
    CloudBrain,
    LogEntry,
    PullResult,
    StorageFile,
    SyncProgress,
    SyncSummary,
)
from .handles import DirectoryHandle
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SyncProgress], None]

CONVERSATION_FOLDER = "_conversation"


class SyncEngine:
    """Orchestrates mirroring brains to the cloud and back.

    Only one push may run at a time on an engine; starting a second one
    while the first is running raises MemoriaSyncInProgressError.
    """

    def __init__(
        self, client: MirrorClient, scanner: Optional[DirectoryScanner] = None
    ):
        """Initialize sync engine.

        Args:
            client: Cloud mirror client
            scanner: Scanner used to collect brain files
        """
        self.client = client
        self.scanner = scanner or DirectoryScanner()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def sync_all(
        self,
        sync_code: str,
        brains: list[Brain],
        root: DirectoryHandle,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SyncSummary:
        """Push metadata and files of every brain to the cloud.

        Brains are processed one after another. A failed metadata save is
        logged and the brain's files are still uploaded; a failed upload is
        counted and the batch continues. Nothing is rolled back.

        Args:
            sync_code: Partition key to write under
            brains: Brains to push (the empty placeholder is skipped)
            root: Directory the brains were scanned from
            progress_callback: Called before each file upload

        Returns:
            SyncSummary with counts, failure reasons and the activity log

        Raises:
            MemoriaSyncInProgressError: If a push is already running

        Examples:
            >>> engine = SyncEngine(MirrorClient())
            >>> summary = engine.sync_all(code, brains, LocalDirectoryHandle(path))
            >>> print(f"{summary.uploaded}/{summary.total_files} uploaded")
        """
        if self._running:
            raise MemoriaSyncInProgressError("A sync is already in progress")

        self._running = True
        try:
            summary = SyncSummary()
            for brain in brains:
                if brain.is_placeholder:
                    continue
                summary.brains += 1
                self._sync_brain(sync_code, brain, root, summary, progress_callback)

            self._log(
                summary,
                "info",
                f"Synced {summary.brains} brains, "
                f"{summary.uploaded}/{summary.total_files} files uploaded",
            )
            return summary
        finally:
            self._running = False

    def _sync_brain(
        self,
        sync_code: str,
        brain: Brain,
        root: DirectoryHandle,
        summary: SyncSummary,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        """Push one brain, recording the outcome in ``summary``."""
        try:
            self.client.upsert_brain_metadata(sync_code, brain)
        except MemoriaAPIError as e:
            self._log(summary, "error", f"Failed to save {brain.name}: {e}")

        try:
            brain_dir = root.get_directory(brain.directory_name)
            files = self.scanner.collect_files(brain_dir)
        except OSError as e:
            self._log(
                summary,
                "error",
                f"Could not access directory for {brain.name}: {e}",
                module="fs",
            )
            return

        summary.total_files += len(files)
        if not files:
            return

        self._log(
            summary, "info", f"Uploading {len(files)} files from {brain.name}..."
        )

        failed = 0
        for index, record in enumerate(files):
            if progress_callback:
                progress_callback(
                    SyncProgress(
                        completed=index, total=len(files), current_file=record.path
                    )
                )

            try:
                result = self.client.upload_file(
                    sync_code, brain.name, record.path, record.content
                )
            except MemoriaAPIError as e:
                failed += 1
                summary.errors.append(f"{record.path}: {e}")
                continue

            if result.success:
                summary.uploaded += 1
            else:
                failed += 1
                summary.errors.append(f"{record.path}: {result.error}")

        summary.failed += failed
        if failed:
            self._log(summary, "warn", f"{failed} files failed to upload")

    def _log(
        self, summary: SyncSummary, level: str, message: str, module: str = "net"
    ) -> None:
        summary.log.append(LogEntry(level=level, module=module, message=message))
        log_level = {"warn": logging.WARNING, "error": logging.ERROR}.get(
            level, logging.INFO
        )
        logger.log(log_level, message)

    # =========================
    # Download
    # =========================

    def find_brain(self, sync_code: str, brain_uuid: str) -> CloudBrain:
        """Find the cloud brain scanned from the folder named ``brain_uuid``.

        Raises:
            MemoriaNotFoundError: If no brain matches; the message lists the
                brains that are available
        """
        brains = self.client.list_brains(sync_code)
        for brain in brains:
            if brain.uuid == brain_uuid:
                return brain

        available = "\n".join(f"  - {b.name} ({b.local_path})" for b in brains)
        message = f"Brain with UUID {brain_uuid} not found for sync code {sync_code}"
        if available:
            message = f"{message}\nAvailable brains:\n{available}"
        raise MemoriaNotFoundError(message)

    def pull_brain(
        self,
        sync_code: str,
        brain_uuid: str,
        dest_root: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> PullResult:
        """Download a brain's files (and conversation, if stored) locally.

        Files go to ``dest_root/brain/<uuid>/`` and a ``.pb`` conversation
        file to ``dest_root/conversations/<uuid>.pb``. A file that fails to
        download is logged and counted; the others are still fetched.

        Args:
            sync_code: Partition key to read from
            brain_uuid: Folder name of the brain on the original device
            dest_root: Agent data directory
            progress_callback: Called before each file download

        Returns:
            PullResult with counts and paths

        Raises:
            MemoriaNotFoundError: If the brain does not exist
            MemoriaAPIError: If the brain or its listing cannot be fetched
        """
        brain = self.find_brain(sync_code, brain_uuid)
        brain_dir = dest_root / "brain" / brain_uuid
        conversations_dir = dest_root / "conversations"
        brain_dir.mkdir(parents=True, exist_ok=True)
        conversations_dir.mkdir(parents=True, exist_ok=True)

        files = self.client.list_files_recursive(sync_code, brain.name)
        result = PullResult(
            brain=brain, destination=str(brain_dir), total_files=len(files)
        )

        for index, stored in enumerate(files):
            if progress_callback:
                progress_callback(
                    SyncProgress(
                        completed=index, total=len(files), current_file=stored.path
                    )
                )
            if self._download_to(sync_code, brain.name, stored, brain_dir):
                result.downloaded += 1
            else:
                result.failed += 1

        result.conversation_path = self._pull_conversation(
            sync_code, brain, brain_uuid, conversations_dir
        )
        return result

    def _download_to(
        self, sync_code: str, brain_name: str, stored: StorageFile, target_dir: Path
    ) -> bool:
        target = (target_dir / stored.path).resolve()
        if not target.is_relative_to(target_dir.resolve()):
            logger.warning(f"Skipping file outside brain folder: {stored.path}")
            return False

        try:
            content = self.client.download_file(sync_code, brain_name, stored.path)
        except MemoriaAPIError as e:
            logger.warning(f"Failed to download {stored.path}: {e}")
            return False

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return True

    def _pull_conversation(
        self,
        sync_code: str,
        brain: CloudBrain,
        brain_uuid: str,
        conversations_dir: Path,
    ) -> Optional[str]:
        """Fetch the first ``.pb`` file from the brain's conversation folder."""
        folder = f"{brain.name}/{CONVERSATION_FOLDER}"
        try:
            entries = self.client.list_files(sync_code, folder)
            pb_file = next(
                (
                    entry
                    for entry in entries
                    if isinstance(entry, StorageFile) and entry.name.endswith(".pb")
                ),
                None,
            )
            if pb_file is None:
                logger.info("No conversation file found")
                return None
            content = self.client.download_file(sync_code, folder, pb_file.path)
        except MemoriaAPIError as e:
            logger.info(f"No conversation file found: {e}")
            return None

        pb_path = conversations_dir / f"{brain_uuid}.pb"
        pb_path.write_bytes(content)
        return str(pb_path)
