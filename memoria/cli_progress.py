"""CLI progress display for push and pull operations.

This module provides a Rich-based progress display fed by the
SyncProgress callbacks of the sync engine.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .models import SyncProgress


def _shorten(path: str, limit: int = 40) -> str:
    """Keep the tail of a long path so the file name stays visible."""
    if len(path) <= limit:
        return path
    return "..." + path[-(limit - 3) :]


class SyncProgressDisplay:
    """Rich-based progress display for one batch of files at a time.

    The total is reset whenever a new batch (a new brain) starts, which is
    detected by ``completed == 0``.
    """

    def __init__(self, verb: str = "Uploading") -> None:
        """Initialize the progress display.

        Args:
            verb: Word shown in front of the current file
        """
        self.verb = verb
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def update(self, info: SyncProgress) -> None:
        """Progress callback to pass to the sync engine."""
        if self._progress is None or self._task is None:
            return

        if info.completed == 0:
            self._progress.reset(self._task, total=info.total)
        self._progress.update(
            self._task,
            completed=info.completed,
            description=f"{self.verb} {_shorten(info.current_file)}",
        )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            transient=True,
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Preparing...", total=None)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
