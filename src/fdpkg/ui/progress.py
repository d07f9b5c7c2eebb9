"""progress reporting for downloads."""

import sys
from contextlib import contextmanager
from typing import Optional
from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    DownloadColumn,
    TransferSpeedColumn,
    TimeRemainingColumn,
    TaskProgressColumn,
    TaskID,
)

_SIZE_SUFFIXES = ("B", "KB", "MB", "GB", "TB")


def format_size(size: float) -> str:
    """format a byte count, e.g. 1536 -> '1.50 KB'. stops at GB."""
    index = 0
    while size >= 1024 and index < 3:
        size /= 1024
        index += 1
    return f"{size:.2f} {_SIZE_SUFFIXES[index]}"


class ProgressManager:
    """central manager for all progress tracking operations."""
    
    def __init__(self, console: Optional[Console] = None):
        """
        initialize progress manager.
        
        args:
            console: optional rich console instance. if not provided, creates new one.
        """
        self.console = console or Console()
        self._enabled = self._should_show_progress()
    
    def _should_show_progress(self) -> bool:
        """
        check if we should show progress bars.
        
        returns false in non-interactive environments (ci/cd, piped output).
        """
        return sys.stdout.isatty() and not sys.stdout.closed
    
    def print(self, *args, **kwargs):
        """print through managed console to avoid interference with progress bars."""
        self.console.print(*args, **kwargs)
    
    @contextmanager
    def spinner(self, description: str, transient: bool = True):
        """
        create an indeterminate spinner for unknown-duration tasks.
        
        args:
            description: text to display next to spinner
            transient: if true, spinner disappears when done
            
        yields:
            task id for the spinner (can be used to update description)
        """
        if not self._enabled:
            # in non-interactive mode, just print the message
            self.console.print(f"{description}...")
            yield None
            return
        
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=transient,
        ) as progress:
            task_id = progress.add_task(description, total=None)
            yield task_id
    
    @contextmanager
    def download_progress(self):
        """
        create a download progress context with transfer speed tracking.
        
        yields:
            Progress instance configured for downloads
        """
        if not self._enabled:
            yield _DummyProgress()
            return
        
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            TaskProgressColumn(),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=self.console,
        ) as progress:
            yield progress

    @contextmanager
    def file_download(self, file_name: str):
        """
        track the download of a single file.

        yields:
            callback taking (downloaded, total). nothing is drawn while the
            total is unknown (<= 0); the download itself is unaffected.
        """
        with self.download_progress() as progress:
            task_id = progress.add_task(file_name, total=None, visible=False)

            def update(downloaded: int, total: int):
                if total <= 0:
                    return
                progress.update(task_id, completed=downloaded, total=total, visible=True)

            yield update


class _DummyProgress:
    """dummy progress object for non-interactive mode."""
    
    def add_task(self, description: str, total: Optional[int] = None, **kwargs) -> TaskID:
        """add a task (no-op)."""
        return TaskID(0)
    
    def update(self, task_id: TaskID, **kwargs):
        """update a task (no-op)."""
        pass
