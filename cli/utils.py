"""Utility functions for CLI operations."""

import json
import sys
from typing import Optional, TextIO

from apifile.events import UploadObserver
from apifile.types import ProgressEvent, SessionState, UploadOutcome
from cli.constants import GREEN, RESET
from common.exceptions import ApiError


class ConsoleUploadObserver(UploadObserver):
    """Upload observer that renders chunk progress on a single console line."""

    def __init__(self, filename: str, stream: Optional[TextIO] = None):
        """
        Initialize the console observer.

        Args:
            filename: Display name for the file
            stream: Output stream (defaults to stdout)
        """
        self.filename = filename
        self.stream = stream or sys.stdout
        self._line_open = False

    def on_progress(self, upload_id: str, event: ProgressEvent) -> None:
        if event.total == 0:
            return
        self.stream.write(
            f"\rUploading {self.filename}: chunk {event.current}/{event.total} "
            f"({GREEN}{event.fraction * 100:.1f}%{RESET})"
        )
        self.stream.flush()
        self._line_open = True

    def on_state_change(self, upload_id: str, state: SessionState) -> None:
        if state is SessionState.RETRYING:
            self._finish_line()
            self.stream.write(f"Retrying chunk of {self.filename}...\n")
            self.stream.flush()

    def on_complete(self, outcome: UploadOutcome) -> None:
        self._finish_line()

    def _finish_line(self) -> None:
        if self._line_open:
            self.stream.write('\n')
            self.stream.flush()
            self._line_open = False


class DownloadProgressPrinter:
    """Callable that renders download progress in bytes."""

    def __init__(self, label: str, stream: Optional[TextIO] = None):
        self.label = label
        self.stream = stream or sys.stdout
        self.started = False

    def __call__(self, downloaded: int, total: Optional[int]) -> None:
        self.started = True
        if total:
            progress = (downloaded / total) * 100
            self.stream.write(
                f"\rDownloading {self.label}: {format_file_size(downloaded)} / {format_file_size(total)} "
                f"({GREEN}{progress:.1f}%{RESET})"
            )
        else:
            self.stream.write(f"\rDownloading {self.label}: {format_file_size(downloaded)}")
        self.stream.flush()

    def finish(self) -> None:
        if self.started:
            self.stream.write('\n')
            self.stream.flush()


def format_api_error(error: ApiError) -> str:
    """
    Map HTTP errors to user-friendly messages.

    Args:
        error: ApiError raised by the files client

    Returns:
        User-friendly error message
    """
    detail = None
    try:
        data = json.loads(error.body) if error.body else None
        if isinstance(data, dict):
            detail = data.get('detail') or data.get('message')
    except ValueError:
        detail = None

    status_messages = {
        400: 'Bad request',
        401: 'Not authenticated. Please run: login <username> <password>',
        403: 'Access forbidden',
        404: 'Not found',
        413: 'File too large',
        500: 'Server error',
        502: 'Bad gateway',
        503: 'Service unavailable',
        504: 'Gateway timeout',
    }

    message = status_messages.get(error.status_code, f"HTTP {error.status_code}")
    return f"{message} ({detail})" if detail else message


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"
