"""
Append-only activity log writer.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, TextIO

from ..audit.models import NormalizedEntry

logger = logging.getLogger(__name__)


class LogWriter:
    """
    Appends one line per NormalizedEntry to the activity log.

    Every line is flushed as soon as it is written so ``tail -f`` sees it
    immediately. There is no locking: one writer per log file.
    """

    def __init__(self, log_path: str = "/var/log/ssh_file_activity.log", mode: int = 0o600):
        """
        Initialize log writer.

        Args:
            log_path: Activity log path
            mode: Permissions applied when the file is created
        """
        self.log_path = Path(log_path)
        self.mode = mode
        self._file: Optional[TextIO] = None

    def open(self) -> None:
        """Open the log for appending, creating it if needed."""
        if self._file is not None:
            return
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.log_path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, self.mode)
        self._file = os.fdopen(fd, "a", encoding="utf-8")
        logger.info(f"Appending activity to {self.log_path}")

    def write(self, entry: NormalizedEntry) -> None:
        """Append a single entry and flush it."""
        if self._file is None:
            self.open()
        self._file.write(entry.format_line() + "\n")
        self._file.flush()

    def write_all(self, entries: Iterable[NormalizedEntry]) -> int:
        """
        Append entries in order.

        Returns:
            Number of lines written
        """
        count = 0
        for entry in entries:
            self.write(entry)
            count += 1
        return count

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "LogWriter":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
