"""File handler for communication logs with size-based rotation."""

from pathlib import Path
from threading import Lock
from typing import Optional, TextIO
import logging
import os

from rak811.logging.log_models import LogEntry

logger = logging.getLogger(__name__)

LOG_FORMATS = ("text", "json")


class FileHandler:
    """Thread-safe log file writer with automatic rotation.

    When the file exceeds ``max_size_mb`` it is renamed to ``<name>.1``,
    older backups shift up by one and anything past ``backup_count`` is
    deleted.

    Example:
        >>> handler = FileHandler("~/.rak811/logs/comm.log", max_size_mb=10, backup_count=5)
        >>> handler.write(log_entry)
        >>> handler.close()
    """

    def __init__(self,
                 log_file_path: str,
                 max_size_mb: int = 10,
                 backup_count: int = 5,
                 log_format: str = "text"):
        """Initialize FileHandler and open the log file for appending.

        Args:
            log_file_path: Path to log file (supports ~ expansion)
            max_size_mb: Maximum file size in MB before rotation (default: 10)
            backup_count: Number of rotated backups to keep (default: 5)
            log_format: "text" (LogEntry.to_string) or "json" (one object per line)

        Raises:
            ValueError: Unknown log_format
            OSError: Log directory cannot be created or file cannot be opened
        """
        if log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {log_format!r}")

        self.log_file_path = Path(log_file_path).expanduser().resolve()
        self.max_size_bytes = max_size_mb * 1024 * 1024
        self.backup_count = backup_count
        self.log_format = log_format
        self._lock = Lock()
        self._file_handle: Optional[TextIO] = None

        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        self._file_handle = self._open_file()

    @property
    def is_closed(self) -> bool:
        return self._file_handle is None

    def _open_file(self) -> TextIO:
        return open(self.log_file_path, mode='a', encoding='utf-8', buffering=8192)

    def _format(self, entry: LogEntry) -> str:
        if self.log_format == "json":
            return entry.to_json()
        return entry.to_string()

    def write(self, entry: LogEntry) -> bool:
        """Write one entry, rotating first if the file is full.

        Write failures are reported through the ``logging`` module and do
        not propagate.

        Returns:
            True if the entry was written
        """
        with self._lock:
            if self._file_handle is None:
                return False
            try:
                self._rotate_if_needed()
                self._file_handle.write(self._format(entry) + '\n')
                self._file_handle.flush()
                return True
            except OSError as e:
                logger.error("Failed to write log entry to %s: %s", self.log_file_path, e)
                return False

    def _rotate_if_needed(self) -> None:
        # Caller holds _lock
        if self._file_handle.tell() < self.max_size_bytes:
            return

        self._file_handle.close()
        try:
            if self.backup_count > 0:
                for i in range(self.backup_count - 1, 0, -1):
                    src = Path(f"{self.log_file_path}.{i}")
                    if src.exists():
                        os.replace(src, f"{self.log_file_path}.{i + 1}")
                os.replace(self.log_file_path, f"{self.log_file_path}.1")
            else:
                self.log_file_path.unlink()
        except OSError as e:
            logger.warning("Log rotation failed for %s: %s", self.log_file_path, e)
        finally:
            self._file_handle = self._open_file()

    def flush(self) -> None:
        """Flush buffered writes to disk."""
        with self._lock:
            if self._file_handle is None:
                return
            try:
                self._file_handle.flush()
                os.fsync(self._file_handle.fileno())
            except OSError as e:
                logger.error("Failed to flush log file %s: %s", self.log_file_path, e)

    def close(self) -> None:
        """Flush and close the log file. Safe to call multiple times."""
        with self._lock:
            if self._file_handle is None:
                return
            try:
                self._file_handle.flush()
                self._file_handle.close()
            except OSError as e:
                logger.error("Failed to close log file %s: %s", self.log_file_path, e)
            finally:
                self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
