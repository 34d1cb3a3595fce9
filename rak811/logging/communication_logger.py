"""Communication logger for the RAK811 serial link.

This module provides the CommunicationLogger class, a central coordinator
for logging AT command traffic and device events. Manages multiple output
destinations (file, console, in-memory buffer) with log level filtering.
Key material in commands is masked before any destination sees it.
"""

from datetime import datetime
from collections import deque
from threading import Lock
from typing import Optional, List, Dict, Any, Union
import sys

from rak811.config.config_models import LogLevel, LoggingConfig
from rak811.core.redaction import redact_command
from rak811.logging.log_models import LogEntry
from rak811.logging.file_handler import FileHandler


class CommunicationLogger:
    """Central coordinator for communication logging.

    Attributes:
        log_level: Current log level name (DEBUG, INFO, WARNING, ERROR)
        enable_file: Whether file logging is enabled
        enable_console: Whether console logging is enabled
        log_file_path: Path to log file (if file logging enabled)

    Example:
        >>> logger = CommunicationLogger(
        ...     log_level=LogLevel.INFO,
        ...     enable_file=True,
        ...     log_file_path="~/.rak811/logs/comm.log"
        ... )
        >>> logger.log_command(port="/dev/ttyS0", command="at+join")
        >>> logger.log_response(port="/dev/ttyS0", response="OK Join Success",
        ...                     status="SUCCESS", execution_time=6.2, command="at+join")
        >>> logger.close()
    """

    _LEVEL_PRIORITY = {
        "DEBUG": 0,
        "INFO": 1,
        "WARNING": 2,
        "ERROR": 3
    }

    def __init__(
        self,
        log_level: Union[LogLevel, str] = LogLevel.INFO,
        enable_file: bool = False,
        enable_console: bool = True,
        log_file_path: Optional[str] = None,
        max_file_size_mb: int = 10,
        backup_count: int = 5,
        buffer_size: int = 1000
    ):
        """Initialize CommunicationLogger with output destinations and log level.

        Args:
            log_level: Log level for filtering (default: INFO)
            enable_file: Enable file logging (default: False)
            enable_console: Enable console logging to stderr (default: True)
            log_file_path: Path to log file (required if enable_file=True)
            max_file_size_mb: Maximum file size before rotation (default: 10)
            backup_count: Number of backup files to keep (default: 5)
            buffer_size: Entries kept in memory for get_entries() (default: 1000)

        Raises:
            ValueError: If enable_file=True but log_file_path is None
            OSError: If the log file cannot be opened
        """
        self.log_level = log_level.value if isinstance(log_level, LogLevel) else log_level
        self.enable_file = enable_file
        self.enable_console = enable_console
        self.log_file_path = log_file_path

        self._lock = Lock()
        self._buffer: deque = deque(maxlen=buffer_size)

        self._file_handler: Optional[FileHandler] = None
        if self.enable_file:
            if not log_file_path:
                raise ValueError("log_file_path required when enable_file=True")
            self._file_handler = FileHandler(
                log_file_path=log_file_path,
                max_size_mb=max_file_size_mb,
                backup_count=backup_count
            )

    @classmethod
    def from_config(cls, config: LoggingConfig,
                    default_log_path: Optional[str] = None) -> 'CommunicationLogger':
        """Build a logger from the logging section of the configuration.

        Args:
            config: LoggingConfig
            default_log_path: File used when log_to_file is set without a path
        """
        log_file_path = config.log_file_path or default_log_path
        return cls(
            log_level=config.level,
            enable_file=config.log_to_file,
            enable_console=config.log_to_console,
            log_file_path=log_file_path,
            max_file_size_mb=config.max_file_size_mb,
            backup_count=config.backup_count
        )

    def log(self, entry: LogEntry) -> None:
        """Log an entry to all enabled destinations with level filtering."""
        if not self._should_log(entry.level):
            return

        with self._lock:
            self._buffer.append(entry)

            if self._file_handler:
                self._file_handler.write(entry)

            if self.enable_console:
                print(entry.to_string(), file=sys.stderr)

    def _should_log(self, entry_level: str) -> bool:
        entry_priority = self._LEVEL_PRIORITY.get(entry_level, 0)
        current_priority = self._LEVEL_PRIORITY.get(self.log_level, 0)
        return entry_priority >= current_priority

    def log_command(self, port: str, command: str) -> None:
        """Log AT command written to the module (key material masked).

        Example:
            >>> logger.log_command(port="/dev/ttyS0", command="at+set_config=lora:adr:1")
        """
        self.log(LogEntry(
            timestamp=datetime.now(),
            level="DEBUG",
            source="ATExecutor",
            message="Sending command",
            port=port,
            command=redact_command(command)
        ))

    def log_response(
        self,
        port: str,
        response: str,
        status: str,
        execution_time: float,
        command: Optional[str] = None
    ) -> None:
        """Log the terminal status of a command.

        SUCCESS logs at INFO, TIMEOUT at WARNING and anything else at ERROR.

        Args:
            port: Serial port name
            response: Line that completed the command ("" on timeout)
            status: ResponseStatus name
            execution_time: Command execution time in seconds
            command: Original command (optional, masked before logging)
        """
        if status == "SUCCESS":
            level = "INFO"
        elif status == "TIMEOUT":
            level = "WARNING"
        else:
            level = "ERROR"

        self.log(LogEntry(
            timestamp=datetime.now(),
            level=level,
            source="ATExecutor",
            message="Received response",
            port=port,
            command=redact_command(command) if command else None,
            response=response or None,
            status=status,
            execution_time=execution_time
        ))

    def log_event(
        self,
        port: str,
        event: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log an unsolicited device event.

        Example:
            >>> logger.log_event(port="/dev/ttyS0", event="DownlinkReceived",
            ...                  details={"port": 1, "rssi": -40, "snr": 9, "payload": "4865"})
        """
        self.log(LogEntry(
            timestamp=datetime.now(),
            level="INFO",
            source="LineReader",
            message="Device event",
            port=port,
            event=event,
            details=details
        ))

    def log_port_event(
        self,
        event: str,
        port: str,
        details: Optional[Dict[str, Any]] = None,
        level: str = "INFO"
    ) -> None:
        """Log serial port event (e.g. "Port opened", "Port closed")."""
        self.log(LogEntry(
            timestamp=datetime.now(),
            level=level,
            source="SerialHandler",
            message=event,
            port=port,
            details=details
        ))

    def log_error(
        self,
        source: str,
        error: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log error event.

        Example:
            >>> logger.log_error(source="SerialHandler", error="Failed to open port",
            ...                  details={"port": "/dev/ttyS0"})
        """
        self.log(LogEntry(
            timestamp=datetime.now(),
            level="ERROR",
            source=source,
            message="Error occurred",
            error=error,
            details=details
        ))

    def set_level(self, level: Union[LogLevel, str]) -> None:
        """Change log level dynamically."""
        self.log_level = level.value if isinstance(level, LogLevel) else level

    def get_entries(self, limit: Optional[int] = None) -> List[LogEntry]:
        """Get log entries from the in-memory buffer, oldest first.

        Args:
            limit: Return only the most recent ``limit`` entries
        """
        with self._lock:
            entries = list(self._buffer)
        if limit:
            entries = entries[-limit:]
        return entries

    def clear_buffer(self) -> None:
        """Clear the in-memory buffer. File logs are not affected."""
        with self._lock:
            self._buffer.clear()

    def flush(self) -> None:
        """Flush buffered file writes to disk."""
        if self._file_handler:
            self._file_handler.flush()

    def close(self) -> None:
        """Close the file handler. Safe to call more than once."""
        if self._file_handler:
            self._file_handler.close()
            self._file_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
