"""Log data models for communication logging.

This module defines the immutable record written for every command,
response, device event and serial port event.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Any, Optional
import json


@dataclass(frozen=True)
class LogEntry:
    """Immutable log entry for communication logging.

    Attributes:
        timestamp: When the event occurred
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        source: Component name (SerialHandler, ATExecutor, LineReader)
        message: Human-readable message describing the event
        details: Additional structured data (arbitrary dict)
        port: Serial port name (optional)
        command: AT command sent, with key material masked (optional)
        response: Line that completed the command (optional)
        status: ResponseStatus name (optional)
        execution_time: Command execution time in seconds (optional)
        event: Device event type, e.g. DownlinkReceived (optional)
        error: Error message if applicable (optional)

    Example:
        >>> entry = LogEntry(
        ...     timestamp=datetime.now(),
        ...     level="INFO",
        ...     source="ATExecutor",
        ...     message="Received response",
        ...     port="/dev/ttyS0",
        ...     command="at+join",
        ...     response="OK Join Success",
        ...     status="SUCCESS",
        ...     execution_time=6.412
        ... )
        >>> entry.to_string()
        '2025-01-12 10:30:15.234 | INFO    | ATExecutor      | Received response | CMD: at+join | ...'
    """

    timestamp: datetime
    level: str
    source: str
    message: str
    details: Optional[Dict[str, Any]] = None

    port: Optional[str] = None
    command: Optional[str] = None
    response: Optional[str] = None
    status: Optional[str] = None
    execution_time: Optional[float] = None
    event: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert log entry to dictionary, timestamp in ISO 8601 format."""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data

    def to_string(self) -> str:
        """Format log entry as human-readable string.

        Returns:
            "YYYY-MM-DD HH:MM:SS.mmm | LEVEL | SOURCE | MESSAGE" followed by
            whichever of command, status, time, event and error are set
        """
        timestamp_str = self.timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        base = f"{timestamp_str} | {self.level:7} | {self.source:15} | {self.message}"

        if self.command:
            base += f" | CMD: {self.command}"
        if self.response:
            base += f" | RSP: {self.response}"
        if self.status:
            base += f" | STATUS: {self.status}"
        if self.execution_time is not None:
            base += f" | TIME: {self.execution_time:.3f}s"
        if self.event:
            base += f" | EVENT: {self.event}"
            if self.details:
                base += " " + " ".join(f"{key}={value}" for key, value in self.details.items())
        if self.error:
            base += f" | ERROR: {self.error}"

        return base

    def to_json(self) -> str:
        """Convert log entry to a single-line JSON string."""
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        """Create LogEntry from dictionary.

        Example:
            >>> entry = LogEntry.from_dict({
            ...     'timestamp': '2025-01-12T10:30:15.234567',
            ...     'level': 'INFO',
            ...     'source': 'LineReader',
            ...     'message': 'Device event'
            ... })
        """
        timestamp = data['timestamp']
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)

        optional = {
            name: data.get(name)
            for name in ('details', 'port', 'command', 'response', 'status',
                         'execution_time', 'event', 'error')
        }
        return cls(
            timestamp=timestamp,
            level=data['level'],
            source=data['source'],
            message=data['message'],
            **optional
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'LogEntry':
        """Create LogEntry from JSON string."""
        return cls.from_dict(json.loads(json_str))
