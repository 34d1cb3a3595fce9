"""Serial port I/O handler for the RAK811 module.

This module provides the pyserial-backed line transport with port discovery,
error wrapping and an interruptible read for the reader thread.
"""

from dataclasses import dataclass
from typing import List, Optional, TYPE_CHECKING
import threading
import time

import serial
from serial.tools import list_ports

from rak811.core.exceptions import (
    SerialPortError,
    SerialPortBusyError,
    ConnectionTimeoutError
)

# Avoid circular import for type hints
if TYPE_CHECKING:
    from rak811.logging.communication_logger import CommunicationLogger

LINE_TERMINATOR = "\r\n"


@dataclass
class PortInfo:
    """Serial port information from discovery.

    Attributes:
        device: Port device path (e.g., '/dev/ttyS0', 'COM3')
        description: Human-readable port description
        hwid: Hardware identifier (USB VID:PID, etc.)
    """
    device: str
    description: str
    hwid: str


class SerialHandler:
    """Manages the serial port lifecycle and raw line I/O.

    Writes are serialized by a lock. Reads are not: the port's read side is
    owned by the session's reader thread, and taking the write lock there
    would block command issue for the length of every read timeout.

    Example:
        >>> handler = SerialHandler('/dev/ttyS0', baud_rate=9600)
        >>> handler.open()
        >>> handler.write_line('at+version')
        >>> line = handler.read_line()
        >>> handler.close()
    """

    def __init__(self,
                 port: str,
                 baud_rate: int = 9600,
                 timeout: float = 1.0,
                 logger: Optional['CommunicationLogger'] = None,
                 **kwargs):
        """Initialize handler with port configuration.

        Args:
            port: Serial port device path
            baud_rate: Baud rate (default 9600, the module's factory rate
                after ``device:uart`` reconfiguration is 115200)
            timeout: Read timeout in seconds (default 1.0)
            logger: Optional CommunicationLogger for port events (default None)
            **kwargs: Additional arguments passed to serial.Serial
                (bytesize, parity, stopbits, ...)
        """
        self.port = port
        self.baud_rate = baud_rate
        self.timeout = timeout
        self.logger = logger
        self.kwargs = kwargs
        self._serial: Optional[serial.Serial] = None
        self._lock = threading.Lock()
        self._open_time: Optional[float] = None

    def open(self) -> None:
        """Open serial port and configure settings.

        Raises:
            SerialPortError: Port doesn't exist or permission denied
            SerialPortBusyError: Port already in use
            ConnectionTimeoutError: Open timeout exceeded
        """
        with self._lock:
            if self._serial is not None and self._serial.is_open:
                return

            try:
                self._serial = serial.Serial(
                    port=self.port,
                    baudrate=self.baud_rate,
                    timeout=self.timeout,
                    **self.kwargs
                )
                self._open_time = time.time()

                if self.logger:
                    self.logger.log_port_event(
                        event="Port opened",
                        port=self.port,
                        details={
                            "baud_rate": self.baud_rate,
                            "timeout": self.timeout,
                            **self.kwargs
                        }
                    )

            except serial.SerialException as e:
                error_msg = str(e).lower()

                if self.logger:
                    self.logger.log_error(
                        source="SerialHandler",
                        error=f"Failed to open port: {e}",
                        details={"port": self.port, "error_type": type(e).__name__}
                    )

                if 'permission denied' in error_msg or 'access denied' in error_msg:
                    raise SerialPortError(
                        f"Permission denied accessing port {self.port}",
                        self.port,
                        e
                    )
                elif 'busy' in error_msg or 'in use' in error_msg:
                    raise SerialPortBusyError(
                        f"Port {self.port} is already in use",
                        self.port,
                        e
                    )
                elif 'timeout' in error_msg:
                    raise ConnectionTimeoutError(
                        f"Timeout opening port {self.port}",
                        self.port,
                        e
                    )
                else:
                    raise SerialPortError(
                        f"Failed to open port {self.port}: {e}",
                        self.port,
                        e
                    )
            except (OSError, ValueError) as e:
                # pyserial raises ValueError for out-of-range settings
                if self.logger:
                    self.logger.log_error(
                        source="SerialHandler",
                        error=f"Unexpected error opening port: {e}",
                        details={"port": self.port, "error_type": type(e).__name__}
                    )

                raise SerialPortError(
                    f"Unexpected error opening port {self.port}: {e}",
                    self.port,
                    e
                )

    def close(self) -> None:
        """Close serial port and release resources.

        Safe to call multiple times; does nothing if port is already closed.
        """
        with self._lock:
            if self._serial is None or not self._serial.is_open:
                return
            try:
                self._serial.close()

                if self.logger:
                    details = None
                    if self._open_time:
                        details = {"session_duration_seconds": time.time() - self._open_time}
                    self.logger.log_port_event(
                        event="Port closed",
                        port=self.port,
                        details=details
                    )
            except (serial.SerialException, OSError) as e:
                if self.logger:
                    self.logger.log_error(
                        source="SerialHandler",
                        error=f"Error closing port: {e}",
                        details={"port": self.port}
                    )
            finally:
                self._open_time = None

    def write_line(self, data: str) -> int:
        """Write one command line to the serial port.

        Appends the \\r\\n terminator to the data.

        Args:
            data: Line to write (terminator added automatically)

        Returns:
            Number of bytes written

        Raises:
            SerialPortError: Port not open or write failed
        """
        with self._lock:
            if self._serial is None or not self._serial.is_open:
                raise SerialPortError(
                    "Cannot write to closed port",
                    self.port,
                    None
                )

            try:
                bytes_data = f"{data}{LINE_TERMINATOR}".encode('ascii')
                bytes_written = self._serial.write(bytes_data)
                self._serial.flush()
                return bytes_written
            except UnicodeEncodeError as e:
                raise SerialPortError(
                    f"Command contains non-ASCII characters: {data!r}",
                    self.port,
                    e
                )
            except (serial.SerialException, OSError) as e:
                raise SerialPortError(
                    f"Failed to write to port {self.port}: {e}",
                    self.port,
                    e
                )

    def read_line(self) -> bytes:
        """Read one line from the serial port.

        Blocks until a newline arrives, the read timeout elapses or
        cancel_read() is called. Called only from the reader thread.

        Returns:
            Raw line bytes (possibly partial or empty on timeout/cancel)

        Raises:
            SerialPortError: Port not open or read failed
        """
        serial_port = self._serial
        if serial_port is None or not serial_port.is_open:
            raise SerialPortError(
                "Cannot read from closed port",
                self.port,
                None
            )

        try:
            return serial_port.readline()
        except (serial.SerialException, OSError, TypeError) as e:
            # pyserial raises TypeError when the port is closed mid-read
            raise SerialPortError(
                f"Failed to read from port {self.port}: {e}",
                self.port,
                e
            )

    def cancel_read(self) -> None:
        """Interrupt a blocking read_line() call from another thread."""
        serial_port = self._serial
        if serial_port is not None and serial_port.is_open:
            try:
                serial_port.cancel_read()
            except (AttributeError, NotImplementedError, serial.SerialException):
                # Not every pyserial backend can cancel; the read timeout
                # still bounds how long the reader stays blocked.
                pass

    def is_connected(self) -> bool:
        """Check if port is currently open.

        Returns:
            True if port is open, False otherwise
        """
        with self._lock:
            return self._serial is not None and self._serial.is_open

    def flush_buffers(self) -> None:
        """Discard pending input and output.

        Used after open to drop the boot banner and any stale responses.

        Raises:
            SerialPortError: Port not open or flush failed
        """
        with self._lock:
            if self._serial is None or not self._serial.is_open:
                raise SerialPortError(
                    "Cannot flush buffers on closed port",
                    self.port,
                    None
                )

            try:
                self._serial.reset_input_buffer()
                self._serial.reset_output_buffer()
            except serial.SerialException as e:
                raise SerialPortError(
                    f"Failed to flush buffers on port {self.port}: {e}",
                    self.port,
                    e
                )

    @staticmethod
    def discover_ports() -> List[PortInfo]:
        """Enumerate available serial ports.

        Returns:
            List of PortInfo objects with path, description, hwid
        """
        return [
            PortInfo(
                device=port_info.device,
                description=port_info.description or "Unknown",
                hwid=port_info.hwid or "Unknown"
            )
            for port_info in list_ports.comports()
        ]

    def __enter__(self):
        """Context manager entry: open port."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: close port."""
        self.close()
        return False

    def __repr__(self) -> str:
        """String representation of handler."""
        status = "open" if self.is_connected() else "closed"
        return f"SerialHandler(port='{self.port}', baud={self.baud_rate}, status={status})"
