"""Line transport protocol definition.

The correlation engine and the reader thread talk to the module through this
structural interface. SerialHandler is the pyserial-backed implementation;
tests supply in-memory fakes.
"""

from typing import Optional, Protocol


class LineTransport(Protocol):
    """Bidirectional, line-oriented byte stream.

    The write side may be used from any thread. The read side is owned by a
    single reader thread.
    """

    port: str

    def write_line(self, data: str) -> int:
        """Write ``data`` followed by the line terminator.

        Returns:
            Number of bytes written

        Raises:
            SerialPortError: Transport closed or write failed
        """
        ...

    def read_line(self) -> Optional[bytes]:
        """Block until a full line arrives, the read timeout elapses, or the
        read is cancelled.

        Returns:
            Raw line bytes including any terminator, or an empty value when
            nothing arrived

        Raises:
            SerialPortError: Transport closed or read failed
        """
        ...

    def cancel_read(self) -> None:
        """Wake a reader blocked in read_line()."""
        ...

    def is_connected(self) -> bool:
        ...

    def open(self) -> None:
        """Open the underlying port.

        Raises:
            SerialPortError: Port could not be opened
        """
        ...

    def close(self) -> None:
        """Close the underlying port. Safe to call more than once."""
        ...

    def flush_buffers(self) -> None:
        """Discard any buffered input and output."""
        ...
