"""Custom exception hierarchy for the RAK811 driver.

Only precondition violations and transport failures are raised. Device
reported errors, unrecognised responses and timeouts are returned to the
caller as a ResponseStatus, because they are expected operational outcomes.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from rak811.core.command_response import CommandResponse


class Rak811Error(Exception):
    """Base exception for all RAK811 driver errors.

    All custom exceptions inherit from this base class to allow
    catching all driver errors with a single except clause.
    """
    pass


class SerialPortError(Rak811Error):
    """Serial port communication error.

    Raised when serial port operations fail (open, read, write). A transport
    error is fatal to the device session.

    Attributes:
        port: Serial port identifier (e.g., '/dev/ttyS0', 'COM3')
        os_error: Original exception from pyserial or OS (if available)
    """

    def __init__(self, message: str, port: str, os_error: Optional[Exception] = None):
        """Initialize SerialPortError.

        Args:
            message: Human-readable error description
            port: Serial port identifier
            os_error: Original exception from pyserial/OS
        """
        super().__init__(message)
        self.port = port
        self.os_error = os_error

    def __str__(self) -> str:
        """Format error message with port context."""
        base_msg = super().__str__()
        if self.os_error:
            return f"{base_msg} (port: {self.port}, cause: {self.os_error})"
        return f"{base_msg} (port: {self.port})"


class SerialPortBusyError(SerialPortError):
    """Port is already in use by another process."""
    pass


class ConnectionTimeoutError(SerialPortError):
    """Serial port could not be opened within the configured timeout."""
    pass


class SessionClosedError(Rak811Error):
    """Operation attempted on a device session that is not open."""

    def __init__(self, operation: str):
        super().__init__(f"Device session is not open, cannot {operation}")
        self.operation = operation


class ATCommandError(Rak811Error):
    """AT command completed with a non-success status.

    Never raised by the correlation engine itself. Callers opt in through
    CommandResponse.raise_for_status().

    Attributes:
        command: AT command string that failed
        response: CommandResponse object with error details
    """

    def __init__(self, message: str, command: str, response: 'CommandResponse'):
        """Initialize ATCommandError.

        Args:
            message: Human-readable error description
            command: AT command string that failed
            response: CommandResponse with error details
        """
        super().__init__(message)
        self.command = command
        self.response = response

    def __str__(self) -> str:
        """Format error message with command context."""
        base_msg = super().__str__()
        return f"{base_msg} (command: {self.command}, status: {self.response.status.value})"


class PayloadFormatError(Rak811Error, ValueError):
    """Hex payload text is malformed (odd length or non-hex characters).

    Attributes:
        payload: The offending text
    """

    def __init__(self, message: str, payload: str):
        super().__init__(message)
        self.payload = payload
