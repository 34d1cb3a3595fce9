"""Core driver components.

This package provides the serial transport, the reader thread, the response
classifier, the command correlation engine and the device session.
"""

from rak811.core.command_response import CommandResponse, ResponseStatus
from rak811.core.exceptions import (
    Rak811Error,
    SerialPortError,
    SerialPortBusyError,
    ConnectionTimeoutError,
    SessionClosedError,
    ATCommandError,
    PayloadFormatError
)
from rak811.core.events import (
    JoinCompletion,
    MessageConfirmation,
    DownlinkReceived,
    DeviceEventHandler,
    CallbackEventHandler,
    EventDispatcher
)
from rak811.core.serial_handler import SerialHandler, PortInfo
from rak811.core.at_executor import ATExecutor
from rak811.core.line_reader import LineReader
from rak811.core.device import Rak811Device, DeviceClass, ConfirmType

__all__ = [
    'CommandResponse',
    'ResponseStatus',
    'SerialHandler',
    'PortInfo',
    'ATExecutor',
    'LineReader',
    'Rak811Device',
    'DeviceClass',
    'ConfirmType',
    'JoinCompletion',
    'MessageConfirmation',
    'DownlinkReceived',
    'DeviceEventHandler',
    'CallbackEventHandler',
    'EventDispatcher',
    'Rak811Error',
    'SerialPortError',
    'SerialPortBusyError',
    'ConnectionTimeoutError',
    'SessionClosedError',
    'ATCommandError',
    'PayloadFormatError',
]
