"""RAK811 LoRaWAN module driver.

This package provides a serial AT command driver for the RAK811 module:
- Command/response correlation with per-command timeouts
- Network configuration (region, class, OTAA/ABP keys) and join
- Uplink transmission with hex payload encoding
- Join, confirmation and downlink events
"""

from rak811.core import (
    CommandResponse,
    ResponseStatus,
    SerialHandler,
    PortInfo,
    ATExecutor,
    Rak811Device,
    DeviceClass,
    ConfirmType,
    JoinCompletion,
    MessageConfirmation,
    DownlinkReceived,
    DeviceEventHandler,
    CallbackEventHandler,
    Rak811Error,
    SerialPortError,
    SessionClosedError,
    ATCommandError,
    PayloadFormatError,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "CommandResponse",
    "ResponseStatus",
    "SerialHandler",
    "PortInfo",
    "ATExecutor",
    "Rak811Device",
    "DeviceClass",
    "ConfirmType",
    # Events
    "JoinCompletion",
    "MessageConfirmation",
    "DownlinkReceived",
    "DeviceEventHandler",
    "CallbackEventHandler",
    # Exceptions
    "Rak811Error",
    "SerialPortError",
    "SessionClosedError",
    "ATCommandError",
    "PayloadFormatError",
]
