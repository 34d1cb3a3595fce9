"""RAK811 LoRaWAN device session.

This module provides Rak811Device, the public face of the driver. Each
operation validates its arguments before anything is written, then issues
one or more AT commands through the correlation engine.
"""

from enum import Enum
from typing import Optional, Sequence, Union, TYPE_CHECKING
import logging

from rak811.core.at_executor import ATExecutor
from rak811.core.command_response import CommandResponse, ResponseStatus
from rak811.core.events import DeviceEventHandler, EventDispatcher
from rak811.core.exceptions import SessionClosedError
from rak811.core.line_reader import LineReader
from rak811.core.payload import MAX_PAYLOAD_BYTES, bytes_to_hex, is_hex
from rak811.core.redaction import redact_command
from rak811.core.serial_handler import SerialHandler
from rak811.core.transport import LineTransport

if TYPE_CHECKING:
    from rak811.config.config_models import Config
    from rak811.logging.communication_logger import CommunicationLogger

logger = logging.getLogger(__name__)

REGION_ID_LENGTH = 5
APP_EUI_LENGTH = 16
APP_KEY_LENGTH = 32
DEV_EUI_LENGTH = 16
DEV_ADDR_LENGTH = 8
NWKS_KEY_LENGTH = 32
APPS_KEY_LENGTH = 32

MESSAGE_PORT_MIN = 1
MESSAGE_PORT_MAX = 223
CHANNEL_MAX = 71

COMMAND_TIMEOUT_DEFAULT = 1.5
JOIN_TIMEOUT_DEFAULT = 10.0
SEND_TIMEOUT_DEFAULT = 20.0


class DeviceClass(Enum):
    """LoRaWAN device class. The module supports A and C only."""
    A = "A"
    B = "B"
    C = "C"


class ConfirmType(Enum):
    """Uplink confirmation mode, values as the module numbers them."""
    UNCONFIRMED = 0
    CONFIRMED = 1
    MULTICAST = 2
    PROPRIETARY = 3


_CLASS_CODES = {
    DeviceClass.A: 0,
    DeviceClass.C: 2,
}


class Rak811Device:
    """Session with one RAK811 module.

    Example:
        >>> with Rak811Device('/dev/ttyS0') as device:
        ...     device.set_region('EU868')
        ...     device.otaa_initialise(app_eui, app_key)
        ...     if device.join() == ResponseStatus.SUCCESS:
        ...         device.send_message(5, b'\\x01\\x02')
    """

    def __init__(self,
                 port: Optional[str] = None,
                 baud_rate: int = 9600,
                 transport: Optional[LineTransport] = None,
                 command_timeout: float = COMMAND_TIMEOUT_DEFAULT,
                 join_timeout: float = JOIN_TIMEOUT_DEFAULT,
                 send_timeout: float = SEND_TIMEOUT_DEFAULT,
                 late_response_grace: float = 5.0,
                 read_timeout: float = 1.0,
                 comm_logger: Optional['CommunicationLogger'] = None,
                 **serial_kwargs):
        """Initialize device session (the port is not opened yet).

        Args:
            port: Serial port device path (required unless transport given)
            baud_rate: Baud rate (default 9600)
            transport: Pre-built transport, bypassing SerialHandler
            command_timeout: Default timeout for configuration commands
            join_timeout: Default timeout for join()
            send_timeout: Default timeout for send_message()
            late_response_grace: Seconds a timed out command absorbs a late reply
            read_timeout: Serial read timeout used by the reader thread
            comm_logger: Optional CommunicationLogger
            **serial_kwargs: Passed to SerialHandler (bytesize, parity, ...)

        Raises:
            ValueError: Neither port nor transport given
        """
        if transport is None:
            if not port:
                raise ValueError("port or transport must be provided")
            transport = SerialHandler(
                port,
                baud_rate=baud_rate,
                timeout=read_timeout,
                logger=comm_logger,
                **serial_kwargs
            )

        self.transport = transport
        self.join_timeout = join_timeout
        self.send_timeout = send_timeout
        self.comm_logger = comm_logger
        self.dispatcher = EventDispatcher()
        self.executor = ATExecutor(
            transport,
            default_timeout=command_timeout,
            late_response_grace=late_response_grace,
            comm_logger=comm_logger
        )
        self.reader = LineReader(transport, self.executor, self.dispatcher, comm_logger)
        self._open = False

    @classmethod
    def from_config(cls,
                    config: 'Config',
                    comm_logger: Optional['CommunicationLogger'] = None,
                    transport: Optional[LineTransport] = None) -> 'Rak811Device':
        """Build a session from loaded configuration.

        Args:
            config: Config from ConfigManager
            comm_logger: Optional CommunicationLogger
            transport: Optional pre-built transport

        Returns:
            Unopened Rak811Device
        """
        serial_config = config.serial
        timeouts = config.timeouts
        return cls(
            port=serial_config.port,
            baud_rate=serial_config.baud_rate,
            transport=transport,
            command_timeout=timeouts.command,
            join_timeout=timeouts.join,
            send_timeout=timeouts.send,
            late_response_grace=timeouts.late_response_grace,
            read_timeout=serial_config.read_timeout,
            comm_logger=comm_logger,
            bytesize=serial_config.bytesize,
            parity=serial_config.parity,
            stopbits=serial_config.stopbits
        )

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def port(self) -> str:
        return getattr(self.transport, "port", "unknown")

    def initialise(self) -> ResponseStatus:
        """Open the port, start the reader and select LoRaWAN work mode.

        Returns:
            Status of the work mode command

        Raises:
            SerialPortError: Port could not be opened, or the reader of an
                already open session has failed
        """
        if not self._open:
            self.transport.open()
            self.transport.flush_buffers()
            self.reader.start()
            self._open = True
            logger.info("Session opened on %s", self.port)
        else:
            self._require_open("initialise")

        return self._send("at+set_config=lora:work_mode:0")

    def close(self) -> None:
        """Stop the reader and close the port. Safe to call more than once."""
        if not self._open:
            return
        self._open = False
        try:
            self.reader.stop()
        finally:
            self.transport.close()
        logger.info("Session closed on %s", self.port)

    def add_event_handler(self, handler: DeviceEventHandler) -> None:
        """Register a handler for join, confirmation and downlink events."""
        self.dispatcher.add_handler(handler)

    def remove_event_handler(self, handler: DeviceEventHandler) -> None:
        self.dispatcher.remove_handler(handler)

    def set_class(self, device_class: DeviceClass) -> ResponseStatus:
        """Select the LoRaWAN device class.

        Raises:
            ValueError: Class B, or not a DeviceClass
        """
        if device_class not in _CLASS_CODES:
            raise ValueError(f"Device class {device_class!r} not supported, use A or C")
        self._require_open("set class")
        return self._send(f"at+set_config=lora:class:{_CLASS_CODES[device_class]}")

    def set_region(self, region: str) -> ResponseStatus:
        """Select the regional band plan (e.g. EU868, US915, AS923).

        Raises:
            ValueError: Region identifier is not 5 characters
        """
        if not isinstance(region, str) or len(region) != REGION_ID_LENGTH:
            raise ValueError(f"region {region!r} invalid length must be {REGION_ID_LENGTH} characters")
        self._require_open("set region")
        return self._send(f"at+set_config=lora:region:{region}")

    def set_confirm(self, confirm: ConfirmType) -> ResponseStatus:
        """Select the uplink confirmation mode."""
        if not isinstance(confirm, ConfirmType):
            raise ValueError(f"confirm must be a ConfirmType, got {confirm!r}")
        self._require_open("set confirm")
        return self._send(f"at+set_config=lora:confirm:{confirm.value}")

    def sleep(self) -> ResponseStatus:
        self._require_open("sleep")
        return self._send("at+set_config=device:sleep:1")

    def wakeup(self) -> ResponseStatus:
        self._require_open("wake up")
        return self._send("at+set_config=device:sleep:0")

    def adr_on(self) -> ResponseStatus:
        self._require_open("enable ADR")
        return self._send("at+set_config=lora:adr:1")

    def adr_off(self) -> ResponseStatus:
        self._require_open("disable ADR")
        return self._send("at+set_config=lora:adr:0")

    def otaa_initialise(self,
                        app_eui: str,
                        app_key: str,
                        dev_eui: Optional[str] = None) -> ResponseStatus:
        """Configure over-the-air activation.

        Args:
            app_eui: Application EUI, 16 hex characters
            app_key: Application key, 32 hex characters
            dev_eui: Device EUI, 16 hex characters (default: module's own)

        Returns:
            First non-success status, or SUCCESS

        Raises:
            ValueError: Identifier or key has the wrong length or is not hex
        """
        _check_hex("app_eui", app_eui, APP_EUI_LENGTH)
        _check_hex("app_key", app_key, APP_KEY_LENGTH)
        if dev_eui is not None:
            _check_hex("dev_eui", dev_eui, DEV_EUI_LENGTH)
        self._require_open("configure OTAA")

        commands = ["at+set_config=lora:join_mode:0"]
        if dev_eui is not None:
            commands.append(f"at+set_config=lora:dev_eui:{dev_eui}")
        commands.append(f"at+set_config=lora:app_eui:{app_eui}")
        commands.append(f"at+set_config=lora:app_key:{app_key}")
        return self._send_all(commands)

    def abp_initialise(self, dev_addr: str, nwks_key: str, apps_key: str) -> ResponseStatus:
        """Configure activation by personalization.

        Args:
            dev_addr: Device address, 8 hex characters
            nwks_key: Network session key, 32 hex characters
            apps_key: Application session key, 32 hex characters

        Returns:
            First non-success status, or SUCCESS

        Raises:
            ValueError: Address or key has the wrong length or is not hex
        """
        _check_hex("dev_addr", dev_addr, DEV_ADDR_LENGTH)
        _check_hex("nwks_key", nwks_key, NWKS_KEY_LENGTH)
        _check_hex("apps_key", apps_key, APPS_KEY_LENGTH)
        self._require_open("configure ABP")

        return self._send_all([
            "at+set_config=lora:join_mode:1",
            f"at+set_config=lora:dev_addr:{dev_addr}",
            f"at+set_config=lora:nwks_key:{nwks_key}",
            f"at+set_config=lora:apps_key:{apps_key}",
        ])

    def join(self,
             timeout: Optional[float] = None,
             masked_channels: Optional[Sequence[int]] = None) -> ResponseStatus:
        """Join the network and wait for the result.

        Some AS923 gateways only listen on the first two channels. Passing
        ``masked_channels=range(2, 8)`` disables those channels for the join
        request and enables them again once the join has completed.

        Args:
            timeout: Seconds to wait (default: join_timeout)
            masked_channels: Channels disabled while joining (default: none)

        Returns:
            SUCCESS once joined, the module's error status, or TIMEOUT.
            A failed channel mask command is returned in place of the join
            result when the join itself succeeded.

        Raises:
            ValueError: Non-positive timeout or channel outside 0 to 71
        """
        timeout = self.join_timeout if timeout is None else timeout
        _check_timeout(timeout)
        channels = list(masked_channels or [])
        for channel in channels:
            _check_channel(channel)
        self._require_open("join")

        status = self._send_all(f"at+set_config=lora:ch_mask:{channel}:0" for channel in channels)
        if status is not ResponseStatus.SUCCESS:
            return status

        status = self._send("at+join", timeout)

        restored = self._send_all(f"at+set_config=lora:ch_mask:{channel}:1" for channel in channels)
        if status is ResponseStatus.SUCCESS:
            return restored
        return status

    def send_message(self,
                     port: int,
                     payload: Union[str, bytes],
                     timeout: Optional[float] = None) -> ResponseStatus:
        """Transmit an uplink.

        Args:
            port: LoRaWAN application port, 1 to 223
            payload: Raw bytes, or hex text with two digits per byte
            timeout: Seconds to wait (default: send_timeout)

        Returns:
            Status of the send command

        Raises:
            ValueError: Port out of range, malformed hex or payload too long
            TypeError: Payload is neither str nor bytes
        """
        if isinstance(port, bool) or not isinstance(port, int) \
                or not MESSAGE_PORT_MIN <= port <= MESSAGE_PORT_MAX:
            raise ValueError(f"port {port!r} invalid, must be {MESSAGE_PORT_MIN} to {MESSAGE_PORT_MAX}")

        if isinstance(payload, (bytes, bytearray, memoryview)):
            payload_hex = bytes_to_hex(payload)
        elif isinstance(payload, str):
            if not is_hex(payload):
                raise ValueError(f"payload {payload!r} is not valid hex text")
            payload_hex = payload.upper()
        else:
            raise TypeError(f"payload must be str or bytes, got {type(payload).__name__}")

        if not payload_hex:
            raise ValueError("payload must not be empty")
        if len(payload_hex) // 2 > MAX_PAYLOAD_BYTES:
            raise ValueError(f"payload length {len(payload_hex) // 2} bytes exceeds {MAX_PAYLOAD_BYTES}")

        timeout = self.send_timeout if timeout is None else timeout
        _check_timeout(timeout)
        self._require_open("send message")
        return self._send(f"at+send=lora:{port}:{payload_hex}", timeout)

    def set_channel_mask(self, channel: int, enabled: bool) -> ResponseStatus:
        """Enable or disable one channel of the band plan.

        Raises:
            ValueError: Channel outside 0 to 71
        """
        _check_channel(channel)
        self._require_open("set channel mask")
        return self._send(f"at+set_config=lora:ch_mask:{channel}:{1 if enabled else 0}")

    def send_command(self, command: str, timeout: Optional[float] = None) -> CommandResponse:
        """Send a raw AT command and return the full response record.

        Raises:
            ValueError: Empty command or non-positive timeout
        """
        if not isinstance(command, str) or not command.strip():
            raise ValueError("command must be a non-empty string")
        self._require_open("send command")
        return self.executor.execute(command, timeout)

    def _send(self, command: str, timeout: Optional[float] = None) -> ResponseStatus:
        status = self.executor.send(command, timeout)
        if status is not ResponseStatus.SUCCESS:
            logger.debug("%s -> %s", redact_command(command), status.name)
        return status

    def _send_all(self, commands) -> ResponseStatus:
        for command in commands:
            status = self._send(command)
            if status is not ResponseStatus.SUCCESS:
                return status
        return ResponseStatus.SUCCESS

    def _require_open(self, operation: str) -> None:
        if not self._open:
            raise SessionClosedError(operation)
        if self.reader.error is not None:
            raise self.reader.error

    def __enter__(self):
        """Context manager entry: open session."""
        self.initialise()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: close session."""
        self.close()
        return False

    def __repr__(self) -> str:
        status = "open" if self._open else "closed"
        return f"Rak811Device(port='{self.port}', status={status})"


def _check_hex(name: str, value: str, length: int) -> None:
    if not isinstance(value, str) or len(value) != length:
        raise ValueError(f"{name} invalid length must be {length} characters")
    if not is_hex(value):
        raise ValueError(f"{name} must be hex characters")


def _check_timeout(timeout: float) -> None:
    if timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")


def _check_channel(channel: int) -> None:
    if isinstance(channel, bool) or not isinstance(channel, int) or not 0 <= channel <= CHANNEL_MAX:
        raise ValueError(f"channel {channel!r} invalid, must be 0 to {CHANNEL_MAX}")
