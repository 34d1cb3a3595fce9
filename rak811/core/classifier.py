"""Response line classification for the RAK811 AT dialect.

Every normalized line read from the module is exactly one of:

* ignorable - blank lines, boot banners and UART echo
* an unsolicited event - join success or an ``at+recv=`` report
* a terminal status - the outcome of the command currently in flight

classify_line() is a pure function: the same line always yields the same
Classification, and nothing outside the returned value is touched.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple
import re

from rak811.core.command_response import ResponseStatus
from rak811.core.events import (
    DeviceEvent,
    DownlinkReceived,
    JoinCompletion,
    MessageConfirmation,
)

# Emitted after reset or a work mode change, never in answer to a command.
NOISE_PREFIXES: Tuple[str, ...] = (
    "?LoRa (R)",
    "RAK811 ",
    "UART1 ",
    "UART3 ",
    "LoRa work mode",
)

JOIN_SUCCESS_LITERAL = "OK Join Success"

SUCCESS_LITERALS = frozenset({
    "OK",
    "Initialization OK",
    "OK Wake Up",
    "OK Sleep",
})

RECV_PREFIX = "at+recv="

ERROR_CODES: Dict[int, ResponseStatus] = {
    1: ResponseStatus.AT_COMMAND_UNSUPPORTED,
    2: ResponseStatus.AT_COMMAND_INVALID_PARAMETER,
    3: ResponseStatus.FLASH_IO_ERROR,  # flash read/write
    4: ResponseStatus.FLASH_IO_ERROR,  # IIC read/write
    5: ResponseStatus.AT_COMMAND_INVALID_PARAMETER,  # UART send error
    41: ResponseStatus.DEVICE_STATE_INVALID,
    80: ResponseStatus.LORA_BUSY,
    81: ResponseStatus.LORA_SERVICE_UNKNOWN,
    82: ResponseStatus.LORA_PARAMETER_INVALID,
    83: ResponseStatus.LORA_FREQUENCY_INVALID,
    84: ResponseStatus.LORA_DATA_RATE_INVALID,
    85: ResponseStatus.LORA_FREQUENCY_AND_DATA_RATE_INVALID,
    86: ResponseStatus.LORA_NOT_JOINED,
    87: ResponseStatus.LORA_PACKET_TOO_LONG,
    88: ResponseStatus.LORA_SERVICE_CLOSED_BY_SERVER,
    89: ResponseStatus.LORA_REGION_UNSUPPORTED,
    90: ResponseStatus.LORA_DUTY_CYCLE_RESTRICTED,
    91: ResponseStatus.LORA_NO_VALID_CHANNEL,
    92: ResponseStatus.LORA_NO_FREE_CHANNEL,
    93: ResponseStatus.LORA_STATUS_ERROR,
    94: ResponseStatus.LORA_TX_TIMEOUT,
    95: ResponseStatus.LORA_RX1_TIMEOUT,
    96: ResponseStatus.LORA_RX2_TIMEOUT,
    97: ResponseStatus.LORA_RX1_RECEIVE_ERROR,
    98: ResponseStatus.LORA_RX2_RECEIVE_ERROR,
    99: ResponseStatus.LORA_JOIN_FAILED,
    100: ResponseStatus.LORA_DOWNLINK_REPEATED,
    101: ResponseStatus.LORA_PAYLOAD_SIZE_INVALID,
    102: ResponseStatus.LORA_DOWNLINK_FRAMES_LOST,
    103: ResponseStatus.LORA_ADDRESS_FAIL,
    104: ResponseStatus.LORA_MIC_VERIFY_ERROR,
}

# "ERROR: 86", tolerating a missing space after the colon.
_ERROR_RE = re.compile(r"^ERROR:\s*(\d+)$")

# The firmware separates the payload with ':' while documentation shows ','.
_RECV_SPLIT_RE = re.compile(r"[=,:]")


class LineKind(Enum):
    """Top-level classification of a response line."""
    IGNORABLE = "ignorable"
    EVENT = "event"
    STATUS = "status"


@dataclass(frozen=True)
class Classification:
    """Result of classifying one line.

    Attributes:
        kind: Ignorable, event or terminal status
        line: The line that was classified
        status: Terminal status (only for STATUS)
        events: Events in emission order (only for EVENT)
        error_code: Code parsed from an ``ERROR: <n>`` line, if any
    """
    kind: LineKind
    line: str
    status: Optional[ResponseStatus] = None
    events: Tuple[DeviceEvent, ...] = ()
    error_code: Optional[int] = None

    @property
    def is_status(self) -> bool:
        return self.kind is LineKind.STATUS

    @property
    def is_event(self) -> bool:
        return self.kind is LineKind.EVENT


def is_noise(line: str) -> bool:
    """True for blank lines and boot banner / UART echo lines."""
    return not line.strip() or line.startswith(NOISE_PREFIXES)


def classify_line(line: str) -> Classification:
    """Classify one normalized line from the module.

    Args:
        line: Line with terminator, NUL padding and surrounding whitespace
            already removed

    Returns:
        Classification of the line

    Example:
        >>> classify_line("ERROR: 86").status
        <ResponseStatus.LORA_NOT_JOINED: 'lora_not_joined'>
        >>> [type(e).__name__ for e in classify_line("at+recv=1,-40,9,0").events]
        ['MessageConfirmation']
    """
    if is_noise(line):
        return Classification(LineKind.IGNORABLE, line)

    if line == JOIN_SUCCESS_LITERAL:
        return Classification(LineKind.EVENT, line, events=(JoinCompletion(True),))

    if line.startswith(RECV_PREFIX):
        return _classify_recv(line)

    if line in SUCCESS_LITERALS:
        return Classification(LineKind.STATUS, line, status=ResponseStatus.SUCCESS)

    match = _ERROR_RE.match(line)
    if match:
        code = int(match.group(1))
        status = ERROR_CODES.get(code, ResponseStatus.RESPONSE_INVALID)
        return Classification(LineKind.STATUS, line, status=status, error_code=code)

    return Classification(LineKind.STATUS, line, status=ResponseStatus.RESPONSE_INVALID)


def _classify_recv(line: str) -> Classification:
    """Parse ``at+recv=<port>,<rssi>,<snr>,<length>[,<payload>]``."""
    fields = _RECV_SPLIT_RE.split(line)
    invalid = Classification(LineKind.STATUS, line, status=ResponseStatus.RESPONSE_INVALID)

    if len(fields) < 5:
        return invalid

    try:
        port, rssi, snr, length = (int(field) for field in fields[1:5])
    except ValueError:
        return invalid

    events: Tuple[DeviceEvent, ...] = (MessageConfirmation(rssi, snr),)
    if length > 0:
        if len(fields) < 6 or not fields[5]:
            return invalid
        events += (DownlinkReceived(port, rssi, snr, fields[5]),)

    return Classification(LineKind.EVENT, line, events=events)
