"""Terminal status taxonomy and command response data model.

This module defines the ResponseStatus enum (the closed set of outcomes a
single AT command can have) and the immutable CommandResponse dataclass
returned by the correlation engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import time

from rak811.core.exceptions import ATCommandError


class ResponseStatus(Enum):
    """Outcome of exactly one AT command.

    SUCCESS, TIMEOUT and RESPONSE_INVALID are produced by the driver; the
    remaining members map the module's numeric ``ERROR: <n>`` codes.
    """
    SUCCESS = "success"
    TIMEOUT = "timeout"
    RESPONSE_INVALID = "response_invalid"

    AT_COMMAND_UNSUPPORTED = "at_command_unsupported"
    AT_COMMAND_INVALID_PARAMETER = "at_command_invalid_parameter"
    FLASH_IO_ERROR = "flash_io_error"
    DEVICE_STATE_INVALID = "device_state_invalid"

    LORA_BUSY = "lora_busy"
    LORA_SERVICE_UNKNOWN = "lora_service_unknown"
    LORA_PARAMETER_INVALID = "lora_parameter_invalid"
    LORA_FREQUENCY_INVALID = "lora_frequency_invalid"
    LORA_DATA_RATE_INVALID = "lora_data_rate_invalid"
    LORA_FREQUENCY_AND_DATA_RATE_INVALID = "lora_frequency_and_data_rate_invalid"
    LORA_NOT_JOINED = "lora_not_joined"
    LORA_PACKET_TOO_LONG = "lora_packet_too_long"
    LORA_SERVICE_CLOSED_BY_SERVER = "lora_service_closed_by_server"
    LORA_REGION_UNSUPPORTED = "lora_region_unsupported"
    LORA_DUTY_CYCLE_RESTRICTED = "lora_duty_cycle_restricted"
    LORA_NO_VALID_CHANNEL = "lora_no_valid_channel"
    LORA_NO_FREE_CHANNEL = "lora_no_free_channel"
    LORA_STATUS_ERROR = "lora_status_error"
    LORA_TX_TIMEOUT = "lora_tx_timeout"
    LORA_RX1_TIMEOUT = "lora_rx1_timeout"
    LORA_RX2_TIMEOUT = "lora_rx2_timeout"
    LORA_RX1_RECEIVE_ERROR = "lora_rx1_receive_error"
    LORA_RX2_RECEIVE_ERROR = "lora_rx2_receive_error"
    LORA_JOIN_FAILED = "lora_join_failed"
    LORA_DOWNLINK_REPEATED = "lora_downlink_repeated"
    LORA_PAYLOAD_SIZE_INVALID = "lora_payload_size_invalid"
    LORA_DOWNLINK_FRAMES_LOST = "lora_downlink_frames_lost"
    LORA_ADDRESS_FAIL = "lora_address_fail"
    LORA_MIC_VERIFY_ERROR = "lora_mic_verify_error"

    @property
    def is_device_error(self) -> bool:
        """True for statuses reported by the module through ``ERROR: <n>``."""
        return self not in (ResponseStatus.SUCCESS,
                            ResponseStatus.TIMEOUT,
                            ResponseStatus.RESPONSE_INVALID)


@dataclass(frozen=True)
class CommandResponse:
    """Immutable result of one AT command.

    Attributes:
        command: AT command string sent (e.g., "at+join")
        status: Terminal status of the command
        execution_time: Seconds from command write to completion or timeout
        raw_response: Line that completed the command (None on timeout)
        error_code: Numeric code from an ``ERROR: <n>`` line (if applicable)
        timestamp: Unix timestamp when the response was created
    """

    command: str
    status: ResponseStatus
    execution_time: float
    raw_response: Optional[str] = None
    error_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

    def is_successful(self) -> bool:
        """Check if command succeeded.

        Returns:
            True if status is SUCCESS, False otherwise
        """
        return self.status == ResponseStatus.SUCCESS

    def raise_for_status(self) -> 'CommandResponse':
        """Raise ATCommandError unless the command succeeded.

        Returns:
            self, so calls can be chained

        Raises:
            ATCommandError: Status is anything other than SUCCESS

        Example:
            >>> executor.execute("at+set_config=lora:adr:1").raise_for_status()
        """
        if not self.is_successful():
            raise ATCommandError(
                f"Command failed with {self.status.name}",
                self.command,
                self
            )
        return self

    def __str__(self) -> str:
        """Format response for display."""
        if self.status == ResponseStatus.SUCCESS:
            return f"[{self.status.value}] {self.command} ({self.execution_time:.3f}s)"
        elif self.status == ResponseStatus.TIMEOUT:
            return f"[{self.status.value}] {self.command} (no response after {self.execution_time:.3f}s)"
        else:
            code_info = f" (ERROR: {self.error_code})" if self.error_code is not None else ""
            return f"[{self.status.value}] {self.command}{code_info} ({self.execution_time:.3f}s)"
