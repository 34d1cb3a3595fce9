"""Unit tests for CommandResponse and ResponseStatus."""

import time
from dataclasses import FrozenInstanceError

import pytest

from rak811.core.command_response import CommandResponse, ResponseStatus
from rak811.core.exceptions import ATCommandError


class TestResponseStatus:
    """Test ResponseStatus enum."""

    def test_driver_statuses(self):
        assert ResponseStatus.SUCCESS.value == "success"
        assert ResponseStatus.TIMEOUT.value == "timeout"
        assert ResponseStatus.RESPONSE_INVALID.value == "response_invalid"

    def test_is_device_error(self):
        assert not ResponseStatus.SUCCESS.is_device_error
        assert not ResponseStatus.TIMEOUT.is_device_error
        assert not ResponseStatus.RESPONSE_INVALID.is_device_error
        assert ResponseStatus.LORA_NOT_JOINED.is_device_error
        assert ResponseStatus.FLASH_IO_ERROR.is_device_error

    def test_values_unique(self):
        values = [status.value for status in ResponseStatus]
        assert len(values) == len(set(values))


class TestCommandResponse:
    """Test CommandResponse dataclass."""

    def test_create_minimal_response(self):
        response = CommandResponse(
            command="at+version",
            status=ResponseStatus.TIMEOUT,
            execution_time=1.5
        )

        assert response.raw_response is None
        assert response.error_code is None
        assert response.timestamp > 0

    def test_immutability(self):
        response = CommandResponse("at+join", ResponseStatus.SUCCESS, 6.2, "OK Join Success")

        with pytest.raises(FrozenInstanceError):
            response.status = ResponseStatus.TIMEOUT

    def test_automatic_timestamp(self):
        before = time.time()
        response = CommandResponse("at+join", ResponseStatus.SUCCESS, 0.1)
        after = time.time()

        assert before <= response.timestamp <= after

    def test_is_successful(self):
        assert CommandResponse("at+join", ResponseStatus.SUCCESS, 0.1).is_successful()
        assert not CommandResponse("at+join", ResponseStatus.TIMEOUT, 10.0).is_successful()
        assert not CommandResponse("at+join", ResponseStatus.LORA_JOIN_FAILED, 5.0,
                                   "ERROR: 99", 99).is_successful()

    def test_raise_for_status_success_returns_self(self):
        response = CommandResponse("at+set_config=lora:adr:1", ResponseStatus.SUCCESS, 0.05, "OK")

        assert response.raise_for_status() is response

    def test_raise_for_status_failure(self):
        response = CommandResponse("at+send=lora:1:01", ResponseStatus.LORA_NOT_JOINED,
                                   0.05, "ERROR: 86", 86)

        with pytest.raises(ATCommandError) as exc_info:
            response.raise_for_status()

        assert exc_info.value.response is response
        assert exc_info.value.command == "at+send=lora:1:01"
        assert "LORA_NOT_JOINED" in str(exc_info.value)

    def test_str_success(self):
        response = CommandResponse("at+join", ResponseStatus.SUCCESS, 6.2)
        assert str(response) == "[success] at+join (6.200s)"

    def test_str_timeout(self):
        response = CommandResponse("at+join", ResponseStatus.TIMEOUT, 10.0)
        assert str(response) == "[timeout] at+join (no response after 10.000s)"

    def test_str_error_with_code(self):
        response = CommandResponse("at+join", ResponseStatus.LORA_JOIN_FAILED, 5.0, "ERROR: 99", 99)
        assert str(response) == "[lora_join_failed] at+join (ERROR: 99) (5.000s)"

    def test_str_error_without_code(self):
        response = CommandResponse("at+version", ResponseStatus.RESPONSE_INVALID, 0.1, "V3.0")
        assert str(response) == "[response_invalid] at+version (0.100s)"

    def test_equality(self):
        first = CommandResponse("at+join", ResponseStatus.SUCCESS, 0.1, timestamp=1.0)
        second = CommandResponse("at+join", ResponseStatus.SUCCESS, 0.1, timestamp=1.0)

        assert first == second
        assert first != CommandResponse("at+join", ResponseStatus.TIMEOUT, 0.1, timestamp=1.0)
