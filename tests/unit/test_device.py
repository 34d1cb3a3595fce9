"""Unit tests for Rak811Device against a scripted transport."""

import threading
from unittest.mock import Mock, patch

import pytest

from rak811.config import Config, SerialConfig, TimeoutsConfig
from rak811.core.command_response import CommandResponse, ResponseStatus
from rak811.core.device import ConfirmType, DeviceClass, Rak811Device
from rak811.core.events import CallbackEventHandler
from rak811.core.exceptions import SerialPortError, SessionClosedError

APP_EUI = "70B3D57ED0000000"
APP_KEY = "00112233445566778899AABBCCDDEEFF"
DEV_EUI = "0011223344556677"
DEV_ADDR = "26011BDA"
NWKS_KEY = "000102030405060708090A0B0C0D0E0F"
APPS_KEY = "F0F1F2F3F4F5F6F7F8F9FAFBFCFDFEFF"


def always_ok(command):
    if command == "at+join":
        return ["OK", "OK Join Success"]
    return "OK"


@pytest.fixture
def device(transport):
    transport.responder = always_ok
    dev = Rak811Device(transport=transport, command_timeout=1.0, join_timeout=2.0,
                       send_timeout=2.0)
    assert dev.initialise() is ResponseStatus.SUCCESS
    transport.written.clear()
    yield dev
    dev.close()


class TestDeviceInit:
    """Test construction and session lifecycle."""

    def test_requires_port_or_transport(self):
        with pytest.raises(ValueError):
            Rak811Device()

    @patch("rak811.core.device.SerialHandler")
    def test_builds_serial_handler(self, mock_handler_class):
        Rak811Device("/dev/ttyS0", baud_rate=115200, read_timeout=0.5, parity="N")

        mock_handler_class.assert_called_once_with(
            "/dev/ttyS0", baud_rate=115200, timeout=0.5, logger=None, parity="N"
        )

    @patch("rak811.core.device.SerialHandler")
    def test_from_config(self, mock_handler_class):
        config = Config(
            serial=SerialConfig(port="/dev/ttyUSB1", baud_rate=115200),
            timeouts=TimeoutsConfig(command=2.0, join=30.0, send=25.0, late_response_grace=3.0)
        )

        dev = Rak811Device.from_config(config)

        assert dev.executor.default_timeout == 2.0
        assert dev.executor.late_response_grace == 3.0
        assert dev.join_timeout == 30.0
        assert dev.send_timeout == 25.0
        assert mock_handler_class.call_args.args == ("/dev/ttyUSB1",)
        assert mock_handler_class.call_args.kwargs["baud_rate"] == 115200

    def test_initialise_selects_work_mode(self, transport):
        transport.responder = always_ok
        dev = Rak811Device(transport=transport)

        try:
            assert dev.initialise() is ResponseStatus.SUCCESS
            assert dev.is_open
            assert transport.open_count == 1
            assert transport.flush_count == 1
            assert transport.written == ["at+set_config=lora:work_mode:0"]
        finally:
            dev.close()

    def test_close_is_idempotent(self, transport):
        transport.responder = always_ok
        dev = Rak811Device(transport=transport)
        dev.initialise()

        dev.close()
        dev.close()

        assert not dev.is_open
        assert transport.close_count == 1
        assert not dev.reader.is_running

    def test_context_manager(self, transport):
        transport.responder = always_ok

        with Rak811Device(transport=transport) as dev:
            assert dev.is_open

        assert not dev.is_open
        assert "closed" in repr(dev)

    def test_operations_require_open_session(self, transport):
        dev = Rak811Device(transport=transport)

        with pytest.raises(SessionClosedError):
            dev.adr_on()
        with pytest.raises(SessionClosedError):
            dev.join()

        assert transport.written == []

    def test_reader_failure_surfaces_on_next_operation(self, device, transport):
        error = SerialPortError("Device disconnected", transport.port)
        device.reader.error = error

        with pytest.raises(SerialPortError):
            device.adr_on()

    def test_reader_failure_surfaces_on_reinitialise(self, device, transport):
        device.reader.error = SerialPortError("Device disconnected", transport.port)

        with pytest.raises(SerialPortError):
            device.initialise()

        assert transport.written == []


class TestConfiguration:
    """Test configuration commands."""

    @pytest.mark.parametrize("method,command", [
        ("sleep", "at+set_config=device:sleep:1"),
        ("wakeup", "at+set_config=device:sleep:0"),
        ("adr_on", "at+set_config=lora:adr:1"),
        ("adr_off", "at+set_config=lora:adr:0"),
    ])
    def test_simple_commands(self, device, transport, method, command):
        assert getattr(device, method)() is ResponseStatus.SUCCESS
        assert transport.written == [command]

    def test_set_class(self, device, transport):
        device.set_class(DeviceClass.A)
        device.set_class(DeviceClass.C)

        assert transport.written == [
            "at+set_config=lora:class:0",
            "at+set_config=lora:class:2",
        ]

    def test_class_b_rejected_without_write(self, device, transport):
        with pytest.raises(ValueError):
            device.set_class(DeviceClass.B)

        assert transport.written == []

    def test_set_region(self, device, transport):
        device.set_region("US915")

        assert transport.written == ["at+set_config=lora:region:US915"]

    @pytest.mark.parametrize("region", ["EU86", "EU8688", "", None])
    def test_region_length_validated(self, device, transport, region):
        with pytest.raises(ValueError):
            device.set_region(region)

        assert transport.written == []

    def test_set_confirm(self, device, transport):
        device.set_confirm(ConfirmType.CONFIRMED)

        assert transport.written == ["at+set_config=lora:confirm:1"]

    def test_set_confirm_rejects_int(self, device):
        with pytest.raises(ValueError):
            device.set_confirm(1)

    def test_channel_mask(self, device, transport):
        device.set_channel_mask(8, False)
        device.set_channel_mask(71, True)

        assert transport.written == [
            "at+set_config=lora:ch_mask:8:0",
            "at+set_config=lora:ch_mask:71:1",
        ]

    @pytest.mark.parametrize("channel", [-1, 72, True])
    def test_channel_mask_range(self, device, channel):
        with pytest.raises(ValueError):
            device.set_channel_mask(channel, True)

    def test_device_error_status_returned(self, device, transport):
        transport.responder = lambda command: "ERROR: 89"

        assert device.set_region("XX999") is ResponseStatus.LORA_REGION_UNSUPPORTED


class TestActivation:
    """Test OTAA and ABP configuration."""

    def test_otaa(self, device, transport):
        assert device.otaa_initialise(APP_EUI, APP_KEY) is ResponseStatus.SUCCESS

        assert transport.written == [
            "at+set_config=lora:join_mode:0",
            f"at+set_config=lora:app_eui:{APP_EUI}",
            f"at+set_config=lora:app_key:{APP_KEY}",
        ]

    def test_otaa_with_dev_eui(self, device, transport):
        device.otaa_initialise(APP_EUI, APP_KEY, DEV_EUI)

        assert f"at+set_config=lora:dev_eui:{DEV_EUI}" in transport.written

    @pytest.mark.parametrize("app_eui,app_key", [
        (APP_EUI[:-1], APP_KEY),
        (APP_EUI, APP_KEY + "0"),
        ("Z" * 16, APP_KEY),
        (APP_EUI, None),
    ])
    def test_otaa_validation_before_write(self, device, transport, app_eui, app_key):
        with pytest.raises(ValueError):
            device.otaa_initialise(app_eui, app_key)

        assert transport.written == []

    def test_abp(self, device, transport):
        assert device.abp_initialise(DEV_ADDR, NWKS_KEY, APPS_KEY) is ResponseStatus.SUCCESS

        assert transport.written == [
            "at+set_config=lora:join_mode:1",
            f"at+set_config=lora:dev_addr:{DEV_ADDR}",
            f"at+set_config=lora:nwks_key:{NWKS_KEY}",
            f"at+set_config=lora:apps_key:{APPS_KEY}",
        ]

    def test_abp_dev_addr_length(self, device, transport):
        with pytest.raises(ValueError, match="dev_addr"):
            device.abp_initialise("2601", NWKS_KEY, APPS_KEY)

        assert transport.written == []

    def test_stops_at_first_failure(self, device, transport):
        transport.responder = lambda command: "ERROR: 2" if "app_eui" in command else "OK"

        status = device.otaa_initialise(APP_EUI, APP_KEY)

        assert status is ResponseStatus.AT_COMMAND_INVALID_PARAMETER
        assert not any("app_key" in command for command in transport.written)


class TestJoin:
    """Test network join."""

    def test_join_success_and_event(self, device, transport):
        on_join = Mock()
        device.add_event_handler(CallbackEventHandler(on_join=on_join))

        assert device.join() is ResponseStatus.SUCCESS

        assert transport.written == ["at+join"]
        on_join.assert_called_once_with(True)

    def test_join_failure(self, device, transport):
        transport.responder = lambda command: "ERROR: 99"

        assert device.join() is ResponseStatus.LORA_JOIN_FAILED

    def test_join_timeout(self, device, transport):
        transport.responder = lambda command: "OK"

        assert device.join(timeout=0.3) is ResponseStatus.TIMEOUT

    def test_join_rejects_non_positive_timeout(self, device, transport):
        with pytest.raises(ValueError):
            device.join(timeout=0)

        assert transport.written == []

    def test_join_with_masked_channels(self, device, transport):
        assert device.join(masked_channels=range(2, 8)) is ResponseStatus.SUCCESS

        assert transport.written == (
            [f"at+set_config=lora:ch_mask:{c}:0" for c in range(2, 8)]
            + ["at+join"]
            + [f"at+set_config=lora:ch_mask:{c}:1" for c in range(2, 8)]
        )

    def test_masked_channel_validated_before_write(self, device, transport):
        with pytest.raises(ValueError):
            device.join(masked_channels=[2, 72])

        assert transport.written == []

    def test_mask_failure_skips_join(self, device, transport):
        transport.responder = lambda command: "ERROR: 2" if "ch_mask:3:0" in command else always_ok(command)

        status = device.join(masked_channels=[2, 3, 4])

        assert status is ResponseStatus.AT_COMMAND_INVALID_PARAMETER
        assert "at+join" not in transport.written
        assert transport.written[-1] == "at+set_config=lora:ch_mask:3:0"

    def test_channels_restored_after_failed_join(self, device, transport):
        transport.responder = lambda command: "ERROR: 99" if command == "at+join" else "OK"

        assert device.join(masked_channels=[2, 3]) is ResponseStatus.LORA_JOIN_FAILED

        assert transport.written[-2:] == [
            "at+set_config=lora:ch_mask:2:1",
            "at+set_config=lora:ch_mask:3:1",
        ]


class TestSendMessage:
    """Test uplink transmission."""

    def test_bytes_payload(self, device, transport):
        assert device.send_message(5, b"Hello") is ResponseStatus.SUCCESS

        assert transport.written == ["at+send=lora:5:48656C6C6F"]

    def test_hex_payload_uppercased(self, device, transport):
        device.send_message(1, "deadbeef")

        assert transport.written == ["at+send=lora:1:DEADBEEF"]

    @pytest.mark.parametrize("port", [0, 224, -1, True, "1"])
    def test_port_out_of_range(self, device, transport, port):
        with pytest.raises(ValueError):
            device.send_message(port, b"\x01")

        assert transport.written == []

    def test_port_boundaries(self, device, transport):
        device.send_message(1, b"\x01")
        device.send_message(223, b"\x01")

        assert transport.written == ["at+send=lora:1:01", "at+send=lora:223:01"]

    @pytest.mark.parametrize("payload", ["ABC", "GG", b"", ""])
    def test_invalid_payload(self, device, transport, payload):
        with pytest.raises(ValueError):
            device.send_message(1, payload)

        assert transport.written == []

    def test_payload_too_long(self, device, transport):
        with pytest.raises(ValueError):
            device.send_message(1, bytes(243))

        assert transport.written == []

    def test_payload_max_length(self, device, transport):
        assert device.send_message(1, bytes(242)) is ResponseStatus.SUCCESS

    def test_payload_wrong_type(self, device):
        with pytest.raises(TypeError):
            device.send_message(1, 1234)

    def test_not_joined(self, device, transport):
        transport.responder = lambda command: "ERROR: 86"

        assert device.send_message(1, b"\x01") is ResponseStatus.LORA_NOT_JOINED

    def test_downlink_delivered_to_handler(self, device, transport):
        delivered = threading.Event()
        on_downlink = Mock(side_effect=lambda *args: delivered.set())
        on_confirmation = Mock()
        device.add_event_handler(CallbackEventHandler(on_confirmation=on_confirmation,
                                                      on_downlink=on_downlink))
        transport.responder = lambda command: ["OK", "at+recv=2,-50,8,2:BEEF"]

        device.send_message(1, b"\x01")
        assert delivered.wait(2.0)

        on_confirmation.assert_called_once_with(-50, 8)
        on_downlink.assert_called_once_with(2, -50, 8, "BEEF")


class TestSendCommand:
    """Test raw command passthrough."""

    def test_returns_command_response(self, device, transport):
        transport.responder = lambda command: "V3.0.0.14.H"

        response = device.send_command("at+version")

        assert isinstance(response, CommandResponse)
        assert response.status is ResponseStatus.RESPONSE_INVALID
        assert response.raw_response == "V3.0.0.14.H"

    def test_empty_command(self, device, transport):
        with pytest.raises(ValueError):
            device.send_command("")

        assert transport.written == []
