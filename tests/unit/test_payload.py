"""Unit tests for the hex payload codec and key redaction."""

import pytest

from rak811.core.exceptions import PayloadFormatError
from rak811.core.payload import bytes_to_hex, hex_to_bytes, is_hex
from rak811.core.redaction import MASK, redact_command


class TestBytesToHex:
    """Test bytes_to_hex()."""

    def test_uppercase_output(self):
        assert bytes_to_hex(b"\xde\xad\xbe\xef") == "DEADBEEF"

    def test_text_bytes(self):
        assert bytes_to_hex(b"Hello") == "48656C6C6F"

    def test_empty(self):
        assert bytes_to_hex(b"") == ""

    def test_bytearray_and_memoryview(self):
        assert bytes_to_hex(bytearray(b"\x01\x02")) == "0102"
        assert bytes_to_hex(memoryview(b"\x0a")) == "0A"

    def test_rejects_str(self):
        with pytest.raises(TypeError):
            bytes_to_hex("0102")


class TestHexToBytes:
    """Test hex_to_bytes()."""

    def test_either_case(self):
        assert hex_to_bytes("deadBEEF") == b"\xde\xad\xbe\xef"

    def test_empty(self):
        assert hex_to_bytes("") == b""

    def test_odd_length(self):
        with pytest.raises(PayloadFormatError) as exc_info:
            hex_to_bytes("ABC")

        assert exc_info.value.payload == "ABC"

    def test_non_hex(self):
        with pytest.raises(PayloadFormatError):
            hex_to_bytes("ZZ")

    def test_whitespace_rejected(self):
        """Test embedded spaces are not accepted."""
        with pytest.raises(PayloadFormatError):
            hex_to_bytes("01 02")

    def test_payload_format_error_is_value_error(self):
        with pytest.raises(ValueError):
            hex_to_bytes("0")

    def test_rejects_bytes(self):
        with pytest.raises(TypeError):
            hex_to_bytes(b"0102")

    def test_inverse_of_encode(self):
        data = bytes(range(256))
        assert hex_to_bytes(bytes_to_hex(data)) == data


class TestIsHex:
    """Test is_hex()."""

    def test_valid(self):
        assert is_hex("0011AaBb")

    def test_exact_length(self):
        assert is_hex("0011223344556677", 16)
        assert not is_hex("00112233", 16)

    def test_odd_length_invalid(self):
        assert not is_hex("012")

    def test_not_a_string(self):
        assert not is_hex(None)
        assert not is_hex(1234)


class TestRedaction:
    """Test redact_command()."""

    @pytest.mark.parametrize("setting", ["app_key", "nwks_key", "apps_key"])
    def test_keys_masked(self, setting):
        key = "00112233445566778899AABBCCDDEEFF"
        redacted = redact_command(f"at+set_config=lora:{setting}:{key}")

        assert redacted == f"at+set_config=lora:{setting}:{MASK}"
        assert key not in redacted

    def test_identifiers_not_masked(self):
        """Test EUIs and addresses are left readable."""
        command = "at+set_config=lora:app_eui:70B3D57ED0000000"
        assert redact_command(command) == command

    def test_case_insensitive(self):
        assert MASK in redact_command("AT+SET_CONFIG=LORA:APP_KEY:0011")

    def test_other_commands_unchanged(self):
        assert redact_command("at+join") == "at+join"
