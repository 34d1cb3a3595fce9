"""Hex payload codec.

The module exchanges payloads and key material as text with two hex
digits per byte. Encoding always produces uppercase digits.
"""

import re
from typing import Optional

from rak811.core.exceptions import PayloadFormatError

# LoRaWAN application payload ceiling (EU868/AS923 at the fastest data rate).
MAX_PAYLOAD_BYTES = 242

_HEX_RE = re.compile(r"^[0-9A-Fa-f]*$")


def bytes_to_hex(data: bytes) -> str:
    """Encode bytes as uppercase hex text.

    Args:
        data: Bytes to encode (bytes, bytearray or memoryview)

    Returns:
        Hex text, two digits per byte

    Raises:
        TypeError: data is not bytes-like

    Example:
        >>> bytes_to_hex(b"Hello")
        '48656C6C6F'
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"Expected bytes, got {type(data).__name__}")
    return bytes(data).hex().upper()


def hex_to_bytes(text: str) -> bytes:
    """Decode hex text into bytes.

    Args:
        text: Hex text, two digits per byte, either case

    Returns:
        Decoded bytes

    Raises:
        TypeError: text is not a string
        PayloadFormatError: Odd length or non-hex characters

    Example:
        >>> hex_to_bytes("48656c6c6f")
        b'Hello'
    """
    if not isinstance(text, str):
        raise TypeError(f"Expected str, got {type(text).__name__}")
    if len(text) % 2 != 0:
        raise PayloadFormatError(
            f"Hex payload length {len(text)} invalid, must be an even number",
            text
        )
    # bytes.fromhex tolerates whitespace, the wire format does not
    if not _HEX_RE.match(text):
        raise PayloadFormatError(f"Hex payload {text!r} contains non-hex characters", text)
    return bytes.fromhex(text)


def is_hex(text: str, length: Optional[int] = None) -> bool:
    """Check that text is well-formed hex, optionally of an exact length.

    Args:
        text: Candidate hex text
        length: Required number of characters (not bytes), if given

    Returns:
        True if text is a string of hex digits with even length
        (and matching length, when requested)
    """
    if not isinstance(text, str) or len(text) % 2 != 0:
        return False
    if length is not None and len(text) != length:
        return False
    return bool(_HEX_RE.match(text))
