"""Masking of LoRaWAN key material in AT command text."""

import re

SENSITIVE_SETTINGS = ("app_key", "nwks_key", "apps_key")

_SENSITIVE_RE = re.compile(
    r"(lora:(?:%s):)([0-9A-Fa-f]+)" % "|".join(SENSITIVE_SETTINGS),
    re.IGNORECASE
)

MASK = "********"


def redact_command(command: str) -> str:
    """Replace session and application keys in a command with a mask.

    Example:
        >>> redact_command("at+set_config=lora:app_key:00112233445566778899AABBCCDDEEFF")
        'at+set_config=lora:app_key:********'
    """
    return _SENSITIVE_RE.sub(lambda match: match.group(1) + MASK, command)
