"""Configuration data models for the RAK811 driver.

This module defines immutable configuration dataclasses with sensible defaults
for zero-config operation. All dataclasses are frozen for immutability.
"""

from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import Optional, Dict, Any


class LogLevel(Enum):
    """Logging level."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class JoinMode(Enum):
    """Network activation method."""
    OTAA = "otaa"
    ABP = "abp"


@dataclass(frozen=True)
class SerialConfig:
    """Serial port configuration."""
    port: Optional[str] = None
    baud_rate: int = 9600
    bytesize: int = 8
    parity: str = "N"
    stopbits: int = 1
    read_timeout: float = 1.0  # seconds


@dataclass(frozen=True)
class TimeoutsConfig:
    """Command timeouts in seconds."""
    command: float = 1.5
    join: float = 10.0
    send: float = 20.0
    late_response_grace: float = 5.0


@dataclass(frozen=True)
class LoRaWANConfig:
    """Network settings applied by ``rak811 --join``.

    Key material may be stored encrypted (``encrypted:...``) and is
    decrypted on load.
    """
    region: str = "EU868"
    device_class: str = "A"
    confirm: str = "unconfirmed"
    adr: bool = True
    join_mode: JoinMode = JoinMode.OTAA
    app_eui: Optional[str] = None
    app_key: Optional[str] = None
    dev_eui: Optional[str] = None
    dev_addr: Optional[str] = None
    nwks_key: Optional[str] = None
    apps_key: Optional[str] = None
    message_port: int = 1


@dataclass(frozen=True)
class LoggingConfig:
    """Communication logging configuration."""
    enabled: bool = False
    level: LogLevel = LogLevel.INFO
    log_to_file: bool = False
    log_to_console: bool = True
    log_file_path: Optional[str] = None
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass(frozen=True)
class EncryptionConfig:
    """Encryption of key material in the config file."""
    enabled: bool = False
    key_path: Optional[str] = None


SENSITIVE_FIELDS = ("app_key", "nwks_key", "apps_key")


@dataclass(frozen=True)
class Config:
    """Complete configuration object with all sections."""
    serial: SerialConfig = field(default_factory=SerialConfig)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    lorawan: LoRaWANConfig = field(default_factory=LoRaWANConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    encryption: EncryptionConfig = field(default_factory=EncryptionConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation with nested sections.
        """
        def convert_value(obj: Any) -> Any:
            """Recursively convert enum values."""
            if isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, list):
                return [convert_value(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: convert_value(v) for k, v in obj.items()}
            return obj

        return convert_value(asdict(self))

    def mask_sensitive(self) -> 'Config':
        """Return copy with LoRaWAN keys masked.

        Shows only the last 4 characters of each key.

        Returns:
            New Config instance with masked sensitive data.
        """
        def mask_value(value: Optional[str]) -> Optional[str]:
            """Mask string showing only last 4 characters."""
            if value is None or len(value) <= 4:
                return value
            return '*' * (len(value) - 4) + value[-4:]

        masked_lorawan = replace(
            self.lorawan,
            **{name: mask_value(getattr(self.lorawan, name)) for name in SENSITIVE_FIELDS}
        )
        return replace(self, lorawan=masked_lorawan)
