"""Default configuration values for zero-config operation.

This module provides sensible defaults for all configuration sections,
allowing the driver to run without a rak811.yaml file.
"""

from rak811.config.config_models import (
    Config,
    SerialConfig,
    TimeoutsConfig,
    LoRaWANConfig,
    LoggingConfig,
    EncryptionConfig,
    JoinMode,
    LogLevel
)


def get_default_config() -> Config:
    """Get default configuration with sensible values for zero-config operation.

    Returns:
        Config: Complete configuration with all defaults populated.

    Default Values:
        - Serial: no port, 9600 baud 8N1 (module factory setting), 1s read timeout
        - Timeouts: 1.5s per command, 10s join, 20s uplink
        - LoRaWAN: EU868, class A, unconfirmed uplinks, ADR on, OTAA
        - Logging: Disabled, INFO level, console output when enabled
        - Encryption: Disabled by default (opt-in feature)
    """
    return Config(
        serial=SerialConfig(
            port=None,  # Must come from file, env or --port
            baud_rate=9600,
            bytesize=8,
            parity="N",
            stopbits=1,
            read_timeout=1.0  # Bounds reader shutdown when cancel is unsupported
        ),
        timeouts=TimeoutsConfig(
            command=1.5,
            join=10.0,
            send=20.0,
            late_response_grace=5.0
        ),
        lorawan=LoRaWANConfig(
            region="EU868",
            device_class="A",
            confirm="unconfirmed",
            adr=True,
            join_mode=JoinMode.OTAA,
            message_port=1
        ),
        logging=LoggingConfig(
            enabled=False,  # Disabled by default (opt-in feature)
            level=LogLevel.INFO,
            log_to_file=False,
            log_to_console=True,
            log_file_path=None,  # Auto-generated: ~/.rak811/logs/comm_{timestamp}.log
            max_file_size_mb=10,
            backup_count=5
        ),
        encryption=EncryptionConfig(
            enabled=False,
            key_path=None  # Auto-generated: ~/.rak811/.key
        )
    )
