"""Configuration management package.

Provides centralized configuration access with defaults, file loading,
environment variable overrides and encrypted key material.
"""

from rak811.config.config_manager import ConfigManager
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
from rak811.config.config_encryption import ConfigEncryption, ConfigEncryptionError

__all__ = [
    'ConfigManager',
    'Config',
    'SerialConfig',
    'TimeoutsConfig',
    'LoRaWANConfig',
    'LoggingConfig',
    'EncryptionConfig',
    'JoinMode',
    'LogLevel',
    'ConfigEncryption',
    'ConfigEncryptionError',
]
