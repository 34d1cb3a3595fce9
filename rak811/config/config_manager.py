"""Configuration manager for the RAK811 driver.

Provides singleton access to configuration with support for defaults, file
loading, and environment variable overrides.
"""

from copy import deepcopy
from pathlib import Path
from typing import Optional, Dict, Any, List
import logging
import os

import yaml

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
from rak811.config.defaults import get_default_config
from rak811.config.config_schema import ConfigSchema
from rak811.config.config_encryption import ConfigEncryption

logger = logging.getLogger(__name__)

ENV_PREFIX = "RAK811_"


class ConfigManager:
    """Singleton configuration manager.

    Provides centralized access to validated configuration with layered loading:
    1. Load defaults
    2. Load from file (if exists)
    3. Apply environment variable overrides
    4. Validate configuration against JSON schema
    5. Decrypt sensitive fields (if encryption enabled)
    6. Return validated Config object
    """

    _instance: Optional['ConfigManager'] = None

    def __init__(self):
        """Private constructor. Use instance() or initialize() class methods."""
        if ConfigManager._instance is not None:
            raise RuntimeError("Use ConfigManager.instance() instead of constructor")
        self._config: Optional[Config] = None
        self._config_source: Dict[str, str] = {}
        self._config_path: Optional[Path] = None

    @classmethod
    def instance(cls) -> 'ConfigManager':
        """Get singleton instance of ConfigManager.

        Raises:
            RuntimeError: If not yet initialized.
        """
        if cls._instance is None:
            raise RuntimeError("ConfigManager not initialized. Call initialize() first.")
        return cls._instance

    @classmethod
    def initialize(cls,
                   config_path: Optional[Path] = None,
                   skip_validation: bool = False) -> 'ConfigManager':
        """Initialize ConfigManager with configuration.

        Args:
            config_path: Optional path to rak811.yaml. If None, searches default paths.
            skip_validation: Skip schema validation.

        Returns:
            ConfigManager: Initialized singleton instance.

        Raises:
            ValueError: Configuration fails schema validation
            ConfigEncryptionError: Encrypted value cannot be decrypted
        """
        if cls._instance is None:
            cls._instance = cls()
        manager = cls._instance
        manager._config_source = {}
        manager._config_path = None

        # Step 1: Load defaults
        config_dict = get_default_config().to_dict()
        manager._mark_source(config_dict, "default")

        # Step 2: Load from file if exists
        if config_path is None:
            config_path = cls._search_config_paths()

        if config_path is not None:
            config_path = Path(config_path)
            if config_path.exists():
                try:
                    file_config = cls._load_from_file(config_path)
                except (OSError, yaml.YAMLError) as e:
                    logger.warning("Failed to load config from %s: %s. Using defaults only",
                                   config_path, e)
                else:
                    config_dict = cls._merge_configs(config_dict, file_config)
                    manager._mark_source(file_config, "file")
                    manager._config_path = config_path
            else:
                logger.warning("Config file %s not found, using defaults", config_path)

        # Step 3: Apply environment variable overrides
        env_overrides = cls._apply_env_overrides(config_dict)
        if env_overrides:
            config_dict = cls._merge_configs(config_dict, env_overrides)
            manager._mark_source(env_overrides, "env")

        # Step 4: Validate configuration
        if not skip_validation:
            is_valid, validation_errors = ConfigSchema.validate_config(config_dict, strict=False)
            if not is_valid:
                error_msg = "Configuration validation failed:\n" + "\n".join(
                    f"  - {error}" for error in validation_errors
                )
                raise ValueError(error_msg)

        # Step 5: Decrypt sensitive fields (if encryption enabled)
        encryption_config = config_dict.get('encryption', {})
        if encryption_config.get('enabled', False):
            key_path = encryption_config.get('key_path')
            encryption = ConfigEncryption(enabled=True, key_path=Path(key_path) if key_path else None)
            config_dict = encryption.decrypt_sensitive_fields(config_dict)

        # Step 6: Convert dict to Config object
        manager._config = cls._dict_to_config(config_dict)
        return manager

    @staticmethod
    def _search_config_paths() -> Optional[Path]:
        """Search for rak811.yaml in standard locations.

        Search order:
            1. ./rak811.yaml (current directory)
            2. ~/.rak811/config.yaml (user home directory)
        """
        search_paths = [
            Path("./rak811.yaml"),
            Path.home() / ".rak811" / "config.yaml"
        ]

        for path in search_paths:
            if path.exists() and path.is_file():
                return path

        return None

    @staticmethod
    def _load_from_file(path: Path) -> Dict[str, Any]:
        """Load configuration from YAML file.

        Raises:
            OSError: If file can't be read.
            yaml.YAMLError: If YAML parsing fails.
        """
        with open(path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            return {}
        if not isinstance(config_dict, dict):
            raise yaml.YAMLError(f"Top level of {path} must be a mapping")
        return config_dict

    @staticmethod
    def _apply_env_overrides(base: Dict[str, Any]) -> Dict[str, Any]:
        """Collect environment variable overrides.

        Environment variables use format: RAK811_SECTION_KEY
        Examples:
            RAK811_SERIAL_PORT=/dev/ttyUSB0
            RAK811_SERIAL_BAUD_RATE=115200
            RAK811_LORAWAN_ADR=false

        Values are coerced to the type of the current value for that key.

        Args:
            base: Configuration the overrides apply to.

        Returns:
            Dictionary with environment overrides.
        """
        overrides: Dict[str, Dict[str, Any]] = {}

        for env_name, env_value in os.environ.items():
            if not env_name.startswith(ENV_PREFIX):
                continue

            # RAK811_SERIAL_BAUD_RATE -> ["serial", "baud_rate"]
            parts = env_name[len(ENV_PREFIX):].lower().split('_', 1)
            if len(parts) != 2:
                continue

            section, key = parts
            current = base.get(section, {}).get(key) if isinstance(base.get(section), dict) else None
            overrides.setdefault(section, {})[key] = ConfigManager._parse_env_value(env_value, current)

        return overrides

    @staticmethod
    def _parse_env_value(value: str, current: Any = None) -> Any:
        """Parse environment variable value to the type of ``current``.

        Values that cannot be coerced are returned unchanged, so schema
        validation reports them.

        Args:
            value: String value from environment variable.
            current: Existing value for the key, if any.
        """
        lowered = value.strip().lower()

        if isinstance(current, bool):
            if lowered in ('true', '1', 'yes', 'on'):
                return True
            if lowered in ('false', '0', 'no', 'off'):
                return False
            return value

        if isinstance(current, int):
            try:
                return int(value)
            except ValueError:
                pass

        if isinstance(current, (int, float)):
            try:
                return float(value)
            except ValueError:
                return value

        if current is None and lowered in ('', 'none', 'null'):
            return None

        return value

    @staticmethod
    def _merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge two configuration dictionaries (override takes precedence)."""
        merged = deepcopy(base)

        for section, section_values in override.items():
            if isinstance(section_values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(section_values)
            else:
                merged[section] = section_values

        return merged

    def _mark_source(self, config: Dict[str, Any], source: str) -> None:
        """Mark source of configuration values ("default", "file", "env")."""
        for section, section_values in config.items():
            if isinstance(section_values, dict):
                for key in section_values.keys():
                    self._config_source[f"{section}.{key}"] = source

    @staticmethod
    def _dict_to_config(config_dict: Dict[str, Any]) -> Config:
        """Convert configuration dictionary to Config object."""
        defaults = get_default_config()

        def get_enum(enum_class, value, default):
            if isinstance(value, enum_class):
                return value
            if isinstance(value, str):
                for candidate in (value, value.lower(), value.upper()):
                    try:
                        return enum_class(candidate)
                    except ValueError:
                        continue
            return default

        def section_values(name: str, model) -> Dict[str, Any]:
            section = config_dict.get(name, {}) or {}
            known = model.__dataclass_fields__.keys()
            return {key: value for key, value in section.items() if key in known}

        serial = SerialConfig(**section_values('serial', SerialConfig))
        timeouts = TimeoutsConfig(**section_values('timeouts', TimeoutsConfig))

        lorawan_values = section_values('lorawan', LoRaWANConfig)
        lorawan_values['join_mode'] = get_enum(
            JoinMode, lorawan_values.get('join_mode'), defaults.lorawan.join_mode
        )
        lorawan = LoRaWANConfig(**lorawan_values)

        logging_values = section_values('logging', LoggingConfig)
        logging_values['level'] = get_enum(
            LogLevel, logging_values.get('level'), defaults.logging.level
        )
        logging_config = LoggingConfig(**logging_values)

        encryption = EncryptionConfig(**section_values('encryption', EncryptionConfig))

        return Config(
            serial=serial,
            timeouts=timeouts,
            lorawan=lorawan,
            logging=logging_config,
            encryption=encryption
        )

    def get_config(self) -> Config:
        """Get current configuration object.

        Raises:
            RuntimeError: If configuration not loaded.
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call initialize() first.")
        return self._config

    def get_source(self, key: str) -> str:
        """Get where a value came from ("default", "file", "env" or "unknown").

        Args:
            key: Dotted key, e.g. "serial.port"
        """
        return self._config_source.get(key, "unknown")

    @property
    def config_path(self) -> Optional[Path]:
        """Path of the loaded config file, if any."""
        return self._config_path

    def validate(self) -> List[str]:
        """Validate current configuration.

        Returns:
            List of validation error messages (empty if valid).
        """
        if self._config is None:
            return ["Configuration not loaded"]

        _, errors = ConfigSchema.validate_config(self._config.to_dict(), strict=False)
        return errors

    def show_config(self, mask_sensitive: bool = True) -> Dict[str, Any]:
        """Show current configuration with source metadata.

        Args:
            mask_sensitive: Whether to mask LoRaWAN keys (default: True).

        Returns:
            Dictionary with configuration and source metadata for each field.

        Example:
            {
                "serial": {
                    "baud_rate": {"value": 9600, "source": "default"},
                    "port": {"value": "/dev/ttyUSB0", "source": "env"}
                },
                "lorawan": {
                    "app_key": {"value": "****************************EEFF", "source": "file"}
                }
            }
        """
        config = self.get_config()
        if mask_sensitive:
            config = config.mask_sensitive()

        result: Dict[str, Any] = {}
        for section, values in config.to_dict().items():
            result[section] = {
                key: {"value": value, "source": self.get_source(f"{section}.{key}")}
                for key, value in values.items()
            }
        return result

    @classmethod
    def reset(cls) -> None:
        """Reset singleton instance (for testing)."""
        cls._instance = None
