"""JSON Schema validation for RAK811 driver configuration.

Provides schema definition and validation logic with clear error messages for
configuration validation.
"""

import copy
import re
from typing import List, Tuple, Dict, Any
import jsonschema
from jsonschema import Draft7Validator

from rak811.config.config_encryption import ConfigEncryption


def _nullable_string(description: str) -> Dict[str, Any]:
    return {"type": ["string", "null"], "description": description}


class ConfigSchema:
    """Configuration schema validator using JSON Schema Draft 7.

    Validates configuration dictionaries against JSON schema with custom
    validators for domain-specific validation (baud rates, key lengths, paths).

    Example:
        >>> is_valid, errors = ConfigSchema.validate_config(config_dict)
        >>> if not is_valid:
        >>>     for error in errors:
        >>>         print(error)
    """

    # Rates the RAK811 UART accepts
    VALID_BAUD_RATES = [600, 1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200]

    # Hex characters required per LoRaWAN identifier or key
    KEY_LENGTHS = {
        "app_eui": 16,
        "app_key": 32,
        "dev_eui": 16,
        "dev_addr": 8,
        "nwks_key": 32,
        "apps_key": 32,
    }

    @staticmethod
    def get_schema() -> Dict[str, Any]:
        """Get JSON Schema Draft 7 for configuration validation.

        Returns:
            JSON Schema dictionary defining all configuration sections,
            types, and value constraints.

        Example:
            >>> schema = ConfigSchema.get_schema()
            >>> assert schema["$schema"] == "http://json-schema.org/draft-07/schema#"
        """
        lorawan_keys = {
            name: _nullable_string(f"{length} hex characters, or an encrypted: value")
            for name, length in ConfigSchema.KEY_LENGTHS.items()
        }

        return {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "title": "RAK811 Driver Configuration",
            "description": "Configuration schema for the RAK811 LoRaWAN driver",
            "type": "object",
            "properties": {
                "serial": {
                    "type": "object",
                    "description": "Serial port settings",
                    "properties": {
                        "port": _nullable_string("Serial port device path"),
                        "baud_rate": {
                            "type": "integer",
                            "description": "Baud rate",
                            "enum": ConfigSchema.VALID_BAUD_RATES
                        },
                        "bytesize": {
                            "type": "integer",
                            "enum": [5, 6, 7, 8]
                        },
                        "parity": {
                            "type": "string",
                            "enum": ["N", "E", "O", "M", "S"]
                        },
                        "stopbits": {
                            "type": "number",
                            "enum": [1, 1.5, 2]
                        },
                        "read_timeout": {
                            "type": "number",
                            "description": "Serial read timeout in seconds",
                            "exclusiveMinimum": 0,
                            "maximum": 60
                        }
                    },
                    "additionalProperties": False
                },
                "timeouts": {
                    "type": "object",
                    "description": "Command timeouts in seconds",
                    "properties": {
                        "command": {"type": "number", "exclusiveMinimum": 0, "maximum": 300},
                        "join": {"type": "number", "exclusiveMinimum": 0, "maximum": 600},
                        "send": {"type": "number", "exclusiveMinimum": 0, "maximum": 600},
                        "late_response_grace": {"type": "number", "minimum": 0, "maximum": 600}
                    },
                    "additionalProperties": False
                },
                "lorawan": {
                    "type": "object",
                    "description": "LoRaWAN network settings",
                    "properties": {
                        "region": {
                            "type": "string",
                            "description": "Band plan identifier",
                            "minLength": 5,
                            "maxLength": 5
                        },
                        "device_class": {
                            "type": "string",
                            "enum": ["A", "C"]
                        },
                        "confirm": {
                            "type": "string",
                            "enum": ["unconfirmed", "confirmed", "multicast", "proprietary"]
                        },
                        "adr": {"type": "boolean"},
                        "join_mode": {
                            "type": "string",
                            "enum": ["otaa", "abp"]
                        },
                        "message_port": {
                            "type": "integer",
                            "minimum": 1,
                            "maximum": 223
                        },
                        **lorawan_keys
                    },
                    "additionalProperties": False
                },
                "logging": {
                    "type": "object",
                    "description": "Communication logging settings",
                    "properties": {
                        "enabled": {
                            "type": "boolean",
                            "description": "Enable communication logging"
                        },
                        "level": {
                            "type": "string",
                            "description": "Logging level",
                            "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]
                        },
                        "log_to_file": {"type": "boolean"},
                        "log_to_console": {"type": "boolean"},
                        "log_file_path": _nullable_string("Path to log file"),
                        "max_file_size_mb": {
                            "type": "integer",
                            "description": "Maximum log file size in megabytes",
                            "minimum": 1,
                            "maximum": 1000
                        },
                        "backup_count": {
                            "type": "integer",
                            "description": "Number of backup log files to keep",
                            "minimum": 0,
                            "maximum": 100
                        }
                    },
                    "additionalProperties": False
                },
                "encryption": {
                    "type": "object",
                    "description": "Encryption of key material",
                    "properties": {
                        "enabled": {"type": "boolean"},
                        "key_path": _nullable_string("Path to the AES key file")
                    },
                    "additionalProperties": False
                }
            },
            "additionalProperties": False
        }

    @staticmethod
    def validate_config(config: Dict[str, Any], strict: bool = True) -> Tuple[bool, List[str]]:
        """Validate configuration dictionary against schema.

        Args:
            config: Configuration dictionary to validate.
            strict: If True, reject unknown fields. If False, accept them.

        Returns:
            Tuple of (is_valid, error_messages).

        Example:
            >>> is_valid, errors = ConfigSchema.validate_config({"serial": {"baud_rate": 9600}})
            >>> assert is_valid
        """
        schema = ConfigSchema.get_schema()

        if not strict:
            schema = ConfigSchema._make_permissive(schema)

        validator = Draft7Validator(schema)
        errors = [ConfigSchema._format_error(error) for error in validator.iter_errors(config)]
        errors.extend(ConfigSchema._custom_validation(config))

        return len(errors) == 0, errors

    @staticmethod
    def _make_permissive(schema: Dict[str, Any]) -> Dict[str, Any]:
        """Make schema permissive by allowing additional properties."""
        permissive_schema = copy.deepcopy(schema)

        def remove_additional_properties(obj):
            if isinstance(obj, dict):
                obj.pop("additionalProperties", None)
                for value in obj.values():
                    remove_additional_properties(value)

        remove_additional_properties(permissive_schema)
        return permissive_schema

    @staticmethod
    def _format_error(error: jsonschema.exceptions.ValidationError) -> str:
        """Format validation error with field, section, and example.

        Example:
            "Section 'serial', field 'baud_rate': Expected one of [600, ...], got 12345.
             Example: baud_rate: 600"
        """
        path_parts = list(error.path)
        if len(path_parts) == 0:
            section = "root"
            field = "configuration"
        elif len(path_parts) == 1:
            section = path_parts[0]
            field = "section"
        else:
            section = path_parts[0]
            field = ".".join(str(p) for p in path_parts[1:])

        actual_value = error.instance

        if error.validator == "type":
            expected_type = error.validator_value
            return (f"Section '{section}', field '{field}': Expected type {expected_type}, "
                    f"got {type(actual_value).__name__} (value: {actual_value}). "
                    f"Example: {field}: <{expected_type} value>")

        elif error.validator == "enum":
            expected_values = error.validator_value
            example_value = expected_values[0] if expected_values else "N/A"
            return (f"Section '{section}', field '{field}': Expected one of {expected_values}, "
                    f"got {actual_value}. Example: {field}: {example_value}")

        elif error.validator in ("minimum", "exclusiveMinimum"):
            bound = "> " if error.validator == "exclusiveMinimum" else ">= "
            return (f"Section '{section}', field '{field}': Value must be {bound}"
                    f"{error.validator_value}, got {actual_value}")

        elif error.validator == "maximum":
            maximum = error.validator_value
            return (f"Section '{section}', field '{field}': Value must be <= {maximum}, "
                    f"got {actual_value}. Example: {field}: {maximum}")

        elif error.validator in ("minLength", "maxLength"):
            return (f"Section '{section}', field '{field}': String length "
                    f"{len(actual_value)} invalid. Example: region: 'EU868'")

        elif error.validator == "additionalProperties":
            extra_props = set(actual_value.keys()) - set(error.schema.get('properties', {}).keys())
            return (f"Section '{section}': Unknown fields {sorted(extra_props)} not allowed. "
                    f"Remove unknown fields or use permissive validation mode.")

        return f"Section '{section}', field '{field}': {error.message}"

    @staticmethod
    def _custom_validation(config: Dict[str, Any]) -> List[str]:
        """Perform custom validation beyond JSON schema.

        Args:
            config: Configuration dictionary to validate.

        Returns:
            List of validation error messages.
        """
        errors = []

        lorawan = config.get("lorawan")
        if isinstance(lorawan, dict):
            for name, length in ConfigSchema.KEY_LENGTHS.items():
                value = lorawan.get(name)
                if value is None or not isinstance(value, str):
                    continue
                if value.startswith(ConfigEncryption.ENCRYPTED_PREFIX):
                    continue
                if not ConfigSchema.validate_hex_key(value, length):
                    errors.append(
                        f"Section 'lorawan', field '{name}': Expected {length} hex "
                        f"characters, got '{value}' ({len(value)} characters)"
                    )

        logging_section = config.get("logging")
        if isinstance(logging_section, dict):
            path = logging_section.get("log_file_path")
            if path is not None and isinstance(path, str) and not ConfigSchema.validate_path(path):
                errors.append(
                    f"Section 'logging', field 'log_file_path': Path '{path}' "
                    f"contains invalid characters. Example: log_file_path: './logs/comm.log'"
                )

        return errors

    @staticmethod
    def validate_baud_rate(baud: int) -> bool:
        """Validate baud rate is one the module supports.

        Example:
            >>> ConfigSchema.validate_baud_rate(9600)
            True
            >>> ConfigSchema.validate_baud_rate(12345)
            False
        """
        return baud in ConfigSchema.VALID_BAUD_RATES

    @staticmethod
    def validate_hex_key(value: str, length: int) -> bool:
        """Validate that value is exactly ``length`` hex characters.

        Example:
            >>> ConfigSchema.validate_hex_key("0011223344556677", 16)
            True
        """
        return len(value) == length and re.fullmatch(r"[0-9A-Fa-f]+", value) is not None

    @staticmethod
    def validate_path(path: str) -> bool:
        """Validate path format (basic validation for invalid characters).

        Example:
            >>> ConfigSchema.validate_path("/var/log/rak811.log")
            True
            >>> ConfigSchema.validate_path("")
            False
        """
        if not path or path.strip() == "":
            return False

        invalid_chars = ['\0', '\r', '\n']
        return not any(char in path for char in invalid_chars)
