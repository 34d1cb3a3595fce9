"""Configuration management CLI commands.

Provides command-line handlers for showing, validating, generating and
encrypting configuration, and for printing the JSON schema.
"""

import sys
import json
from pathlib import Path
from typing import Optional

import yaml

from rak811.config.config_manager import ConfigManager
from rak811.config.config_encryption import ConfigEncryption, ConfigEncryptionError
from rak811.config.config_schema import ConfigSchema
from rak811.config.defaults import get_default_config

_SECTION_TITLES = (
    ("serial", "Serial Settings"),
    ("timeouts", "Timeouts (seconds)"),
    ("lorawan", "LoRaWAN Settings"),
    ("logging", "Logging Settings"),
    ("encryption", "Encryption Settings"),
)


def show_config_command(mask_sensitive: bool = True) -> int:
    """Display current configuration with sources.

    Args:
        mask_sensitive: Mask LoRaWAN keys (default True)

    Returns:
        Exit code (0 for success)
    """
    try:
        manager = ConfigManager.instance()
        config_dict = manager.show_config(mask_sensitive=mask_sensitive)
    except RuntimeError as e:
        print(f"Error showing configuration: {e}", file=sys.stderr)
        return 1

    print("\n" + "=" * 70)
    print("  Current Configuration")
    if manager.config_path:
        print(f"  File: {manager.config_path}")
    print("=" * 70)

    for section, title in _SECTION_TITLES:
        _print_config_section(title, config_dict.get(section, {}))

    print()
    return 0


def _print_config_section(title: str, section: dict) -> None:
    print(f"\n{title}:")
    for key, entry in section.items():
        print(f"  {key}: {entry['value']} (source: {entry['source']})")


def validate_config_command(config_path: Optional[str] = None) -> int:
    """Validate a configuration file, or the loaded configuration.

    Args:
        config_path: Path to config file (default: use ConfigManager)

    Returns:
        Exit code (0 if valid, 1 if invalid)
    """
    try:
        if config_path:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = ConfigManager.instance().get_config().to_dict()
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {config_path}", file=sys.stderr)
        return 1
    except (OSError, yaml.YAMLError, RuntimeError) as e:
        print(f"Error validating configuration: {e}", file=sys.stderr)
        return 1

    is_valid, errors = ConfigSchema.validate_config(config_dict)

    print("\n" + "=" * 70)
    print("  Configuration Validation")
    print("=" * 70)

    if is_valid:
        print("\n[OK] Configuration is valid")
        print()
        return 0

    print(f"\n[ERROR] Configuration has {len(errors)} error(s):\n")
    for i, error in enumerate(errors, 1):
        print(f"{i}. {error}")
    print()
    return 1


def generate_config_command(output_path: str = "./rak811.yaml", force: bool = False) -> int:
    """Generate default configuration file.

    Args:
        output_path: Path to output file
        force: Overwrite existing file

    Returns:
        Exit code (0 for success, 1 for error)
    """
    output_file = Path(output_path)

    if output_file.exists() and not force:
        print(f"Error: File already exists: {output_path}", file=sys.stderr)
        print("Use --force to overwrite", file=sys.stderr)
        return 1

    try:
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write("# RAK811 driver configuration\n")
            f.write("# Generated with default values\n\n")
            yaml.safe_dump(get_default_config().to_dict(), f,
                           default_flow_style=False, sort_keys=False)
    except OSError as e:
        print(f"Error generating configuration: {e}", file=sys.stderr)
        return 1

    print(f"\n[OK] Default configuration generated: {output_file}")
    print("\nNext steps:")
    print("  1. Set serial.port and the lorawan keys")
    print("  2. Run 'rak811 --validate-config' to validate")
    print("  3. Run 'rak811 --encrypt-value <key>' to store keys encrypted")
    print()
    return 0


def encrypt_value_command(value: str, key_path: Optional[str] = None) -> int:
    """Encrypt a value for use in configuration.

    Args:
        value: Value to encrypt
        key_path: Optional custom key path

    Returns:
        Exit code (0 for success, 1 for error)
    """
    try:
        encryption = ConfigEncryption(enabled=True, key_path=Path(key_path) if key_path else None)
        encrypted = encryption.encrypt_value(value)
    except ConfigEncryptionError as e:
        print(f"Error encrypting value: {e}", file=sys.stderr)
        return 1

    print("\nEncrypted value:")
    print(f"  {encrypted}")
    print("\nYou can use this in your rak811.yaml file:")
    print("  encryption:")
    print("    enabled: true")
    print("  lorawan:")
    print(f"    app_key: {encrypted}")
    print(f"\nEncryption key: {encryption.key_path}")
    print()
    return 0


def config_schema_command(output_file: Optional[str] = None) -> int:
    """Output JSON schema for IDE autocomplete.

    Args:
        output_file: Optional file to write schema to

    Returns:
        Exit code (0 for success, 1 for error)
    """
    schema_dict = ConfigSchema.get_schema()

    if not output_file:
        print(json.dumps(schema_dict, indent=2))
        return 0

    try:
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(schema_dict, f, indent=2)
    except OSError as e:
        print(f"Error outputting schema: {e}", file=sys.stderr)
        return 1

    print(f"JSON schema written to: {output_file}")
    return 0
