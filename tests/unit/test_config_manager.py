"""Unit tests for ConfigManager loading, overrides and sources."""

from pathlib import Path

import pytest
import yaml

from rak811.config import ConfigEncryption, ConfigManager, JoinMode, LogLevel

APP_KEY = "00112233445566778899AABBCCDDEEFF"


@pytest.fixture
def isolated(tmp_path, clean_env, reset_config_manager):
    """Run with an empty working directory and home so no real config is found."""
    clean_env.chdir(tmp_path)
    clean_env.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def write_config(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return path


class TestSingleton:
    """Test singleton access."""

    def test_instance_before_initialize(self, reset_config_manager):
        with pytest.raises(RuntimeError):
            ConfigManager.instance()

    def test_constructor_guarded(self, isolated):
        ConfigManager.initialize()

        with pytest.raises(RuntimeError):
            ConfigManager()

    def test_initialize_returns_instance(self, isolated):
        manager = ConfigManager.initialize()

        assert ConfigManager.instance() is manager


class TestLoading:
    """Test defaults and file loading."""

    def test_defaults_without_file(self, isolated):
        config = ConfigManager.initialize().get_config()

        assert config.serial.port is None
        assert config.serial.baud_rate == 9600
        assert config.timeouts.command == 1.5
        assert config.lorawan.join_mode is JoinMode.OTAA
        assert ConfigManager.instance().get_source("serial.baud_rate") == "default"
        assert ConfigManager.instance().config_path is None

    def test_explicit_file(self, isolated):
        path = write_config(isolated / "custom.yaml", {
            "serial": {"port": "/dev/ttyUSB0", "baud_rate": 115200},
            "lorawan": {"join_mode": "abp", "region": "US915"},
            "logging": {"level": "DEBUG"},
        })

        manager = ConfigManager.initialize(path)
        config = manager.get_config()

        assert config.serial.port == "/dev/ttyUSB0"
        assert config.serial.baud_rate == 115200
        assert config.serial.read_timeout == 1.0
        assert config.lorawan.join_mode is JoinMode.ABP
        assert config.logging.level is LogLevel.DEBUG
        assert manager.get_source("serial.port") == "file"
        assert manager.get_source("serial.read_timeout") == "default"
        assert manager.config_path == path

    def test_searches_working_directory(self, isolated):
        write_config(isolated / "rak811.yaml", {"serial": {"port": "COM3"}})

        assert ConfigManager.initialize().get_config().serial.port == "COM3"

    def test_missing_explicit_file_uses_defaults(self, isolated):
        config = ConfigManager.initialize(isolated / "absent.yaml").get_config()

        assert config.serial.port is None

    def test_malformed_yaml_uses_defaults(self, isolated):
        path = isolated / "broken.yaml"
        path.write_text("serial: [unclosed", encoding='utf-8')

        config = ConfigManager.initialize(path).get_config()

        assert config.serial.baud_rate == 9600

    def test_empty_file(self, isolated):
        path = isolated / "empty.yaml"
        path.write_text("", encoding='utf-8')

        assert ConfigManager.initialize(path).get_config().serial.baud_rate == 9600

    def test_invalid_value_rejected(self, isolated):
        path = write_config(isolated / "bad.yaml", {"serial": {"baud_rate": 12345}})

        with pytest.raises(ValueError, match="baud_rate"):
            ConfigManager.initialize(path)

    def test_skip_validation(self, isolated):
        path = write_config(isolated / "bad.yaml", {"lorawan": {"app_key": "short"}})

        config = ConfigManager.initialize(path, skip_validation=True).get_config()

        assert config.lorawan.app_key == "short"

    def test_unknown_keys_ignored(self, isolated):
        path = write_config(isolated / "extra.yaml", {"serial": {"port": "COM4", "flow": "rtscts"}})

        assert ConfigManager.initialize(path).get_config().serial.port == "COM4"


class TestEnvironmentOverrides:
    """Test RAK811_* environment variables."""

    def test_override_file_value(self, isolated, monkeypatch):
        path = write_config(isolated / "c.yaml", {"serial": {"port": "/dev/ttyUSB0"}})
        monkeypatch.setenv("RAK811_SERIAL_PORT", "/dev/ttyUSB1")
        monkeypatch.setenv("RAK811_SERIAL_BAUD_RATE", "115200")
        monkeypatch.setenv("RAK811_LORAWAN_ADR", "false")
        monkeypatch.setenv("RAK811_TIMEOUTS_LATE_RESPONSE_GRACE", "2.5")

        manager = ConfigManager.initialize(path)

        config = manager.get_config()
        assert config.serial.port == "/dev/ttyUSB1"
        assert config.serial.baud_rate == 115200
        assert config.lorawan.adr is False
        assert config.timeouts.late_response_grace == 2.5
        assert manager.get_source("serial.port") == "env"

    def test_uncoercible_value_reported(self, isolated, monkeypatch):
        monkeypatch.setenv("RAK811_SERIAL_BAUD_RATE", "fast")

        with pytest.raises(ValueError):
            ConfigManager.initialize()

    @pytest.mark.parametrize("value,current,expected", [
        ("true", False, True),
        ("OFF", True, False),
        ("maybe", True, "maybe"),
        ("42", 1, 42),
        ("2.5", 1, 2.5),
        ("3", 1.5, 3.0),
        ("none", None, None),
        ("COM3", None, "COM3"),
    ])
    def test_parse_env_value(self, value, current, expected):
        assert ConfigManager._parse_env_value(value, current) == expected


class TestEncryptedValues:
    """Test decryption of encrypted key material on load."""

    def test_encrypted_key_decrypted(self, isolated):
        key_path = isolated / "keys" / ".key"
        encrypted = ConfigEncryption(key_path=key_path).encrypt_value(APP_KEY)
        path = write_config(isolated / "c.yaml", {
            "lorawan": {"app_key": encrypted},
            "encryption": {"enabled": True, "key_path": str(key_path)},
        })

        config = ConfigManager.initialize(path).get_config()

        assert config.lorawan.app_key == APP_KEY

    def test_encrypted_value_left_alone_when_disabled(self, isolated):
        encrypted = ConfigEncryption(key_path=isolated / ".key").encrypt_value(APP_KEY)
        path = write_config(isolated / "c.yaml", {"lorawan": {"app_key": encrypted}})

        assert ConfigManager.initialize(path).get_config().lorawan.app_key == encrypted


class TestShowAndValidate:
    """Test show_config() and validate()."""

    def test_show_config_masks_keys(self, isolated):
        path = write_config(isolated / "c.yaml", {"lorawan": {"app_key": APP_KEY}})
        manager = ConfigManager.initialize(path)

        shown = manager.show_config()

        assert shown["lorawan"]["app_key"] == {"value": "*" * 28 + "EEFF", "source": "file"}
        assert shown["serial"]["baud_rate"] == {"value": 9600, "source": "default"}
        assert manager.show_config(mask_sensitive=False)["lorawan"]["app_key"]["value"] == APP_KEY

    def test_validate_loaded_config(self, isolated):
        assert ConfigManager.initialize().validate() == []

    def test_get_config_before_load(self, reset_config_manager):
        manager = ConfigManager()

        with pytest.raises(RuntimeError):
            manager.get_config()
        assert manager.validate() == ["Configuration not loaded"]
