"""AES-256-GCM encryption for LoRaWAN key material in configuration files.

Session and application keys grant full access to a device's traffic, so
they can be stored in rak811.yaml as ``encrypted:`` values instead of
plain hex.
"""

import base64
import binascii
import os
import secrets
from pathlib import Path
from typing import Optional, Dict, Any, Iterable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from rak811.core.exceptions import Rak811Error

NONCE_SIZE = 12
KEY_SIZE = 32


class ConfigEncryptionError(Rak811Error):
    """Exception raised for encryption/decryption errors."""
    pass


class ConfigEncryption:
    """AES-256-GCM encryption for sensitive configuration values.

    Provides encryption and decryption with automatic key generation and
    storage. Can be disabled, in which case values pass through unchanged.

    Example:
        >>> encryption = ConfigEncryption(enabled=True)
        >>> encrypted = encryption.encrypt_value("00112233445566778899AABBCCDDEEFF")
        >>> assert encrypted.startswith("encrypted:")
        >>> encryption.decrypt_value(encrypted)
        '00112233445566778899AABBCCDDEEFF'
    """

    ENCRYPTED_PREFIX = "encrypted:"

    DEFAULT_KEY_PATH = Path.home() / ".rak811" / ".key"

    DEFAULT_SENSITIVE_KEYS = ("app_key", "nwks_key", "apps_key")

    def __init__(self,
                 enabled: bool = True,
                 key_path: Optional[Path] = None):
        """Initialize encryption handler.

        Args:
            enabled: Whether encryption is enabled. If False, encrypt/decrypt
                    operations pass through values unchanged.
            key_path: Path to encryption key file (default ~/.rak811/.key).

        Raises:
            ConfigEncryptionError: If key file cannot be accessed or created.
        """
        self.enabled = enabled
        self.key_path = Path(key_path) if key_path else self.DEFAULT_KEY_PATH
        self._key: Optional[bytes] = None

        if self.enabled:
            self._ensure_key()

    def _ensure_key(self) -> None:
        """Load the key file, generating and saving a new key if missing."""
        if self.key_path.exists():
            self._key = self._load_key()
        else:
            self._key = secrets.token_bytes(KEY_SIZE)
            self._save_key(self._key)

    def _load_key(self) -> bytes:
        try:
            with open(self.key_path, 'rb') as f:
                key = base64.b64decode(f.read(), validate=True)
        except (OSError, binascii.Error) as e:
            raise ConfigEncryptionError(f"Failed to load encryption key: {e}")

        if len(key) != KEY_SIZE:
            raise ConfigEncryptionError(
                f"Invalid key length: expected {KEY_SIZE} bytes, got {len(key)}"
            )
        return key

    def _save_key(self, key: bytes) -> None:
        """Save key as base64 with 600 permissions."""
        try:
            self.key_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.key_path, 'wb') as f:
                f.write(base64.b64encode(key))
        except OSError as e:
            raise ConfigEncryptionError(f"Failed to save encryption key: {e}")

        try:
            os.chmod(self.key_path, 0o600)
        except (OSError, NotImplementedError):
            # Windows relies on NTFS permissions instead
            pass

    def encrypt_value(self, plaintext: str) -> str:
        """Encrypt a plaintext value.

        Args:
            plaintext: Plain text string to encrypt.

        Returns:
            "encrypted:BASE64_DATA" when enabled, plaintext otherwise.
        """
        if not self.enabled or not plaintext:
            return plaintext

        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = AESGCM(self._key).encrypt(nonce, plaintext.encode('utf-8'), None)
        encoded = base64.b64encode(nonce + ciphertext).decode('ascii')
        return f"{self.ENCRYPTED_PREFIX}{encoded}"

    def decrypt_value(self, encrypted: str) -> str:
        """Decrypt an encrypted value.

        Args:
            encrypted: Value in format "encrypted:BASE64_DATA".

        Returns:
            Decrypted plaintext, or the value unchanged when encryption is
            disabled or the value is not encrypted.

        Raises:
            ConfigEncryptionError: If decryption fails (wrong key or tampered data).
        """
        if not self.enabled or not self.is_encrypted(encrypted):
            return encrypted

        if self._key is None:
            raise ConfigEncryptionError(
                "Encryption key not loaded. Cannot decrypt sensitive fields."
            )

        try:
            encrypted_data = base64.b64decode(encrypted[len(self.ENCRYPTED_PREFIX):], validate=True)
            nonce, ciphertext = encrypted_data[:NONCE_SIZE], encrypted_data[NONCE_SIZE:]
            return AESGCM(self._key).decrypt(nonce, ciphertext, None).decode('utf-8')
        except (binascii.Error, InvalidTag, ValueError) as e:
            raise ConfigEncryptionError(f"Failed to decrypt value: {e!r}")

    def is_encrypted(self, value: Any) -> bool:
        """Check if a value carries the "encrypted:" prefix.

        Example:
            >>> encryption = ConfigEncryption(enabled=False)
            >>> encryption.is_encrypted("encrypted:abc123")
            True
        """
        return isinstance(value, str) and value.startswith(self.ENCRYPTED_PREFIX)

    def decrypt_sensitive_fields(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Decrypt all encrypted values in a configuration dictionary.

        Example:
            >>> config = {"lorawan": {"app_key": "encrypted:..."}}
            >>> decrypted = encryption.decrypt_sensitive_fields(config)
        """
        if not self.enabled:
            return config_dict
        return self._decrypt_dict(config_dict)

    def _decrypt_dict(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: self._decrypt_dict(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._decrypt_dict(item) for item in data]
        elif self.is_encrypted(data):
            return self.decrypt_value(data)
        return data

    def encrypt_sensitive_fields(self,
                                 config_dict: Dict[str, Any],
                                 sensitive_keys: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """Encrypt sensitive fields in a configuration dictionary.

        Args:
            config_dict: Configuration dictionary to encrypt.
            sensitive_keys: Field names to encrypt (default: LoRaWAN keys).

        Returns:
            Configuration dictionary with encrypted sensitive fields.
        """
        if not self.enabled:
            return config_dict

        keys = set(sensitive_keys) if sensitive_keys is not None else set(self.DEFAULT_SENSITIVE_KEYS)
        return self._encrypt_dict(config_dict, keys)

    def _encrypt_dict(self, data: Any, sensitive_keys: set) -> Any:
        if isinstance(data, dict):
            result = {}
            for key, value in data.items():
                if key in sensitive_keys and isinstance(value, str) and not self.is_encrypted(value):
                    result[key] = self.encrypt_value(value)
                else:
                    result[key] = self._encrypt_dict(value, sensitive_keys)
            return result
        elif isinstance(data, list):
            return [self._encrypt_dict(item, sensitive_keys) for item in data]
        return data
