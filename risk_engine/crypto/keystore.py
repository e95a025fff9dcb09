"""
Key Storage

The symmetric key used for card encryption is owned by the process,
not by the cipher. Production deployments back this with a KMS/HSM;
the static store below is fed from settings.
"""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import ConfigurationError

logger = logging.getLogger("risk_engine.crypto")

VALID_KEY_LENGTHS = (16, 24, 32)


class KeyStore(ABC):
    """Provides the symmetric keys used by CardCipher."""

    @abstractmethod
    def current_key(self) -> tuple[str, bytes]:
        """Return (key_id, key) used for new encryptions."""

    @abstractmethod
    def get_key(self, key_id: str) -> Optional[bytes]:
        """Return the key with the given id, or None if unknown."""


class StaticKeyStore(KeyStore):
    """Keys held in memory, one of them marked current."""

    def __init__(self, keys: dict[str, bytes], current_key_id: str):
        """
        Initialize key store.

        Args:
            keys: Key id to raw AES key (16, 24 or 32 bytes)
            current_key_id: Key used for new encryptions

        Raises:
            ConfigurationError: if a key has an invalid length or the
                current key id is missing
        """
        for key_id, key in keys.items():
            if len(key) not in VALID_KEY_LENGTHS:
                raise ConfigurationError(
                    f"Key '{key_id}' must be 16, 24 or 32 bytes, got {len(key)}"
                )
        if current_key_id not in keys:
            raise ConfigurationError(f"Current key '{current_key_id}' is not in the key store")

        self._keys = dict(keys)
        self._current_key_id = current_key_id

    @classmethod
    def from_base64(cls, encoded_key: str, key_id: str = "k1") -> "StaticKeyStore":
        """Build a store from a single base64-encoded key."""
        try:
            key = base64.b64decode(encoded_key, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ConfigurationError(f"Encryption key is not valid base64: {e}") from e
        return cls({key_id: key}, key_id)

    @classmethod
    def generate(cls, key_id: str = "k1") -> "StaticKeyStore":
        """Build a store with a fresh random 256-bit key."""
        return cls({key_id: AESGCM.generate_key(bit_length=256)}, key_id)

    def current_key(self) -> tuple[str, bytes]:
        return self._current_key_id, self._keys[self._current_key_id]

    def get_key(self, key_id: str) -> Optional[bytes]:
        return self._keys.get(key_id)
