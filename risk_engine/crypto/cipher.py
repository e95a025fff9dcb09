"""
Card Encryption

AES-GCM authenticated encryption of serialized card data.

Each encryption uses:
- A fresh 96-bit nonce from the OS CSPRNG (never reused for a key)
- Associated data binding the payload version and key id, so a
  ciphertext cannot be replayed under a different version or key label
"""

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from ..errors import DecryptionFailed, EncryptionFailed
from ..metrics import metrics
from ..schemas import CardData, EncryptedCardData
from .keystore import KeyStore

logger = logging.getLogger("risk_engine.crypto")

NONCE_LENGTH = 12
PAYLOAD_VERSION = "1"


def _associated_data(version: str, key_id: str) -> bytes:
    return f"card:v{version}:{key_id}".encode()


class CardCipher:
    """Encrypts and decrypts CardData with keys from a KeyStore."""

    def __init__(self, keystore: KeyStore):
        self.keystore = keystore

    def encrypt(self, card: CardData) -> EncryptedCardData:
        """
        Encrypt card data.

        Raises:
            EncryptionFailed: on any serialization or cipher error
        """
        try:
            key_id, key = self.keystore.current_key()
            payload = card.model_dump_json().encode()
            nonce = os.urandom(NONCE_LENGTH)
            ciphertext = AESGCM(key).encrypt(
                nonce, payload, _associated_data(PAYLOAD_VERSION, key_id)
            )
        except Exception as e:
            metrics.crypto_failures.labels(operation="encrypt").inc()
            logger.error("Card encryption failed: %s", type(e).__name__)
            raise EncryptionFailed(f"Encryption failed: {type(e).__name__}") from e

        return EncryptedCardData(
            ciphertext=ciphertext,
            nonce=nonce,
            key_id=key_id,
            version=PAYLOAD_VERSION,
        )

    def decrypt(self, encrypted: EncryptedCardData) -> CardData:
        """
        Decrypt card data.

        Raises:
            DecryptionFailed: if the payload is empty or malformed, the key is
                unknown, or the authentication tag does not verify
        """
        if not encrypted.ciphertext or len(encrypted.nonce) != NONCE_LENGTH:
            metrics.crypto_failures.labels(operation="decrypt").inc()
            raise DecryptionFailed("Encrypted payload is empty or malformed")

        key = self.keystore.get_key(encrypted.key_id)
        if key is None:
            metrics.crypto_failures.labels(operation="decrypt").inc()
            raise DecryptionFailed(f"Unknown key id '{encrypted.key_id}'")

        try:
            plaintext = AESGCM(key).decrypt(
                encrypted.nonce,
                encrypted.ciphertext,
                _associated_data(encrypted.version, encrypted.key_id),
            )
            return CardData.model_validate_json(plaintext)
        except InvalidTag as e:
            metrics.crypto_failures.labels(operation="decrypt").inc()
            logger.warning("Card decryption failed authentication (key_id=%s)", encrypted.key_id)
            raise DecryptionFailed("Authentication tag check failed") from e
        except (ValidationError, ValueError) as e:
            metrics.crypto_failures.labels(operation="decrypt").inc()
            raise DecryptionFailed("Decrypted payload is not valid card data") from e
