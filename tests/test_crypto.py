"""
Card Encryption Tests

Tests for AES-GCM encryption, tamper detection and key handling.
"""

import base64

import pytest

from risk_engine.crypto import CardCipher, StaticKeyStore
from risk_engine.errors import ConfigurationError, DecryptionFailed

from .conftest import make_card


@pytest.fixture
def cipher() -> CardCipher:
    return CardCipher(StaticKeyStore.generate())


class TestCardCipher:

    def test_round_trip(self, cipher):
        card = make_card(cardholder_name="Zoë Ångström")
        assert cipher.decrypt(cipher.encrypt(card)) == card

    def test_ciphertext_does_not_contain_number(self, cipher):
        card = make_card()
        encrypted = cipher.encrypt(card)
        assert card.number.encode() not in encrypted.ciphertext

    def test_nonce_is_fresh_per_call(self, cipher):
        card = make_card()
        nonces = {cipher.encrypt(card).nonce for _ in range(50)}

        assert len(nonces) == 50
        assert all(len(n) == 12 for n in nonces)

    def test_records_key_id(self):
        cipher = CardCipher(StaticKeyStore.generate(key_id="2026-q2"))
        assert cipher.encrypt(make_card()).key_id == "2026-q2"

    @pytest.mark.parametrize("position", [0, 7, -1])
    def test_tampered_ciphertext_rejected(self, cipher, position):
        encrypted = cipher.encrypt(make_card())
        data = bytearray(encrypted.ciphertext)
        data[position] ^= 0x01
        tampered = encrypted.model_copy(update={"ciphertext": bytes(data)})

        with pytest.raises(DecryptionFailed):
            cipher.decrypt(tampered)

    def test_tampered_version_rejected(self, cipher):
        """Version is bound as associated data."""
        encrypted = cipher.encrypt(make_card())
        with pytest.raises(DecryptionFailed):
            cipher.decrypt(encrypted.model_copy(update={"version": "2"}))

    def test_wrong_key_rejected(self, cipher):
        encrypted = cipher.encrypt(make_card())
        other = CardCipher(StaticKeyStore.generate())

        with pytest.raises(DecryptionFailed):
            other.decrypt(encrypted)

    def test_unknown_key_id_rejected(self, cipher):
        encrypted = cipher.encrypt(make_card())
        with pytest.raises(DecryptionFailed):
            cipher.decrypt(encrypted.model_copy(update={"key_id": "retired"}))

    def test_empty_payload_rejected(self, cipher):
        encrypted = cipher.encrypt(make_card())
        with pytest.raises(DecryptionFailed):
            cipher.decrypt(encrypted.model_copy(update={"ciphertext": b""}))

    def test_bad_nonce_length_rejected(self, cipher):
        encrypted = cipher.encrypt(make_card())
        with pytest.raises(DecryptionFailed):
            cipher.decrypt(encrypted.model_copy(update={"nonce": b"short"}))


class TestKeyStore:

    def test_from_base64(self):
        key = bytes(range(32))
        store = StaticKeyStore.from_base64(base64.b64encode(key).decode(), key_id="k9")
        assert store.current_key() == ("k9", key)
        assert store.get_key("k9") == key
        assert store.get_key("k1") is None

    def test_invalid_base64(self):
        with pytest.raises(ConfigurationError):
            StaticKeyStore.from_base64("not base64!!")

    @pytest.mark.parametrize("length", [0, 15, 31, 64])
    def test_invalid_key_length(self, length):
        with pytest.raises(ConfigurationError):
            StaticKeyStore({"k1": b"x" * length}, "k1")

    def test_current_key_must_exist(self):
        with pytest.raises(ConfigurationError):
            StaticKeyStore({"k1": b"x" * 32}, "k2")
