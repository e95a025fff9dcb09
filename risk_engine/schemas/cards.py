"""
Card Schemas

CardData is the only model that ever carries a primary account number.
It is never persisted in plaintext: storage goes through
EncryptedCardData (ciphertext) or CardToken (last four digits only).
"""

from datetime import datetime, UTC
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.cards import normalize_card_number


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


class CardBrand(str, Enum):
    """Card brand detected from the number prefix."""
    VISA = "visa"
    MASTERCARD = "mastercard"
    AMEX = "amex"
    DISCOVER = "discover"
    UNKNOWN = "unknown"


class CardData(BaseModel):
    """
    Raw card details supplied by the caller.

    Shape only; number format, Luhn checksum, expiry and CVV rules are
    enforced by CardValidator so that failures surface as typed
    CardValidationError subclasses.
    """
    model_config = ConfigDict(frozen=True)

    number: str = Field(
        ...,
        description="Card number; spaces and dashes are stripped on input",
        max_length=32,
    )
    expiry_month: int = Field(
        ...,
        description="Expiry month (1-12)",
    )
    expiry_year: int = Field(
        ...,
        description="Four-digit expiry year",
    )
    cvv: str = Field(
        ...,
        description="Card verification value",
        max_length=8,
    )
    cardholder_name: Optional[str] = Field(
        default=None,
        description="Name printed on the card",
        max_length=128,
    )

    @field_validator("number")
    @classmethod
    def strip_separators(cls, v: str) -> str:
        """Strip spaces and dashes; the stored number is a digit string."""
        return normalize_card_number(v)

    def __repr__(self) -> str:
        return f"CardData(last_four={self.number[-4:]!r}, expiry={self.expiry_month:02d}/{self.expiry_year})"

    __str__ = __repr__


class EncryptedCardData(BaseModel):
    """
    Authenticated ciphertext of a serialized CardData.

    Decryption requires the key identified by ``key_id``.
    """
    model_config = ConfigDict(frozen=True)

    ciphertext: bytes = Field(
        ...,
        description="AES-GCM ciphertext including the authentication tag",
    )
    nonce: bytes = Field(
        ...,
        description="Per-encryption nonce (96 bits)",
    )
    key_id: str = Field(
        ...,
        description="Identifier of the key used to encrypt",
    )
    version: str = Field(
        default="1",
        description="Payload format version",
    )
    created_at: datetime = Field(
        default_factory=_utc_now,
        description="Encryption timestamp",
    )


class CardToken(BaseModel):
    """
    Non-reversible reference to a tokenized card.

    Created once per tokenization call. The only permitted change after
    creation is revocation (``is_active=False``).
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        description="Opaque unique token identifier",
    )
    last_four_digits: str = Field(
        ...,
        description="Last four characters of the source card number",
    )
    expiry_month: int
    expiry_year: int
    card_brand: CardBrand = Field(
        default=CardBrand.UNKNOWN,
        description="Brand detected at tokenization time",
    )
    created_at: datetime = Field(
        default_factory=_utc_now,
    )
    is_active: bool = Field(
        default=True,
        description="False once the token has been revoked",
    )

    def revoked(self) -> "CardToken":
        """Return the revoked copy of this token."""
        return self.model_copy(update={"is_active": False})


class CardValidationResult(BaseModel):
    """Outcome of a successful card validation."""
    valid: bool = True
    card_brand: CardBrand
    last_four_digits: str
