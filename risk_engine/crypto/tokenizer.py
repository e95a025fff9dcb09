"""
Card Tokenization

tokenize():
1. Full card validation (errors propagate unchanged)
2. Encrypt the card
3. Issue an opaque UUID-based token id
4. Store token + ciphertext in the vault

The token id is random, so it carries no information about the card.
"""

import logging
import secrets
import string
from uuid import uuid4

from ..errors import TokenStorageFailed
from ..metrics import metrics
from ..schemas import CardData, CardToken
from ..utils.cards import normalize_card_number
from ..validation import CardValidator
from .cipher import CardCipher
from .vault import TokenVault

logger = logging.getLogger("risk_engine.tokenizer")

TOKEN_PREFIX = "tok_"
SECURE_TOKEN_ALPHABET = string.ascii_letters + string.digits

# Shortest run of card digits that may not appear in a token id
LEAK_WINDOW = 5


def generate_secure_token(length: int = 32) -> str:
    """Return a random alphanumeric string from the system CSPRNG."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(SECURE_TOKEN_ALPHABET) for _ in range(length))


def token_leaks_number(token_id: str, card_number: str) -> bool:
    """True if any run of LEAK_WINDOW card digits appears in the token id."""
    clean = normalize_card_number(card_number)
    return any(
        clean[i:i + LEAK_WINDOW] in token_id
        for i in range(len(clean) - LEAK_WINDOW + 1)
    )


def new_token_id(card_number: str) -> str:
    while True:
        candidate = f"{TOKEN_PREFIX}{uuid4().hex}"
        if not token_leaks_number(candidate, card_number):
            return candidate


class CardTokenizer:
    """Issues and revokes card tokens."""

    def __init__(
        self,
        validator: CardValidator,
        cipher: CardCipher,
        vault: TokenVault,
    ):
        self.validator = validator
        self.cipher = cipher
        self.vault = vault

    async def tokenize(self, card: CardData) -> CardToken:
        """
        Tokenize a card.

        Raises:
            CardValidationError subclasses: card failed validation
            EncryptionFailed: card could not be encrypted
            TokenStorageFailed: vault write failed
            DependencyUnavailable: deny-list could not be consulted
        """
        result = await self.validator.validate(card)
        encrypted = self.cipher.encrypt(card)

        token = CardToken(
            id=new_token_id(card.number),
            last_four_digits=result.last_four_digits,
            expiry_month=card.expiry_month,
            expiry_year=card.expiry_year,
            card_brand=result.card_brand,
        )

        try:
            await self.vault.store(token, encrypted)
        except Exception as e:
            logger.error("Token vault write failed for %s: %s", token.id, e)
            raise TokenStorageFailed(f"Could not store token: {type(e).__name__}") from e

        metrics.tokenizations_total.inc()
        logger.info(
            "Issued token %s for %s card ending %s",
            token.id,
            token.card_brand.value,
            token.last_four_digits,
        )
        return token

    async def revoke(self, token_id: str) -> CardToken:
        """
        Revoke a token.

        Raises:
            TokenNotFound: unknown token id
        """
        token = await self.vault.revoke(token_id)
        logger.info("Revoked token %s", token_id)
        return token
