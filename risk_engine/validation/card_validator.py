"""
Card Validation

Checks run in a fixed order and the first failing check wins:
1. Number format (13-19 digits after stripping spaces/dashes)
2. Luhn checksum
3. Expiry date (not in the past, month 1-12)
4. CVV length for the detected brand (amex=4, others=3)
5. Known-fraud deny-list lookup

Checks 1-4 are pure functions of the card and the current date.
Check 5 consults the injected deny-list collaborator.
"""

import logging
import re
from datetime import datetime, UTC
from typing import Callable, Optional

from ..datasources import DenyList, NullDataSource
from ..errors import (
    DependencyUnavailable,
    FraudulentCard,
    InvalidCardNumber,
    InvalidCVV,
    InvalidExpiryDate,
)
from ..metrics import metrics
from ..schemas import CardBrand, CardData, CardValidationResult
from ..utils.cards import mask_card_number, normalize_card_number

logger = logging.getLogger("risk_engine.validation")

CARD_NUMBER_PATTERN = re.compile(r"[0-9]{13,19}")
CVV_PATTERN = re.compile(r"[0-9]{3,4}")

AMEX_CVV_LENGTH = 4
DEFAULT_CVV_LENGTH = 3


def _utc_now() -> datetime:
    return datetime.now(UTC)


def luhn_checksum_valid(number: str) -> bool:
    """
    Validate a digit string with the Luhn algorithm.

    Every second digit from the rightmost is doubled (subtracting 9 when
    the result exceeds 9); the number is valid when the total is a
    multiple of 10.
    """
    total = 0
    for index, char in enumerate(reversed(number)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def detect_card_brand(number: str) -> CardBrand:
    """
    Detect the card brand from the number prefix.

    Amex prefixes (34/37) never collide with the single-digit Visa,
    Mastercard or Discover prefixes, so check order is irrelevant.
    """
    clean = normalize_card_number(number)
    if clean.startswith("4"):
        return CardBrand.VISA
    if clean.startswith("5"):
        return CardBrand.MASTERCARD
    if clean.startswith(("34", "37")):
        return CardBrand.AMEX
    if clean.startswith("6"):
        return CardBrand.DISCOVER
    return CardBrand.UNKNOWN


def expected_cvv_length(brand: CardBrand) -> int:
    return AMEX_CVV_LENGTH if brand == CardBrand.AMEX else DEFAULT_CVV_LENGTH


class CardValidator:
    """
    Validates card data before it can be tokenized, encrypted or scored.

    Stateless apart from its collaborators; safe to share between
    concurrent requests.
    """

    def __init__(
        self,
        deny_list: Optional[DenyList] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Initialize validator.

        Args:
            deny_list: Known-fraud card lookup (defaults to an empty list)
            clock: Returns the current time; injected for tests
        """
        self.deny_list = deny_list or NullDataSource()
        self.clock = clock

    def check_number(self, number: str) -> str:
        """Validate format and checksum. Returns the normalized number."""
        clean = normalize_card_number(number)
        if not CARD_NUMBER_PATTERN.fullmatch(clean):
            raise InvalidCardNumber("Card number must contain 13 to 19 digits")
        if not luhn_checksum_valid(clean):
            raise InvalidCardNumber("Card number failed checksum validation")
        return clean

    def check_expiry(self, month: int, year: int) -> None:
        now = self.clock()
        if year < now.year:
            raise InvalidExpiryDate("Card has expired")
        if year == now.year and month < now.month:
            raise InvalidExpiryDate("Card has expired")
        if not 1 <= month <= 12:
            raise InvalidExpiryDate("Expiry month must be between 1 and 12")

    def check_cvv(self, cvv: str, brand: CardBrand) -> None:
        length = expected_cvv_length(brand)
        if not CVV_PATTERN.fullmatch(cvv) or len(cvv) != length:
            raise InvalidCVV(f"CVV must be {length} digits for {brand.value} cards")

    def check_card(self, card: CardData) -> CardBrand:
        """
        Run the structural checks (number, checksum, expiry, CVV).

        Does not consult the deny-list.

        Returns:
            Detected card brand

        Raises:
            InvalidCardNumber, InvalidExpiryDate, InvalidCVV
        """
        try:
            clean = self.check_number(card.number)
            brand = detect_card_brand(clean)
            self.check_expiry(card.expiry_month, card.expiry_year)
            self.check_cvv(card.cvv, brand)
        except (InvalidCardNumber, InvalidExpiryDate, InvalidCVV) as e:
            metrics.card_validation_failures.labels(reason=e.code).inc()
            logger.debug("Card %s rejected: %s", mask_card_number(card.number), e.code)
            raise
        return brand

    async def validate(self, card: CardData) -> CardValidationResult:
        """
        Run every check including the known-fraud lookup.

        Raises:
            InvalidCardNumber, InvalidExpiryDate, InvalidCVV, FraudulentCard,
            DependencyUnavailable if the deny-list cannot be consulted
        """
        brand = self.check_card(card)
        clean = normalize_card_number(card.number)

        try:
            denied = await self.deny_list.is_card_denied(clean)
        except Exception as e:
            metrics.dependency_failures.labels(dependency=self.deny_list.name).inc()
            raise DependencyUnavailable(self.deny_list.name, f"Deny-list lookup failed: {e}") from e

        if denied:
            metrics.card_validation_failures.labels(reason=FraudulentCard.code).inc()
            logger.warning("Deny-listed card presented: %s", mask_card_number(clean))
            raise FraudulentCard()

        return CardValidationResult(
            card_brand=brand,
            last_four_digits=clean[-4:],
        )
