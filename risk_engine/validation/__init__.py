# Card Validation Module
from .card_validator import (
    CardValidator,
    luhn_checksum_valid,
    detect_card_brand,
    expected_cvv_length,
)

__all__ = [
    "CardValidator",
    "luhn_checksum_valid",
    "detect_card_brand",
    "expected_cvv_length",
]
