# Utilities
from .cards import mask_card_number, normalize_card_number
from .logger import configure_logging

__all__ = ["configure_logging", "mask_card_number", "normalize_card_number"]
