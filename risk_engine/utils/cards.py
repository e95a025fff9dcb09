"""
Card number helpers shared by validation, logging and storage.
"""


def normalize_card_number(card_number: str) -> str:
    """Strip spaces and dashes from a card number."""
    return card_number.replace(" ", "").replace("-", "")


def mask_card_number(card_number: str) -> str:
    """
    Mask a card number, showing only the last 4 digits.

    Examples:
        4242424242424242 -> ************4242
        4242 4242 4242 4242 -> ************4242
    """
    digits = "".join(c for c in card_number if c.isdigit())
    if len(digits) <= 4:
        return "*" * len(digits)
    return "*" * (len(digits) - 4) + digits[-4:]
