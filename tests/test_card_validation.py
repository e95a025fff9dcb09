"""
Card Validation Tests

Tests for number format, Luhn, brand detection, expiry, CVV and the
known-fraud lookup, including the fixed check order.
"""

from datetime import datetime, UTC

import pytest

from risk_engine.datasources import InMemoryDenyList, NullDataSource
from risk_engine.errors import (
    DependencyUnavailable,
    FraudulentCard,
    InvalidCardNumber,
    InvalidCVV,
    InvalidExpiryDate,
)
from risk_engine.schemas import CardBrand
from risk_engine.utils import mask_card_number, normalize_card_number
from risk_engine.validation import CardValidator, detect_card_brand, luhn_checksum_valid

from .conftest import AMEX, DENY_LISTED, VISA, make_card


class TestLuhn:

    @pytest.mark.parametrize("number", [
        "4111111111111111",
        "4242424242424242",
        "378282246310005",
        "5105105105105100",
        "6011000990139424",
        "4000000000000002",
    ])
    def test_known_valid_vectors(self, number):
        assert luhn_checksum_valid(number)

    def test_single_digit_change_fails(self):
        assert not luhn_checksum_valid("4111111111111112")


class TestBrandDetection:

    @pytest.mark.parametrize("number, brand", [
        ("4242424242424242", CardBrand.VISA),
        ("5105105105105100", CardBrand.MASTERCARD),
        ("378282246310005", CardBrand.AMEX),
        ("341111111111111", CardBrand.AMEX),
        ("6011000990139424", CardBrand.DISCOVER),
        ("3530111333300000", CardBrand.UNKNOWN),
    ])
    def test_prefixes(self, number, brand):
        assert detect_card_brand(number) == brand

    def test_ignores_separators(self):
        assert detect_card_brand("4242-4242 4242 4242") == CardBrand.VISA


class TestCardValidator:

    @pytest.fixture
    def validator(self, fixed_clock):
        return CardValidator(deny_list=InMemoryDenyList(cards=[DENY_LISTED]), clock=fixed_clock)

    @pytest.mark.asyncio
    async def test_valid_card(self, validator):
        """Test that a valid card returns brand and last four digits."""
        result = await validator.validate(make_card("4242 4242 4242 4242"))

        assert result.valid
        assert result.card_brand == CardBrand.VISA
        assert result.last_four_digits == "4242"

    @pytest.mark.asyncio
    async def test_valid_amex_with_four_digit_cvv(self, validator):
        result = await validator.validate(make_card(AMEX, cvv="1234"))
        assert result.card_brand == CardBrand.AMEX

    @pytest.mark.parametrize("number", [
        "1234",
        "424242424242",            # 12 digits
        "42424242424242424242",    # 20 digits
        "4242abcd42424242",
        "",
    ])
    def test_bad_format_rejected(self, validator, number):
        with pytest.raises(InvalidCardNumber):
            validator.check_card(make_card(number))

    def test_luhn_failure_rejected(self, validator):
        with pytest.raises(InvalidCardNumber):
            validator.check_card(make_card("4111111111111112"))

    def test_expired_year(self, validator):
        with pytest.raises(InvalidExpiryDate):
            validator.check_card(make_card(expiry_month=12, expiry_year=2025))

    def test_expired_month_in_current_year(self, validator):
        # Fixed clock is June 2026
        with pytest.raises(InvalidExpiryDate):
            validator.check_card(make_card(expiry_month=5, expiry_year=2026))

    def test_current_month_is_valid(self, validator):
        assert validator.check_card(make_card(expiry_month=6, expiry_year=2026)) == CardBrand.VISA

    @pytest.mark.parametrize("month", [0, 13])
    def test_month_out_of_range(self, validator, month):
        with pytest.raises(InvalidExpiryDate):
            validator.check_card(make_card(expiry_month=month, expiry_year=2030))

    @pytest.mark.parametrize("number, cvv", [
        (VISA, "1234"),
        (VISA, "12"),
        (VISA, "12a"),
        (AMEX, "123"),
    ])
    def test_cvv_length_by_brand(self, validator, number, cvv):
        with pytest.raises(InvalidCVV):
            validator.check_card(make_card(number, cvv=cvv))

    def test_number_checked_before_expiry_and_cvv(self, validator):
        """First failing check wins: number before expiry and CVV."""
        card = make_card("4111111111111112", cvv="1", expiry_month=1, expiry_year=2001)
        with pytest.raises(InvalidCardNumber):
            validator.check_card(card)

    def test_expiry_checked_before_cvv(self, validator):
        card = make_card(VISA, cvv="1", expiry_month=1, expiry_year=2001)
        with pytest.raises(InvalidExpiryDate):
            validator.check_card(card)

    @pytest.mark.asyncio
    async def test_deny_listed_card(self, validator):
        with pytest.raises(FraudulentCard):
            await validator.validate(make_card(DENY_LISTED))

    @pytest.mark.asyncio
    async def test_structural_failure_wins_over_deny_list(self, fixed_clock):
        validator = CardValidator(deny_list=InMemoryDenyList(cards=[DENY_LISTED]), clock=fixed_clock)
        with pytest.raises(InvalidCVV):
            await validator.validate(make_card(DENY_LISTED, cvv="12"))

    @pytest.mark.asyncio
    async def test_deny_list_outage_is_dependency_error(self, fixed_clock):
        class BrokenDenyList(NullDataSource):
            name = "broken_deny_list"

            async def is_card_denied(self, card_number):
                raise ConnectionError("refused")

        validator = CardValidator(deny_list=BrokenDenyList(), clock=fixed_clock)
        with pytest.raises(DependencyUnavailable) as excinfo:
            await validator.validate(make_card())

        assert excinfo.value.dependency == "broken_deny_list"
        assert excinfo.value.retryable

    def test_uses_real_clock_by_default(self):
        validator = CardValidator()
        next_year = datetime.now(UTC).year + 1
        assert validator.check_card(make_card(expiry_year=next_year)) == CardBrand.VISA


class TestCardHelpers:

    def test_normalize(self):
        assert normalize_card_number("4242-4242 4242 4242") == "4242424242424242"

    def test_mask_keeps_last_four(self):
        assert mask_card_number("4242424242424242") == "************4242"

    def test_card_number_stored_without_separators(self):
        card = make_card("4242-4242 4242 424-2")

        assert card.number == "4242424242424242"
        assert card.number[-4:] == "4242"

    def test_card_repr_hides_number(self):
        card = make_card()
        assert VISA not in repr(card)
        assert "4242" in repr(card)
