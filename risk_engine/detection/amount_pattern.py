"""
Amount Pattern Analysis

Card-testing heuristics on the payment amount:
- Unusual: amount >= max_amount or amount < min_amount
- Round: amount given with an explicit all-zero fractional part
  (Decimal("50.00") or Decimal("50.0"); Decimal("50") is not round)
"""

from decimal import Decimal

from ..policy import FraudRule, RiskPolicy
from ..schemas import FraudFactor, FraudFactorType, PaymentContext
from .base import BaseAnalyzer


def is_round_amount(amount: Decimal) -> bool:
    exponent = amount.as_tuple().exponent
    return isinstance(exponent, int) and exponent < 0 and amount == amount.to_integral_value()


class AmountPatternAnalyzer(BaseAnalyzer):
    """No collaborators; a pure function of the amount."""

    rule = FraudRule.AMOUNT_PATTERN_ANALYSIS

    async def analyze(
        self,
        context: PaymentContext,
        policy: RiskPolicy,
    ) -> list[FraudFactor]:
        rules = policy.amount_pattern
        amount = context.amount
        factors = []

        if amount >= rules.max_amount or amount < rules.min_amount:
            factors.append(FraudFactor(
                type=FraudFactorType.AMOUNT_PATTERN,
                weight=rules.unusual_amount.weight,
                severity=rules.unusual_amount.severity,
                description=f"Unusual transaction amount: {amount} {context.currency}",
            ))

        if is_round_amount(amount):
            factors.append(FraudFactor(
                type=FraudFactorType.AMOUNT_PATTERN,
                weight=rules.round_amount.weight,
                severity=rules.round_amount.severity,
                description=f"Round amount detected: {amount} {context.currency}",
            ))

        return factors
