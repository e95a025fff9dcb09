"""
Card Pattern Analysis

Flags:
1. Card on the known-fraud deny-list (weight 1.0, severity 1.0 by default)
2. Suspicious digit sequences: a run of repeated digits, or a configured
   substring such as "1234"
"""

import re
from typing import Optional

from ..datasources import DenyList
from ..policy import CardPatternPolicy, FraudRule, RiskPolicy
from ..schemas import FraudFactor, FraudFactorType, PaymentContext
from ..utils.cards import normalize_card_number
from .base import BaseAnalyzer


def has_suspicious_sequence(number: str, rules: CardPatternPolicy) -> bool:
    clean = normalize_card_number(number)
    repeated = re.compile(r"(\d)\1{%d,}" % (rules.min_repeated_digits - 1))
    if repeated.search(clean):
        return True
    return any(seq in clean for seq in rules.suspicious_sequences)


class CardPatternAnalyzer(BaseAnalyzer):

    rule = FraudRule.CARD_PATTERN_ANALYSIS

    def __init__(self, deny_list: DenyList, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.deny_list = deny_list

    async def analyze(
        self,
        context: PaymentContext,
        policy: RiskPolicy,
    ) -> list[FraudFactor]:
        card = context.card_data
        if card is None:
            return []

        rules = policy.card_pattern
        factors = []

        denied = await self._fetch(
            self.deny_list.is_card_denied(normalize_card_number(card.number)),
            self.deny_list.name,
        )
        if denied:
            factors.append(FraudFactor(
                type=FraudFactorType.CARD_PATTERN,
                weight=rules.deny_listed.weight,
                severity=rules.deny_listed.severity,
                description="Card is known to be fraudulent",
            ))

        if has_suspicious_sequence(card.number, rules):
            factors.append(FraudFactor(
                type=FraudFactorType.CARD_PATTERN,
                weight=rules.suspicious_pattern.weight,
                severity=rules.suspicious_pattern.severity,
                description="Suspicious card number pattern detected",
            ))

        return factors
