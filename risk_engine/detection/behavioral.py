"""
Behavioural Analysis

Reads the customer's behaviour profile:
- Unusual pattern flag
- Velocity violations (severity = min(violations / scale, 1))
- Geographic anomaly flag
"""

from typing import Optional

from ..datasources import BehaviorProvider
from ..policy import FraudRule, RiskPolicy
from ..schemas import FraudFactor, FraudFactorType, PaymentContext, UserBehavior
from .base import BaseAnalyzer


def behavioral_factors(behavior: UserBehavior, policy: RiskPolicy) -> list[FraudFactor]:
    rules = policy.behavioral
    factors = []

    if behavior.has_unusual_patterns:
        factors.append(FraudFactor(
            type=FraudFactorType.BEHAVIORAL_PATTERN,
            weight=rules.unusual_patterns.weight,
            severity=rules.unusual_patterns.severity,
            description="Unusual behavioral patterns detected",
        ))

    if behavior.velocity_violations > 0:
        factors.append(FraudFactor(
            type=FraudFactorType.BEHAVIORAL_PATTERN,
            weight=rules.velocity_violation_weight,
            severity=min(behavior.velocity_violations / rules.velocity_violation_scale, 1.0),
            description=f"Velocity violations: {behavior.velocity_violations}",
        ))

    if behavior.has_geographic_anomalies:
        factors.append(FraudFactor(
            type=FraudFactorType.BEHAVIORAL_PATTERN,
            weight=rules.geographic_anomalies.weight,
            severity=rules.geographic_anomalies.severity,
            description="Geographic anomalies in customer history",
        ))

    return factors


class BehavioralAnalyzer(BaseAnalyzer):

    rule = FraudRule.BEHAVIORAL_ANALYSIS

    def __init__(self, behavior: BehaviorProvider, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.behavior = behavior

    async def analyze(
        self,
        context: PaymentContext,
        policy: RiskPolicy,
    ) -> list[FraudFactor]:
        if not context.customer_id:
            return []

        profile = await self._fetch(
            self.behavior.get_behavior(context.customer_id),
            self.behavior.name,
        )
        if profile is None:
            return []
        return behavioral_factors(profile, policy)
