"""
Velocity Analysis

Counts the customer's transactions in a recent window:
- count > max_transactions: severity = min(count / scale, 1)
- total amount > max_total_amount: severity = min(total / scale, 1)

Payments without a customer id have no history to compare against.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from ..datasources import TransactionHistoryProvider
from ..policy import FraudRule, RiskPolicy
from ..schemas import FraudFactor, FraudFactorType, PaymentContext
from .base import BaseAnalyzer


class VelocityAnalyzer(BaseAnalyzer):
    """Flags bursts of transactions or spend for one customer."""

    rule = FraudRule.VELOCITY_CHECK

    def __init__(
        self,
        history: TransactionHistoryProvider,
        timeout: Optional[float] = None,
    ):
        super().__init__(timeout)
        self.history = history

    async def analyze(
        self,
        context: PaymentContext,
        policy: RiskPolicy,
    ) -> list[FraudFactor]:
        if not context.customer_id:
            return []

        limits = policy.velocity
        since = context.timestamp - timedelta(minutes=limits.window_minutes)
        transactions = await self._fetch(
            self.history.recent_transactions(context.customer_id, since),
            self.history.name,
        )

        factors = []
        count = len(transactions)
        if count > limits.max_transactions:
            factors.append(FraudFactor(
                type=FraudFactorType.VELOCITY,
                weight=limits.count_weight,
                severity=min(count / limits.count_severity_scale, 1.0),
                description=f"High transaction velocity: {count} transactions in {limits.window_minutes} minutes",
            ))

        total = sum((t.amount for t in transactions), Decimal("0"))
        if total > limits.max_total_amount:
            factors.append(FraudFactor(
                type=FraudFactorType.VELOCITY,
                weight=limits.amount_weight,
                severity=float(min(total / limits.amount_severity_scale, Decimal("1"))),
                description=f"High amount velocity: {total} in {limits.window_minutes} minutes",
            ))

        return factors
