"""
Risk Scoring

Aggregates fraud factors into a 0-100 score:

    score = clamp(sum(weight * severity * 100), 0, 100)

The level is read from the threshold table of the active snapshot.
Scoring never raises: an empty factor list is a valid low-risk result.
Adding a factor with positive weight and severity can only raise the
score, so the level is monotonic in the factor set.
"""

from ..policy import ThresholdTable
from ..schemas import FraudFactor, FraudRiskLevel

MIN_SCORE = 0.0
MAX_SCORE = 100.0


class RiskScorer:
    """Stateless score aggregation."""

    @staticmethod
    def total(factors: list[FraudFactor]) -> float:
        score = sum(factor.contribution for factor in factors)
        return min(max(score, MIN_SCORE), MAX_SCORE)

    def score(
        self,
        factors: list[FraudFactor],
        thresholds: ThresholdTable,
    ) -> tuple[float, FraudRiskLevel]:
        """
        Score a set of factors.

        Args:
            factors: Factors produced by the analyzers (may be empty)
            thresholds: Table from the snapshot used for this request

        Returns:
            Tuple of (score, level)
        """
        value = round(self.total(factors), 4)
        return value, thresholds.level_for_score(value)
