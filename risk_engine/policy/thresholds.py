"""
Risk Level Thresholds

Score-to-level mapping, one table per sensitivity profile:

| Sensitivity | low | medium | high | critical |
|-------------|-----|--------|------|----------|
| low         | 30  | 60     | 80   | 90       |
| medium      | 20  | 50     | 70   | 85       |
| high        | 10  | 40     | 60   | 80       |

Level assignment uses the medium, high and critical cut-offs; the low
value is the upper bound of the "clearly low" band and is reported only.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..schemas import FraudRiskLevel, FraudSensitivity


class ThresholdTable(BaseModel):
    """Cut-off scores for one sensitivity profile."""
    model_config = ConfigDict(frozen=True)

    low: float = Field(..., ge=0.0, le=100.0)
    medium: float = Field(..., ge=0.0, le=100.0)
    high: float = Field(..., ge=0.0, le=100.0)
    critical: float = Field(..., ge=0.0, le=100.0)

    @model_validator(mode="after")
    def validate_ascending(self) -> "ThresholdTable":
        """Cut-offs must be strictly ascending so level is monotonic in score."""
        if not self.low < self.medium < self.high < self.critical:
            raise ValueError(
                "Thresholds must be strictly ascending: low < medium < high < critical"
            )
        return self

    def level_for_score(self, score: float) -> FraudRiskLevel:
        if score >= self.critical:
            return FraudRiskLevel.CRITICAL
        if score >= self.high:
            return FraudRiskLevel.HIGH
        if score >= self.medium:
            return FraudRiskLevel.MEDIUM
        return FraudRiskLevel.LOW


DEFAULT_THRESHOLDS: dict[FraudSensitivity, ThresholdTable] = {
    FraudSensitivity.LOW: ThresholdTable(low=30, medium=60, high=80, critical=90),
    FraudSensitivity.MEDIUM: ThresholdTable(low=20, medium=50, high=70, critical=85),
    FraudSensitivity.HIGH: ThresholdTable(low=10, medium=40, high=60, critical=80),
}
