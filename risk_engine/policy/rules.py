"""
Risk Policy

Factor weights, severities and analyzer limits. Nothing here is derived
from real fraud data; these are placeholder values meant to be tuned
through config/risk_policy.yaml without code changes.

Policy sections map one-to-one to analyzers:
- velocity: transaction count and amount in a recent window
- geolocation: impossible travel and high-risk countries
- device: device reputation flags
- behavioral: customer behaviour profile flags
- card_pattern: deny-list hits and suspicious digit sequences
- amount_pattern: unusual and round amounts
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..schemas import FraudSensitivity
from .thresholds import DEFAULT_THRESHOLDS, ThresholdTable


class FraudRule(str, Enum):
    """Analyzer that can be switched on or off in the configuration."""
    VELOCITY_CHECK = "velocity_check"
    GEOLOCATION_CHECK = "geolocation_check"
    DEVICE_FINGERPRINTING = "device_fingerprinting"
    BEHAVIORAL_ANALYSIS = "behavioral_analysis"
    CARD_PATTERN_ANALYSIS = "card_pattern_analysis"
    AMOUNT_PATTERN_ANALYSIS = "amount_pattern_analysis"


class FactorRule(BaseModel):
    """Fixed weight and severity of a flag-style factor."""
    model_config = ConfigDict(frozen=True)

    weight: float = Field(..., ge=0.0, le=1.0)
    severity: float = Field(..., ge=0.0, le=1.0)


# High-risk countries for fraud (example list - adjust based on data)
HIGH_RISK_COUNTRIES = ("GH", "ID", "NG", "PH", "RU", "UA", "VN")


class VelocityPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    window_minutes: int = Field(default=60, gt=0)
    max_transactions: int = Field(default=5, ge=0)
    count_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    count_severity_scale: float = Field(
        default=10.0,
        gt=0,
        description="severity = min(count / scale, 1)",
    )
    max_total_amount: Decimal = Field(default=Decimal("1000"), ge=0)
    amount_weight: float = Field(default=0.8, ge=0.0, le=1.0)
    amount_severity_scale: Decimal = Field(
        default=Decimal("5000"),
        gt=0,
        description="severity = min(total / scale, 1)",
    )


class GeolocationPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_travel_speed_kmh: float = Field(default=1000.0, gt=0)
    impossible_travel: FactorRule = FactorRule(weight=0.9, severity=1.0)
    high_risk_location: FactorRule = FactorRule(weight=0.6, severity=0.8)
    high_risk_countries: tuple[str, ...] = HIGH_RISK_COUNTRIES

    @field_validator("high_risk_countries")
    @classmethod
    def normalize_countries(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Uppercase, dedupe and sort so the policy hash is stable."""
        return tuple(sorted({c.upper() for c in v}))


class DevicePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    known_fraudulent: FactorRule = FactorRule(weight=0.8, severity=1.0)
    inconsistent_fingerprint: FactorRule = FactorRule(weight=0.6, severity=0.8)
    suspicious_patterns: FactorRule = FactorRule(weight=0.7, severity=0.9)


class BehavioralPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    unusual_patterns: FactorRule = FactorRule(weight=0.7, severity=0.8)
    velocity_violation_weight: float = Field(default=0.8, ge=0.0, le=1.0)
    velocity_violation_scale: float = Field(
        default=10.0,
        gt=0,
        description="severity = min(violations / scale, 1)",
    )
    geographic_anomalies: FactorRule = FactorRule(weight=0.6, severity=0.7)


class CardPatternPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    deny_listed: FactorRule = FactorRule(weight=1.0, severity=1.0)
    suspicious_pattern: FactorRule = FactorRule(weight=0.7, severity=0.8)
    min_repeated_digits: int = Field(default=4, ge=2)
    suspicious_sequences: tuple[str, ...] = ("1234", "5678")


class AmountPatternPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    unusual_amount: FactorRule = FactorRule(weight=0.6, severity=0.7)
    round_amount: FactorRule = FactorRule(weight=0.5, severity=0.6)
    max_amount: Decimal = Field(
        default=Decimal("10000"),
        description="Amounts at or above this are unusual",
    )
    min_amount: Decimal = Field(
        default=Decimal("0.01"),
        description="Amounts below this are unusual",
    )


class RiskPolicy(BaseModel):
    """
    Complete analyzer policy.

    Loaded from YAML and validated before it replaces the active policy.
    """
    model_config = ConfigDict(frozen=True)

    version: str = Field(
        default="1.0.0",
        description="Policy version for audit trail",
    )
    description: Optional[str] = Field(
        default=None,
        description="Policy description",
    )

    velocity: VelocityPolicy = VelocityPolicy()
    geolocation: GeolocationPolicy = GeolocationPolicy()
    device: DevicePolicy = DevicePolicy()
    behavioral: BehavioralPolicy = BehavioralPolicy()
    card_pattern: CardPatternPolicy = CardPatternPolicy()
    amount_pattern: AmountPatternPolicy = AmountPatternPolicy()

    thresholds: dict[FraudSensitivity, ThresholdTable] = Field(
        default_factory=lambda: dict(DEFAULT_THRESHOLDS),
        description="Threshold table per sensitivity",
    )

    @field_validator("thresholds")
    @classmethod
    def fill_missing_thresholds(
        cls,
        v: dict[FraudSensitivity, ThresholdTable],
    ) -> dict[FraudSensitivity, ThresholdTable]:
        """A file may override only some sensitivities; the rest keep defaults."""
        return {
            sensitivity: v.get(sensitivity, DEFAULT_THRESHOLDS[sensitivity])
            for sensitivity in FraudSensitivity
        }


DEFAULT_POLICY = RiskPolicy(
    version="1.0.0",
    description="Default payment risk policy",
)
