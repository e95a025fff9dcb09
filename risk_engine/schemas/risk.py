"""
Risk Schemas

Defines the payment context submitted for analysis, the data returned by
collaborators (history, device and behaviour lookups), and the risk
results produced by the analyzers and the scorer.

Scores are on a 0-100 scale and always clamped.
"""

from datetime import datetime, UTC
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field, field_validator

from .cards import CardData


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class FraudFactorType(str, Enum):
    """Kind of signal a fraud factor represents."""
    VELOCITY = "velocity"
    GEOLOCATION = "geolocation"
    DEVICE_FINGERPRINT = "device_fingerprint"
    BEHAVIORAL_PATTERN = "behavioral_pattern"
    CARD_PATTERN = "card_pattern"
    AMOUNT_PATTERN = "amount_pattern"


class FraudRiskLevel(str, Enum):
    """
    Risk levels, ordered from least to most severe.

    The level is a monotonic function of the score under the
    active threshold table.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FraudSensitivity(str, Enum):
    """Sensitivity profile selecting the threshold table."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Recommendation(str, Enum):
    """Suggested caller action for a risk level."""
    APPROVE = "approve"
    REVIEW = "review"
    DECLINE = "decline"


class PaymentMethod(str, Enum):
    """Payment method of the request. Wallet tokens are opaque inputs."""
    CARD = "card"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    BANK_TRANSFER = "bank_transfer"


class FraudFactor(BaseModel):
    """
    Single weighted signal contributing to the aggregate score.

    Contribution to the score is ``weight * severity * 100``.
    """
    model_config = ConfigDict(frozen=True)

    type: FraudFactorType
    weight: float = Field(..., ge=0.0, le=1.0)
    severity: float = Field(..., ge=0.0, le=1.0)
    description: str

    @property
    def contribution(self) -> float:
        return self.weight * self.severity * 100.0


class GeoLocation(BaseModel):
    """Geographic position of the payer at request time."""
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    country_code: Optional[str] = Field(
        default=None,
        description="ISO 3166-1 alpha-2 country code",
        min_length=2,
        max_length=2,
    )

    @field_validator("country_code")
    @classmethod
    def validate_country_code(cls, v: Optional[str]) -> Optional[str]:
        """Ensure country code is uppercase."""
        return v.upper() if v else v


class PaymentContext(BaseModel):
    """
    Everything known about a payment at analysis time.

    Identifiers are used to look up history from collaborators; the
    context itself is never persisted by the engine.
    """
    payment_id: str = Field(
        default_factory=lambda: f"pay_{uuid4().hex[:16]}",
        description="Caller's payment identifier",
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Payment amount in major currency units",
    )
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
    )
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.CARD,
    )
    card_data: Optional[CardData] = Field(
        default=None,
        description="Raw card details, when paying by card",
    )
    payment_token: Optional[str] = Field(
        default=None,
        description="Opaque wallet/PSP token (Apple Pay, PayPal, Stripe)",
    )
    customer_id: Optional[str] = None
    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    location: Optional[GeoLocation] = None
    timestamp: UtcDatetime = Field(
        default_factory=_utc_now,
    )

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Ensure currency is uppercase."""
        return v.upper()


# =============================================================================
# Collaborator data
# =============================================================================

class TransactionRecord(BaseModel):
    """Past transaction returned by the transaction history lookup."""
    transaction_id: str
    amount: Decimal
    timestamp: UtcDatetime


class LocationRecord(BaseModel):
    """Last known location of a customer or device."""
    latitude: float
    longitude: float
    country_code: Optional[str] = None
    timestamp: UtcDatetime


class DeviceFingerprint(BaseModel):
    """Device reputation returned by the device lookup."""
    device_id: str
    is_known_fraudulent: bool = False
    is_consistent: bool = True
    has_suspicious_patterns: bool = False


class UserBehavior(BaseModel):
    """Behavioural profile of a customer."""
    has_unusual_patterns: bool = False
    velocity_violations: int = Field(default=0, ge=0)
    has_geographic_anomalies: bool = False


# =============================================================================
# Results
# =============================================================================

class FraudRisk(BaseModel):
    """Aggregate fraud risk for one payment."""
    level: FraudRiskLevel
    score: float = Field(..., ge=0.0, le=100.0)
    factors: list[FraudFactor] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utc_now)
    payment_id: Optional[str] = None
    sensitivity: FraudSensitivity = FraudSensitivity.MEDIUM
    config_version: int = Field(
        default=0,
        description="Version of the configuration snapshot used",
    )
    policy_hash: Optional[str] = Field(
        default=None,
        description="Content hash of the configuration snapshot used",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def recommendation(self) -> Recommendation:
        if self.level == FraudRiskLevel.CRITICAL:
            return Recommendation.DECLINE
        if self.level in (FraudRiskLevel.MEDIUM, FraudRiskLevel.HIGH):
            return Recommendation.REVIEW
        return Recommendation.APPROVE

    @property
    def description(self) -> str:
        return f"Fraud risk level: {self.level.value}, score: {self.score}"


class DeviceRisk(BaseModel):
    """Standalone device risk assessment."""
    level: FraudRiskLevel
    score: float = Field(..., ge=0.0, le=100.0)
    factors: list[FraudFactor] = Field(default_factory=list)
    device: DeviceFingerprint


class BehavioralRisk(BaseModel):
    """Standalone behavioural risk assessment."""
    level: FraudRiskLevel
    score: float = Field(..., ge=0.0, le=100.0)
    factors: list[FraudFactor] = Field(default_factory=list)
    behavior: UserBehavior
