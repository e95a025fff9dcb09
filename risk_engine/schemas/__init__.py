# Data schemas for the Payment Risk Engine
from .cards import CardBrand, CardData, EncryptedCardData, CardToken, CardValidationResult
from .risk import (
    FraudFactorType,
    FraudFactor,
    FraudRiskLevel,
    FraudSensitivity,
    Recommendation,
    PaymentMethod,
    GeoLocation,
    PaymentContext,
    TransactionRecord,
    LocationRecord,
    DeviceFingerprint,
    UserBehavior,
    FraudRisk,
    DeviceRisk,
    BehavioralRisk,
)
from .requests import RequestMeta

__all__ = [
    # Cards
    "CardBrand",
    "CardData",
    "EncryptedCardData",
    "CardToken",
    "CardValidationResult",
    # Risk
    "FraudFactorType",
    "FraudFactor",
    "FraudRiskLevel",
    "FraudSensitivity",
    "Recommendation",
    "PaymentMethod",
    "GeoLocation",
    "PaymentContext",
    "TransactionRecord",
    "LocationRecord",
    "DeviceFingerprint",
    "UserBehavior",
    "FraudRisk",
    "DeviceRisk",
    "BehavioralRisk",
    # Requests
    "RequestMeta",
]
