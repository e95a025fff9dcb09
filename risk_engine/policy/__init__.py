# Risk policy, thresholds and runtime configuration
from .thresholds import ThresholdTable, DEFAULT_THRESHOLDS
from .rules import (
    FraudRule,
    FactorRule,
    RiskPolicy,
    VelocityPolicy,
    GeolocationPolicy,
    DevicePolicy,
    BehavioralPolicy,
    CardPatternPolicy,
    AmountPatternPolicy,
    DEFAULT_POLICY,
    HIGH_RISK_COUNTRIES,
)
from .config import (
    FraudDetectionConfiguration,
    DetectionSnapshot,
    ConfigStore,
    compute_hash,
    load_policy_file,
)

__all__ = [
    "ThresholdTable",
    "DEFAULT_THRESHOLDS",
    "FraudRule",
    "FactorRule",
    "RiskPolicy",
    "VelocityPolicy",
    "GeolocationPolicy",
    "DevicePolicy",
    "BehavioralPolicy",
    "CardPatternPolicy",
    "AmountPatternPolicy",
    "DEFAULT_POLICY",
    "HIGH_RISK_COUNTRIES",
    "FraudDetectionConfiguration",
    "DetectionSnapshot",
    "ConfigStore",
    "compute_hash",
    "load_policy_file",
]
