# Risk factor analyzers
from .base import BaseAnalyzer
from .velocity import VelocityAnalyzer
from .geo import GeolocationAnalyzer, haversine_km
from .device import DeviceAnalyzer, device_factors
from .behavioral import BehavioralAnalyzer, behavioral_factors
from .card_pattern import CardPatternAnalyzer, has_suspicious_sequence
from .amount_pattern import AmountPatternAnalyzer, is_round_amount
from .engine import DetectionEngine

__all__ = [
    "BaseAnalyzer",
    "VelocityAnalyzer",
    "GeolocationAnalyzer",
    "haversine_km",
    "DeviceAnalyzer",
    "device_factors",
    "BehavioralAnalyzer",
    "behavioral_factors",
    "CardPatternAnalyzer",
    "has_suspicious_sequence",
    "AmountPatternAnalyzer",
    "is_round_amount",
    "DetectionEngine",
]
