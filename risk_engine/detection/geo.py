"""
Geolocation Analysis

Detects:
1. Impossible travel (implied speed since the last known location)
2. Payments from high-risk countries

Speed is great-circle distance over elapsed time. A last location at
the same time or later than the payment gives no usable speed and is
ignored.
"""

from math import radians, sin, cos, sqrt, atan2
from typing import Optional

from ..datasources import LocationHistoryProvider
from ..policy import FraudRule, RiskPolicy
from ..schemas import FraudFactor, FraudFactorType, PaymentContext
from .base import BaseAnalyzer

EARTH_RADIUS_KM = 6371


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points using Haversine formula.

    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


class GeolocationAnalyzer(BaseAnalyzer):
    """Compares the payment location with the last known location."""

    rule = FraudRule.GEOLOCATION_CHECK

    def __init__(
        self,
        locations: LocationHistoryProvider,
        timeout: Optional[float] = None,
    ):
        super().__init__(timeout)
        self.locations = locations

    async def analyze(
        self,
        context: PaymentContext,
        policy: RiskPolicy,
    ) -> list[FraudFactor]:
        current = context.location
        if current is None:
            return []

        geo = policy.geolocation
        factors = []

        # =======================================================================
        # Check 1: Impossible travel
        # =======================================================================
        if context.customer_id or context.device_id:
            last = await self._fetch(
                self.locations.last_known_location(context.customer_id, context.device_id),
                self.locations.name,
            )
            if last is not None:
                hours = (context.timestamp - last.timestamp).total_seconds() / 3600
                if hours > 0:
                    distance = haversine_km(
                        last.latitude, last.longitude,
                        current.latitude, current.longitude,
                    )
                    speed = distance / hours
                    if speed > geo.max_travel_speed_kmh:
                        factors.append(FraudFactor(
                            type=FraudFactorType.GEOLOCATION,
                            weight=geo.impossible_travel.weight,
                            severity=geo.impossible_travel.severity,
                            description=f"Impossible travel detected: {int(speed)} km/h",
                        ))

        # =======================================================================
        # Check 2: High-risk country
        # =======================================================================
        if current.country_code and current.country_code in geo.high_risk_countries:
            factors.append(FraudFactor(
                type=FraudFactorType.GEOLOCATION,
                weight=geo.high_risk_location.weight,
                severity=geo.high_risk_location.severity,
                description=f"Transaction from high-risk location: {current.country_code}",
            ))

        return factors
