"""
Device Fingerprint Analysis

Flags:
- Known-fraudulent device (reputation flag or device deny-list)
- Inconsistent fingerprint
- Suspicious-pattern flag
"""

import asyncio
from typing import Optional

from ..datasources import DenyList, DeviceReputationProvider, NullDataSource
from ..policy import FraudRule, RiskPolicy
from ..schemas import DeviceFingerprint, FraudFactor, FraudFactorType, PaymentContext
from .base import BaseAnalyzer


def device_factors(
    fingerprint: DeviceFingerprint,
    policy: RiskPolicy,
    deny_listed: bool = False,
) -> list[FraudFactor]:
    """Factors for a known device, independent of any lookup."""
    rules = policy.device
    factors = []

    if fingerprint.is_known_fraudulent or deny_listed:
        factors.append(FraudFactor(
            type=FraudFactorType.DEVICE_FINGERPRINT,
            weight=rules.known_fraudulent.weight,
            severity=rules.known_fraudulent.severity,
            description="Device is known to be fraudulent",
        ))

    if not fingerprint.is_consistent:
        factors.append(FraudFactor(
            type=FraudFactorType.DEVICE_FINGERPRINT,
            weight=rules.inconsistent_fingerprint.weight,
            severity=rules.inconsistent_fingerprint.severity,
            description="Device fingerprint is inconsistent",
        ))

    if fingerprint.has_suspicious_patterns:
        factors.append(FraudFactor(
            type=FraudFactorType.DEVICE_FINGERPRINT,
            weight=rules.suspicious_patterns.weight,
            severity=rules.suspicious_patterns.severity,
            description="Device shows suspicious patterns",
        ))

    return factors


class DeviceAnalyzer(BaseAnalyzer):
    """Looks up device reputation and the device deny-list."""

    rule = FraudRule.DEVICE_FINGERPRINTING

    def __init__(
        self,
        reputation: DeviceReputationProvider,
        deny_list: Optional[DenyList] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(timeout)
        self.reputation = reputation
        self.deny_list = deny_list or NullDataSource()

    async def analyze(
        self,
        context: PaymentContext,
        policy: RiskPolicy,
    ) -> list[FraudFactor]:
        device_id = context.device_id
        if not device_id:
            return []

        fingerprint, denied = await asyncio.gather(
            self._fetch(self.reputation.get_fingerprint(device_id), self.reputation.name),
            self._fetch(self.deny_list.is_device_denied(device_id), self.deny_list.name),
        )

        # Unknown device: only the deny-list can speak about it
        if fingerprint is None:
            fingerprint = DeviceFingerprint(device_id=device_id)
        return device_factors(fingerprint, policy, deny_listed=denied)
