"""
In-memory collaborator implementations.

Used by tests and single-process deployments. Each store is safe to read
from concurrent coroutines; writes replace whole values.
"""

from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

from ..schemas import (
    TransactionRecord,
    LocationRecord,
    DeviceFingerprint,
    UserBehavior,
)
from ..utils.cards import normalize_card_number
from .base import (
    TransactionHistoryProvider,
    LocationHistoryProvider,
    DeviceReputationProvider,
    BehaviorProvider,
    DenyList,
)


class InMemoryTransactionHistory(TransactionHistoryProvider):
    """Transaction history kept in a dict of lists."""

    def __init__(self):
        self._transactions: dict[str, list[TransactionRecord]] = defaultdict(list)

    def record(self, customer_id: str, transaction: TransactionRecord) -> None:
        self._transactions[customer_id].append(transaction)
        self._transactions[customer_id].sort(key=lambda t: t.timestamp)

    async def recent_transactions(
        self,
        customer_id: str,
        since: datetime,
    ) -> list[TransactionRecord]:
        return [
            t for t in self._transactions.get(customer_id, [])
            if t.timestamp >= since
        ]


class InMemoryLocationHistory(LocationHistoryProvider):
    """Last known location by customer id and by device id."""

    def __init__(self):
        self._by_customer: dict[str, LocationRecord] = {}
        self._by_device: dict[str, LocationRecord] = {}

    def record(
        self,
        location: LocationRecord,
        customer_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> None:
        if customer_id:
            self._by_customer[customer_id] = location
        if device_id:
            self._by_device[device_id] = location

    async def last_known_location(
        self,
        customer_id: Optional[str],
        device_id: Optional[str],
    ) -> Optional[LocationRecord]:
        # Customer history wins over device history
        if customer_id and customer_id in self._by_customer:
            return self._by_customer[customer_id]
        if device_id:
            return self._by_device.get(device_id)
        return None


class InMemoryDeviceReputation(DeviceReputationProvider):
    """Device fingerprints keyed by device id."""

    def __init__(self, fingerprints: Iterable[DeviceFingerprint] = ()):
        self._fingerprints = {f.device_id: f for f in fingerprints}

    def upsert(self, fingerprint: DeviceFingerprint) -> None:
        self._fingerprints[fingerprint.device_id] = fingerprint

    async def get_fingerprint(self, device_id: str) -> Optional[DeviceFingerprint]:
        return self._fingerprints.get(device_id)


class InMemoryBehaviorStore(BehaviorProvider):
    """Behavioural profiles keyed by customer id."""

    def __init__(self):
        self._profiles: dict[str, UserBehavior] = {}

    def upsert(self, customer_id: str, behavior: UserBehavior) -> None:
        self._profiles[customer_id] = behavior

    async def get_behavior(self, customer_id: str) -> Optional[UserBehavior]:
        return self._profiles.get(customer_id)


class InMemoryDenyList(DenyList):
    """Deny-list held as two sets."""

    def __init__(
        self,
        cards: Iterable[str] = (),
        devices: Iterable[str] = (),
    ):
        self._cards = {normalize_card_number(c) for c in cards}
        self._devices = set(devices)

    def add_card(self, card_number: str) -> None:
        self._cards.add(normalize_card_number(card_number))

    def add_device(self, device_id: str) -> None:
        self._devices.add(device_id)

    async def is_card_denied(self, card_number: str) -> bool:
        return normalize_card_number(card_number) in self._cards

    async def is_device_denied(self, device_id: str) -> bool:
        return device_id in self._devices
