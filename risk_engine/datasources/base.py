"""
Collaborator Interfaces

The engine never reads history, reputation or deny-list data itself.
Analyzers and the card validator receive these providers through their
constructors. Implementations may suspend (network I/O); failures must
surface as exceptions so the engine can report DependencyUnavailable
instead of treating a missing answer as "no risk".
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..schemas import (
    TransactionRecord,
    LocationRecord,
    DeviceFingerprint,
    UserBehavior,
)


class TransactionHistoryProvider(ABC):
    """Recent transactions for a customer."""

    name = "transaction_history"

    @abstractmethod
    async def recent_transactions(
        self,
        customer_id: str,
        since: datetime,
    ) -> list[TransactionRecord]:
        """
        Get transactions recorded for a customer at or after ``since``.

        Args:
            customer_id: Customer identifier
            since: Start of the look-back window (inclusive)

        Returns:
            Transactions in the window, oldest first
        """


class LocationHistoryProvider(ABC):
    """Last known location for a customer or device."""

    name = "location_history"

    @abstractmethod
    async def last_known_location(
        self,
        customer_id: Optional[str],
        device_id: Optional[str],
    ) -> Optional[LocationRecord]:
        """Get the most recent location observed before this request."""


class DeviceReputationProvider(ABC):
    """Device fingerprint reputation."""

    name = "device_reputation"

    @abstractmethod
    async def get_fingerprint(self, device_id: str) -> Optional[DeviceFingerprint]:
        """Get the reputation record for a device, or None if unseen."""


class BehaviorProvider(ABC):
    """Behavioural profile for a customer."""

    name = "behavior"

    @abstractmethod
    async def get_behavior(self, customer_id: str) -> Optional[UserBehavior]:
        """Get the behavioural profile for a customer, or None if unknown."""


class DenyList(ABC):
    """Known-fraudulent card numbers and device identifiers."""

    name = "deny_list"

    @abstractmethod
    async def is_card_denied(self, card_number: str) -> bool:
        """Check a normalized (digits only) card number."""

    @abstractmethod
    async def is_device_denied(self, device_id: str) -> bool:
        """Check a device identifier."""


class NullDataSource(
    TransactionHistoryProvider,
    LocationHistoryProvider,
    DeviceReputationProvider,
    BehaviorProvider,
    DenyList,
):
    """
    Provider that has no data at all.

    Every lookup answers "nothing known". Use it where a collaborator is
    genuinely absent; the analyzers then take their explicit no-data
    branch.
    """

    name = "null"

    async def recent_transactions(self, customer_id, since):
        return []

    async def last_known_location(self, customer_id, device_id):
        return None

    async def get_fingerprint(self, device_id):
        return None

    async def get_behavior(self, customer_id):
        return None

    async def is_card_denied(self, card_number):
        return False

    async def is_device_denied(self, device_id):
        return False
