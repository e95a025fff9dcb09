# Collaborator data sources
from .base import (
    TransactionHistoryProvider,
    LocationHistoryProvider,
    DeviceReputationProvider,
    BehaviorProvider,
    DenyList,
    NullDataSource,
)
from .memory import (
    InMemoryTransactionHistory,
    InMemoryLocationHistory,
    InMemoryDeviceReputation,
    InMemoryBehaviorStore,
    InMemoryDenyList,
)
from .redis_sources import (
    RedisTransactionHistory,
    RedisLocationHistory,
    RedisDeviceReputation,
    RedisBehaviorStore,
    RedisDenyList,
)

__all__ = [
    "TransactionHistoryProvider",
    "LocationHistoryProvider",
    "DeviceReputationProvider",
    "BehaviorProvider",
    "DenyList",
    "NullDataSource",
    "InMemoryTransactionHistory",
    "InMemoryLocationHistory",
    "InMemoryDeviceReputation",
    "InMemoryBehaviorStore",
    "InMemoryDenyList",
    "RedisTransactionHistory",
    "RedisLocationHistory",
    "RedisDeviceReputation",
    "RedisBehaviorStore",
    "RedisDenyList",
]
