"""
Redis-backed collaborator implementations.

Key format: {prefix}{area}:{entity_id}
Examples:
    risk:txn:cust_123          ZSET of transactions scored by timestamp (ms)
    risk:loc:customer:cust_123 HASH with the last known location
    risk:device:dev_abc        HASH with device reputation flags
    risk:behavior:cust_123     HASH with behavioural flags
    risk:deny:cards            SET of HMAC fingerprints of card numbers
    risk:deny:devices          SET of device ids

Card numbers are never written to Redis; the deny-list stores
HMAC-SHA256 fingerprints keyed with a server-side secret.

All clients are expected to be created with ``decode_responses=True``.
"""

import hashlib
import hmac
import json
from datetime import datetime
from decimal import Decimal
from typing import Optional

import redis.asyncio as redis

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


def _to_ms(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


def _flag(value: Optional[str]) -> bool:
    return value in ("1", "true", "True")


class RedisTransactionHistory(TransactionHistoryProvider):
    """
    Sliding window transaction history using Redis ZSETs.

    Each customer has one ZSET where:
    - Members are JSON-encoded transactions
    - Scores are Unix timestamps (milliseconds)
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "risk:",
        default_ttl_seconds: int = 86400 * 7,
    ):
        """
        Initialize transaction history.

        Args:
            redis_client: Async Redis client
            key_prefix: Prefix for all Redis keys
            default_ttl_seconds: TTL refreshed on each write (7 days)
        """
        self.redis = redis_client
        self.prefix = key_prefix
        self.default_ttl = default_ttl_seconds

    def _make_key(self, customer_id: str) -> str:
        return f"{self.prefix}txn:{customer_id}"

    async def record(self, customer_id: str, transaction: TransactionRecord) -> int:
        """
        Add a transaction to the customer's history.

        Returns:
            Number of elements added (0 if already present)
        """
        key = self._make_key(customer_id)
        member = json.dumps({
            "transaction_id": transaction.transaction_id,
            "amount": str(transaction.amount),
            "timestamp": transaction.timestamp.isoformat(),
        })

        # Use pipeline for atomic operation
        pipe = self.redis.pipeline()
        pipe.zadd(key, {member: _to_ms(transaction.timestamp)})
        pipe.expire(key, self.default_ttl)
        results = await pipe.execute()
        return results[0]

    async def recent_transactions(
        self,
        customer_id: str,
        since: datetime,
    ) -> list[TransactionRecord]:
        key = self._make_key(customer_id)
        members = await self.redis.zrangebyscore(key, _to_ms(since), "+inf")

        transactions = []
        for member in members:
            data = json.loads(member)
            transactions.append(TransactionRecord(
                transaction_id=data["transaction_id"],
                amount=Decimal(data["amount"]),
                timestamp=datetime.fromisoformat(data["timestamp"]),
            ))
        return transactions


class RedisLocationHistory(LocationHistoryProvider):
    """Last known location stored as Redis hashes."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "risk:"):
        self.redis = redis_client
        self.prefix = key_prefix

    def _make_key(self, entity_type: str, entity_id: str) -> str:
        return f"{self.prefix}loc:{entity_type}:{entity_id}"

    async def record(
        self,
        location: LocationRecord,
        customer_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> None:
        mapping = {
            "latitude": str(location.latitude),
            "longitude": str(location.longitude),
            "country_code": location.country_code or "",
            "timestamp": location.timestamp.isoformat(),
        }
        pipe = self.redis.pipeline()
        if customer_id:
            pipe.hset(self._make_key("customer", customer_id), mapping=mapping)
        if device_id:
            pipe.hset(self._make_key("device", device_id), mapping=mapping)
        await pipe.execute()

    async def last_known_location(
        self,
        customer_id: Optional[str],
        device_id: Optional[str],
    ) -> Optional[LocationRecord]:
        data = None
        if customer_id:
            data = await self.redis.hgetall(self._make_key("customer", customer_id))
        if not data and device_id:
            data = await self.redis.hgetall(self._make_key("device", device_id))
        if not data:
            return None

        return LocationRecord(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            country_code=data.get("country_code") or None,
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


class RedisDeviceReputation(DeviceReputationProvider):
    """Device reputation flags stored as Redis hashes."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "risk:"):
        self.redis = redis_client
        self.prefix = key_prefix

    def _make_key(self, device_id: str) -> str:
        return f"{self.prefix}device:{device_id}"

    async def upsert(self, fingerprint: DeviceFingerprint) -> None:
        await self.redis.hset(
            self._make_key(fingerprint.device_id),
            mapping={
                "is_known_fraudulent": "1" if fingerprint.is_known_fraudulent else "0",
                "is_consistent": "1" if fingerprint.is_consistent else "0",
                "has_suspicious_patterns": "1" if fingerprint.has_suspicious_patterns else "0",
            },
        )

    async def get_fingerprint(self, device_id: str) -> Optional[DeviceFingerprint]:
        data = await self.redis.hgetall(self._make_key(device_id))
        if not data:
            return None
        return DeviceFingerprint(
            device_id=device_id,
            is_known_fraudulent=_flag(data.get("is_known_fraudulent")),
            is_consistent=_flag(data.get("is_consistent", "1")),
            has_suspicious_patterns=_flag(data.get("has_suspicious_patterns")),
        )


class RedisBehaviorStore(BehaviorProvider):
    """Behavioural profiles stored as Redis hashes."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "risk:"):
        self.redis = redis_client
        self.prefix = key_prefix

    def _make_key(self, customer_id: str) -> str:
        return f"{self.prefix}behavior:{customer_id}"

    async def upsert(self, customer_id: str, behavior: UserBehavior) -> None:
        await self.redis.hset(
            self._make_key(customer_id),
            mapping={
                "has_unusual_patterns": "1" if behavior.has_unusual_patterns else "0",
                "velocity_violations": str(behavior.velocity_violations),
                "has_geographic_anomalies": "1" if behavior.has_geographic_anomalies else "0",
            },
        )

    async def get_behavior(self, customer_id: str) -> Optional[UserBehavior]:
        data = await self.redis.hgetall(self._make_key(customer_id))
        if not data:
            return None
        return UserBehavior(
            has_unusual_patterns=_flag(data.get("has_unusual_patterns")),
            velocity_violations=int(data.get("velocity_violations", 0)),
            has_geographic_anomalies=_flag(data.get("has_geographic_anomalies")),
        )


class RedisDenyList(DenyList):
    """
    Deny-list stored as Redis sets.

    Cards are stored as HMAC-SHA256 fingerprints so the set never holds
    a usable card number.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        hash_key: str,
        key_prefix: str = "risk:",
    ):
        self.redis = redis_client
        self.hash_key = hash_key.encode()
        self.prefix = key_prefix
        self.cards_key = f"{key_prefix}deny:cards"
        self.devices_key = f"{key_prefix}deny:devices"

    def fingerprint(self, card_number: str) -> str:
        """HMAC fingerprint of a normalized card number."""
        return hmac.new(
            self.hash_key,
            normalize_card_number(card_number).encode(),
            hashlib.sha256,
        ).hexdigest()

    async def add_card(self, card_number: str) -> None:
        await self.redis.sadd(self.cards_key, self.fingerprint(card_number))

    async def remove_card(self, card_number: str) -> None:
        await self.redis.srem(self.cards_key, self.fingerprint(card_number))

    async def add_device(self, device_id: str) -> None:
        await self.redis.sadd(self.devices_key, device_id)

    async def is_card_denied(self, card_number: str) -> bool:
        return bool(await self.redis.sismember(self.cards_key, self.fingerprint(card_number)))

    async def is_device_denied(self, device_id: str) -> bool:
        return bool(await self.redis.sismember(self.devices_key, device_id))
