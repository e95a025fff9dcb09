"""
Pytest Configuration and Fixtures - Payment Risk Engine

Provides shared fixtures: sample cards and payments, in-memory
collaborators, a fully wired service and signed-request helpers.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, UTC
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
import redis.asyncio as redis
from redis.exceptions import RedisError

from risk_engine.config import settings
from risk_engine.crypto import CardCipher, CardTokenizer, InMemoryTokenVault, StaticKeyStore
from risk_engine.datasources import (
    InMemoryBehaviorStore,
    InMemoryDenyList,
    InMemoryDeviceReputation,
    InMemoryLocationHistory,
    InMemoryTransactionHistory,
)
from risk_engine.detection import (
    AmountPatternAnalyzer,
    BehavioralAnalyzer,
    CardPatternAnalyzer,
    DetectionEngine,
    DeviceAnalyzer,
    GeolocationAnalyzer,
    VelocityAnalyzer,
)
from risk_engine.policy import ConfigStore
from risk_engine.schemas import CardData, GeoLocation, PaymentContext, RequestMeta
from risk_engine.security import (
    RateLimiter,
    RequestSecurityValidator,
    RequestSigner,
    StaticCredentialStore,
    TokenBucketRateLimiter,
)
from risk_engine.service import FraudDetectionService
from risk_engine.validation import CardValidator

FIXED_NOW = datetime(2026, 6, 15, 12, 0, tzinfo=UTC)
FUTURE_YEAR = datetime.now(UTC).year + 3

API_KEY = "pk_test_merchant"
API_SECRET = "whsec_test_secret"

TEST_REDIS_PREFIX = "risk_test:"

VISA = "4242424242424242"
AMEX = "378282246310005"
DENY_LISTED = "4000000000000002"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests (no infrastructure)")
    config.addinivalue_line("markers", "integration: integration tests (requires Redis/Postgres)")


# =============================================================================
# Cards and payments
# =============================================================================

def make_card(number: str = VISA, cvv: str = "123", **kwargs) -> CardData:
    return CardData(
        number=number,
        expiry_month=kwargs.pop("expiry_month", 12),
        expiry_year=kwargs.pop("expiry_year", FUTURE_YEAR),
        cvv=cvv,
        cardholder_name=kwargs.pop("cardholder_name", "Jane Doe"),
    )


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def visa_card() -> CardData:
    return make_card()


@pytest.fixture
def amex_card() -> CardData:
    return make_card(AMEX, cvv="1234")


@pytest.fixture
def sample_context() -> PaymentContext:
    """Ordinary card payment from a known customer in New York."""
    return PaymentContext(
        payment_id="pay_test_001",
        amount=Decimal("49.99"),
        currency="usd",
        card_data=make_card(),
        customer_id="cust_123",
        device_id="dev_abc",
        ip_address="203.0.113.10",
        location=GeoLocation(latitude=40.7128, longitude=-74.0060, country_code="us"),
        timestamp=FIXED_NOW,
    )


# =============================================================================
# Collaborators and service
# =============================================================================

@dataclass
class Backends:
    """In-memory collaborators shared by a test service."""
    history: InMemoryTransactionHistory = field(default_factory=InMemoryTransactionHistory)
    locations: InMemoryLocationHistory = field(default_factory=InMemoryLocationHistory)
    devices: InMemoryDeviceReputation = field(default_factory=InMemoryDeviceReputation)
    behavior: InMemoryBehaviorStore = field(default_factory=InMemoryBehaviorStore)
    deny_list: InMemoryDenyList = field(default_factory=InMemoryDenyList)
    vault: InMemoryTokenVault = field(default_factory=InMemoryTokenVault)
    keystore: StaticKeyStore = field(default_factory=StaticKeyStore.generate)


def build_service(
    backends: Backends,
    rate_limiter: Optional[RateLimiter] = None,
    config_store: Optional[ConfigStore] = None,
    collaborator_timeout: Optional[float] = 0.5,
    analysis_timeout: Optional[float] = 2.0,
) -> FraudDetectionService:
    validator = CardValidator(deny_list=backends.deny_list)
    cipher = CardCipher(backends.keystore)
    engine = DetectionEngine([
        VelocityAnalyzer(backends.history, timeout=collaborator_timeout),
        GeolocationAnalyzer(backends.locations, timeout=collaborator_timeout),
        DeviceAnalyzer(backends.devices, deny_list=backends.deny_list, timeout=collaborator_timeout),
        BehavioralAnalyzer(backends.behavior, timeout=collaborator_timeout),
        CardPatternAnalyzer(backends.deny_list, timeout=collaborator_timeout),
        AmountPatternAnalyzer(timeout=collaborator_timeout),
    ])
    security = RequestSecurityValidator(
        credentials=StaticCredentialStore({API_KEY: API_SECRET}),
        signer=RequestSigner(tolerance_seconds=300),
        rate_limiter=rate_limiter or TokenBucketRateLimiter(capacity=100, refill_per_second=10),
    )
    return FraudDetectionService(
        validator=validator,
        cipher=cipher,
        tokenizer=CardTokenizer(validator, cipher, backends.vault),
        engine=engine,
        config_store=config_store or ConfigStore(),
        security=security,
        analysis_timeout=analysis_timeout,
    )


@pytest.fixture
def backends() -> Backends:
    b = Backends()
    b.deny_list.add_card(DENY_LISTED)
    return b


@pytest.fixture
def service(backends: Backends) -> FraudDetectionService:
    return build_service(backends)


# =============================================================================
# Request signing
# =============================================================================

def signed_headers(
    method: str,
    path: str,
    payload: Optional[dict] = None,
    api_key: str = API_KEY,
    secret: str = API_SECRET,
) -> tuple[dict, bytes]:
    """Headers and exact body bytes for a signed API call."""
    body = json.dumps(payload).encode() if payload is not None else b""
    meta = RequestMeta(api_key=api_key, method=method, path=path, body=body)
    signature = RequestSigner().sign(secret, meta)
    headers = {"X-Api-Key": api_key, "X-Signature": signature}
    if payload is not None:
        headers["Content-Type"] = "application/json"
    return headers, body


# =============================================================================
# Infrastructure
# =============================================================================

@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[redis.Redis, None]:
    """
    Get Redis client for tests.

    Uses a test-specific key prefix; skipped when Redis is not reachable.
    """
    client = redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        password=settings.redis_password,
        decode_responses=True,
    )
    try:
        await client.ping()
    except (RedisError, OSError):
        await client.aclose()
        pytest.skip("Redis not available")

    yield client

    keys = await client.keys(f"{TEST_REDIS_PREFIX}*")
    if keys:
        await client.delete(*keys)
    await client.aclose()
