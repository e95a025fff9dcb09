"""
API Tests

Integration tests for the payment risk API: signed requests, error
mapping and the guarantee that no response carries a card number.
"""

from datetime import timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from risk_engine.api.main import create_app, lifespan
from risk_engine.schemas import LocationRecord
from risk_engine.security import TokenBucketRateLimiter

from .conftest import (
    DENY_LISTED,
    FIXED_NOW,
    FUTURE_YEAR,
    VISA,
    Backends,
    build_service,
    signed_headers,
)


def card_payload(number: str = VISA, cvv: str = "123") -> dict:
    return {
        "number": number,
        "expiry_month": 12,
        "expiry_year": FUTURE_YEAR,
        "cvv": cvv,
        "cardholder_name": "Jane Doe",
    }


def payment_payload(number: str = VISA, amount: str = "49.99") -> dict:
    return {
        "payment_id": "pay_api_001",
        "amount": amount,
        "currency": "USD",
        "card_data": card_payload(number),
        "customer_id": "cust_123",
        "device_id": "dev_abc",
        "location": {"latitude": 40.7128, "longitude": -74.0060, "country_code": "US"},
        "timestamp": FIXED_NOW.isoformat(),
    }


async def send(client: AsyncClient, method: str, path: str, payload: Optional[dict] = None, **kwargs):
    """Send a correctly signed request."""
    headers, body = signed_headers(method, path, payload, **kwargs)
    return await client.request(method, path, content=body, headers=headers)


async def _client_for(service) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(service)
    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest_asyncio.fixture
async def api_client(service) -> AsyncGenerator[AsyncClient, None]:
    """
    Get async HTTP client for API tests.

    Wraps the in-memory service fixture; the lifespan keeps the injected
    service instead of building one from settings.
    """
    async for client in _client_for(service):
        yield client


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_is_public(self, api_client: AsyncClient):
        response = await api_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["config_version"] == 1


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_credentials(self, api_client: AsyncClient):
        response = await api_client.post("/cards/validate", json=card_payload())

        assert response.status_code == 401
        assert response.json()["error"] == "AUTHENTICATION_FAILED"

    @pytest.mark.asyncio
    async def test_unknown_api_key(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/cards/validate", card_payload(), api_key="pk_nope")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_secret(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/cards/validate", card_payload(), secret="whsec_wrong")

        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_SIGNATURE"

    @pytest.mark.asyncio
    async def test_body_must_match_signature(self, api_client: AsyncClient):
        headers, _ = signed_headers("POST", "/risk/analyze", payment_payload())
        tampered = payment_payload(amount="1.00")

        response = await api_client.post("/risk/analyze", json=tampered, headers=headers)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        limiter = TokenBucketRateLimiter(capacity=1, refill_per_second=0.5)
        service = build_service(Backends(), rate_limiter=limiter)

        async for client in _client_for(service):
            first = await send(client, "GET", "/config")
            second = await send(client, "GET", "/config")

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.json()["retryable"] is True
        assert int(second.headers["Retry-After"]) >= 1

    @pytest.mark.asyncio
    async def test_metrics_requires_signature(self, api_client: AsyncClient):
        assert (await api_client.get("/metrics")).status_code == 401

        response = await send(api_client, "GET", "/metrics")
        assert response.status_code == 200
        assert "risk_config_version" in response.text


class TestCardEndpoints:

    @pytest.mark.asyncio
    async def test_validate(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/cards/validate", card_payload())

        assert response.status_code == 200
        data = response.json()
        assert data == {"valid": True, "card_brand": "visa", "last_four_digits": "4242"}

    @pytest.mark.asyncio
    async def test_invalid_number(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/cards/validate", card_payload("4111111111111112"))

        assert response.status_code == 422
        assert response.json()["error"] == "INVALID_CARD_NUMBER"
        assert "4111111111111112" not in response.text

    @pytest.mark.asyncio
    async def test_deny_listed(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/cards/validate", card_payload(DENY_LISTED))

        assert response.status_code == 422
        assert response.json()["error"] == "FRAUDULENT_CARD"

    @pytest.mark.asyncio
    async def test_malformed_body_does_not_echo_card(self, api_client: AsyncClient):
        payload = card_payload()
        del payload["expiry_month"]
        payload["expiry_year"] = "not-a-year"

        response = await send(api_client, "POST", "/cards/validate", payload)

        assert response.status_code == 422
        assert response.json()["error"] == "REQUEST_VALIDATION_FAILED"
        assert VISA not in response.text

    @pytest.mark.asyncio
    async def test_tokenize_and_revoke(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/cards/tokenize", card_payload())

        assert response.status_code == 201
        token = response.json()
        assert token["last_four_digits"] == "4242"
        assert token["is_active"] is True
        assert VISA not in response.text

        response = await send(api_client, "DELETE", f"/tokens/{token['id']}")
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    @pytest.mark.asyncio
    async def test_revoke_unknown_token(self, api_client: AsyncClient):
        response = await send(api_client, "DELETE", "/tokens/tok_missing")

        assert response.status_code == 404
        assert response.json()["error"] == "TOKEN_NOT_FOUND"


class TestRiskEndpoint:

    @pytest.mark.asyncio
    async def test_low_risk_payment(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/risk/analyze", payment_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["level"] == "low"
        assert data["recommendation"] == "approve"
        assert data["payment_id"] == "pay_api_001"
        assert VISA not in response.text

    @pytest.mark.asyncio
    async def test_deny_listed_card_declined(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/risk/analyze", payment_payload(DENY_LISTED))

        assert response.status_code == 200
        data = response.json()
        assert data["level"] == "critical"
        assert data["score"] == 100.0
        assert data["recommendation"] == "decline"
        assert data["factors"][0]["type"] == "card_pattern"
        assert DENY_LISTED not in response.text

    @pytest.mark.asyncio
    async def test_timestamp_without_offset(self, api_client: AsyncClient, backends):
        """A naive timestamp is read as UTC, not rejected with a 500 or 503."""
        backends.locations.record(
            LocationRecord(latitude=51.5074, longitude=-0.1278, timestamp=FIXED_NOW - timedelta(hours=1)),
            customer_id="cust_123",
        )
        payload = payment_payload()
        payload["timestamp"] = FIXED_NOW.replace(tzinfo=None).isoformat()

        response = await send(api_client, "POST", "/risk/analyze", payload)

        assert response.status_code == 200
        assert [f["type"] for f in response.json()["factors"]] == ["geolocation"]

    @pytest.mark.asyncio
    async def test_invalid_card(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/risk/analyze", payment_payload("1234"))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_dependency_failure_is_503(self):
        from .test_service import BrokenBehaviorStore

        service = build_service(Backends(behavior=BrokenBehaviorStore()))
        async for client in _client_for(service):
            response = await send(client, "POST", "/risk/analyze", payment_payload())

        assert response.status_code == 503
        assert response.json()["retryable"] is True


class TestConfigEndpoints:

    @pytest.mark.asyncio
    async def test_get_config(self, api_client: AsyncClient):
        response = await send(api_client, "GET", "/config")

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 1
        assert data["config"]["sensitivity"] == "medium"
        assert data["policy"]["thresholds"]["medium"]["critical"] == 85

    @pytest.mark.asyncio
    async def test_update_config(self, api_client: AsyncClient):
        response = await send(api_client, "PUT", "/config", {"sensitivity": "high", "enabled": True})

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 2
        assert data["config"]["sensitivity"] == "high"

    @pytest.mark.asyncio
    async def test_invalid_config_rejected(self, api_client: AsyncClient):
        response = await send(api_client, "PUT", "/config", {"sensitivity": "paranoid"})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_CONFIGURATION"

        current = await send(api_client, "GET", "/config")
        assert current.json()["version"] == 1

    @pytest.mark.asyncio
    async def test_reload_without_policy_file(self, api_client: AsyncClient):
        response = await send(api_client, "POST", "/config/reload")
        assert response.status_code == 400
