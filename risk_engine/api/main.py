"""
Payment Risk API

Thin FastAPI facade over FraudDetectionService.

Endpoints:
- GET /health: Health check (unauthenticated)
- GET /metrics: Prometheus metrics
- POST /cards/validate: Validate a card
- POST /cards/tokenize: Tokenize a card
- DELETE /tokens/{token_id}: Revoke a token
- POST /risk/analyze: Fraud risk for a payment
- GET /config, PUT /config, POST /config/reload: Detection configuration

All routes except /health require X-Api-Key and X-Signature headers.
No route ever returns a card number.
"""

import logging
import math
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from ..config import settings
from ..errors import (
    AuthenticationFailed,
    CardValidationError,
    ConfigurationError,
    CryptoError,
    DependencyUnavailable,
    InvalidSignature,
    RateLimitExceeded,
    RiskEngineError,
    TokenizationError,
    TokenNotFound,
)
from ..crypto import PostgresTokenVault
from ..policy import DetectionSnapshot, FraudDetectionConfiguration, RiskPolicy
from ..schemas import CardData, CardToken, CardValidationResult, FraudRisk, PaymentContext
from ..service import FraudDetectionService, create_service
from ..utils.logger import configure_logging
from .auth import verify_request
from .dependencies import get_service

logger = logging.getLogger("risk_engine.api")


class ConfigResponse(BaseModel):
    """Active detection configuration."""
    version: int
    policy_hash: str
    config: FraudDetectionConfiguration
    policy: RiskPolicy

    @classmethod
    def from_snapshot(cls, snapshot: DetectionSnapshot) -> "ConfigResponse":
        return cls(
            version=snapshot.version,
            policy_hash=snapshot.policy_hash,
            config=snapshot.config,
            policy=snapshot.policy,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the service from settings unless one was injected, and
    releases its connections on shutdown.
    """
    configure_logging(settings)

    owned = getattr(app.state, "service", None) is None
    if owned:
        app.state.service = create_service(settings)
        await app.state.service.startup()

    yield

    if owned:
        await app.state.service.shutdown()
        app.state.service = None


# =============================================================================
# Error mapping
# =============================================================================

def _status_for(error: RiskEngineError) -> int:
    if isinstance(error, CardValidationError):
        return 422
    if isinstance(error, TokenNotFound):
        return 404
    if isinstance(error, (CryptoError, TokenizationError, ConfigurationError)):
        return 400
    if isinstance(error, (AuthenticationFailed, InvalidSignature)):
        return 401
    if isinstance(error, RateLimitExceeded):
        return 429
    if isinstance(error, DependencyUnavailable):
        return 503
    return 500


async def risk_engine_error_handler(request: Request, exc: RiskEngineError) -> JSONResponse:
    status_code = _status_for(exc)
    headers = None
    if isinstance(exc, RateLimitExceeded):
        headers = {"Retry-After": str(max(math.ceil(exc.retry_after), 1))}
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.code)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "retryable": exc.retryable,
        },
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Echoed input could contain a card number
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={"error": "REQUEST_VALIDATION_FAILED", "detail": errors, "retryable": False},
    )


def create_app(service: Optional[FraudDetectionService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Prebuilt service (tests); built from settings when omitted
    """
    app = FastAPI(
        title="Payment Risk API",
        description="Card validation, tokenization and fraud risk scoring",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_exception_handler(RiskEngineError, risk_engine_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.get("/health")
    async def health_check(service: FraudDetectionService = Depends(get_service)):
        """
        Health check endpoint.

        Returns service health status and component availability.
        """
        snapshot = service.current_config()
        health: dict[str, Any] = {
            "status": "healthy",
            "config_version": snapshot.version,
            "policy_hash": snapshot.policy_hash,
            "components": {},
        }

        if service.redis_client is not None:
            try:
                await service.redis_client.ping()
                health["components"]["redis"] = True
            except Exception as e:
                logger.warning("Redis health check failed: %s", e)
                health["components"]["redis"] = False

        if isinstance(service.vault, PostgresTokenVault):
            try:
                health["components"]["postgres"] = await service.vault.health_check()
            except Exception as e:
                logger.warning("Postgres health check failed: %s", e)
                health["components"]["postgres"] = False

        if not all(health["components"].values()):
            health["status"] = "degraded"
        return health

    if settings.metrics_enabled:
        @app.get("/metrics", dependencies=[Depends(verify_request)])
        def metrics_endpoint():
            """Expose Prometheus metrics."""
            return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # =========================================================================
    # Cards
    # =========================================================================

    @app.post(
        "/cards/validate",
        response_model=CardValidationResult,
        dependencies=[Depends(verify_request)],
    )
    async def validate_card(
        card: CardData,
        service: FraudDetectionService = Depends(get_service),
    ):
        return await service.validate_card(card)

    @app.post(
        "/cards/tokenize",
        response_model=CardToken,
        status_code=201,
        dependencies=[Depends(verify_request)],
    )
    async def tokenize_card(
        card: CardData,
        service: FraudDetectionService = Depends(get_service),
    ):
        return await service.tokenize_card(card)

    @app.delete(
        "/tokens/{token_id}",
        response_model=CardToken,
        dependencies=[Depends(verify_request)],
    )
    async def revoke_token(
        token_id: str,
        service: FraudDetectionService = Depends(get_service),
    ):
        return await service.revoke_token(token_id)

    # =========================================================================
    # Risk
    # =========================================================================

    @app.post(
        "/risk/analyze",
        response_model=FraudRisk,
        dependencies=[Depends(verify_request)],
    )
    async def analyze_risk(
        context: PaymentContext,
        service: FraudDetectionService = Depends(get_service),
    ):
        """
        Analyze a payment.

        Returns the risk level, score, contributing factors and the
        recommended action (approve / review / decline).
        """
        return await service.analyze_fraud_risk(context)

    # =========================================================================
    # Configuration
    # =========================================================================

    @app.get("/config", response_model=ConfigResponse, dependencies=[Depends(verify_request)])
    async def get_config(service: FraudDetectionService = Depends(get_service)):
        return ConfigResponse.from_snapshot(service.current_config())

    @app.put("/config", response_model=ConfigResponse, dependencies=[Depends(verify_request)])
    async def update_config(
        config: dict = Body(...),
        service: FraudDetectionService = Depends(get_service),
    ):
        """Replace the detection configuration (invalid input -> 400, prior config kept)."""
        return ConfigResponse.from_snapshot(service.update_fraud_config(config))

    @app.post(
        "/config/reload",
        response_model=ConfigResponse,
        dependencies=[Depends(verify_request)],
    )
    async def reload_config(service: FraudDetectionService = Depends(get_service)):
        """Reload the risk policy from its YAML file."""
        return ConfigResponse.from_snapshot(service.reload_policy())

    return app


app = create_app()


# Entry point for running directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "risk_engine.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.app_debug,
    )
