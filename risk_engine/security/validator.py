"""
Request Security Gate

Runs in front of every processing entry point. Checks, in order:
1. API key present and known          -> AuthenticationFailed
2. Signature valid and recent          -> InvalidSignature
3. Rate limit for the API key          -> RateLimitExceeded

Only authenticated, correctly signed requests consume rate limit.
The gate has no side effects beyond the rate-limit counter.
"""

import logging

from ..errors import AuthenticationFailed, SecurityError
from ..metrics import metrics
from ..schemas import RequestMeta
from .credentials import CredentialStore
from .rate_limit import RateLimiter
from .signing import RequestSigner

logger = logging.getLogger("risk_engine.security")


def _key_hint(api_key: str) -> str:
    return f"{api_key[:4]}..." if len(api_key) > 4 else "****"


class RequestSecurityValidator:
    """Authenticates, verifies and rate-limits inbound requests."""

    def __init__(
        self,
        credentials: CredentialStore,
        signer: RequestSigner,
        rate_limiter: RateLimiter,
    ):
        self.credentials = credentials
        self.signer = signer
        self.rate_limiter = rate_limiter

    async def validate(self, request: RequestMeta) -> None:
        """
        Validate an inbound request.

        Raises:
            AuthenticationFailed, InvalidSignature, RateLimitExceeded,
            DependencyUnavailable if a shared rate-limit store is down
        """
        try:
            if not request.api_key:
                raise AuthenticationFailed("Missing API key")

            secret = self.credentials.secret_for(request.api_key)
            if secret is None:
                raise AuthenticationFailed("Unknown API key")

            self.signer.verify(secret, request)
            await self.rate_limiter.acquire(request.api_key)
        except SecurityError as e:
            metrics.request_rejections.labels(reason=e.code).inc()
            logger.warning(
                "Rejected %s %s (key=%s): %s",
                request.method,
                request.path,
                _key_hint(request.api_key or ""),
                e.code,
            )
            raise
