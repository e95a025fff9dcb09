"""
Request authentication for the HTTP facade.

Every protected route depends on verify_request, which hands the API key,
signature header, method, path and raw body to the service's security
gate. Failures surface as SecurityError and are mapped by the app's
exception handlers.
"""

from fastapi import Depends, Header, Request

from ..schemas import RequestMeta
from ..service import FraudDetectionService
from .dependencies import get_service


async def verify_request(
    request: Request,
    x_api_key: str | None = Header(default=None),
    x_signature: str | None = Header(default=None),
    service: FraudDetectionService = Depends(get_service),
) -> None:
    """Run the security gate for the current request."""
    meta = RequestMeta(
        api_key=x_api_key.strip() if x_api_key else None,
        signature=x_signature,
        method=request.method,
        path=request.url.path,
        body=await request.body(),
    )
    await service.validate_request(meta)
